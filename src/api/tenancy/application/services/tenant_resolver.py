"""Per-request tenant resolution.

A request names its tenant either by the leading path segment
(``/acme/api/users``) or by the host subdomain (``acme.example.com``).
The path form wins when its leading segment is a usable label; otherwise
the host is consulted.
"""

from __future__ import annotations

from dataclasses import dataclass
import ipaddress

from infrastructure.settings import RoutingSettings
from tenancy.application.observability import (
    DefaultTenantResolverProbe,
    TenantResolverProbe,
)
from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import BindingKey
from tenancy.ports.exceptions import AmbiguousRequestError, TenantNotFoundError
from tenancy.ports.repositories import ITenantRegistry

SOURCE_PATH = "path"
SOURCE_SUBDOMAIN = "subdomain"


@dataclass(frozen=True)
class TenantLabel:
    """Binding key extracted from a request and where it came from."""

    binding_key: BindingKey
    source: str


class TenantResolver:
    """Maps inbound requests to active tenants through the registry."""

    def __init__(
        self,
        registry: ITenantRegistry,
        settings: RoutingSettings,
        probe: TenantResolverProbe | None = None,
    ):
        self._registry = registry
        self._base_domain = settings.base_domain
        self._reserved = frozenset(label.lower() for label in settings.reserved_labels)
        self._probe = probe or DefaultTenantResolverProbe()

    async def resolve_from_request(
        self,
        path: str | None = None,
        *,
        host: str | None = None,
    ) -> Tenant:
        """Resolve the active tenant a request belongs to.

        Args:
            path: Request path, with or without a leading slash
            host: Value of the Host header, port allowed

        Raises:
            AmbiguousRequestError: If neither form yields a usable label
            TenantNotFoundError: If the label is unbound or the tenant is
                not active
        """
        label = self.identify(path, host=host)
        return await self.resolve_label(label)

    async def resolve_from_path(self, path: str) -> Tenant:
        """Resolve using only the leading path segment."""
        return await self.resolve_from_request(path)

    async def resolve_from_host(self, host: str) -> Tenant:
        """Resolve using only the host subdomain."""
        return await self.resolve_from_request(host=host)

    def identify(
        self, path: str | None = None, *, host: str | None = None
    ) -> TenantLabel:
        """Extract the binding key without touching the registry.

        Raises:
            AmbiguousRequestError: If no usable label is present
        """
        if path is not None:
            key = self._usable(self._leading_segment(path))
            if key is not None:
                return TenantLabel(binding_key=key, source=SOURCE_PATH)

        if host is not None:
            key = self._usable(self._subdomain(host))
            if key is not None:
                return TenantLabel(binding_key=key, source=SOURCE_SUBDOMAIN)

        self._probe.ambiguous_request(path, host)
        raise AmbiguousRequestError(
            "Request does not identify a tenant by path segment or subdomain"
        )

    async def resolve_label(self, label: TenantLabel) -> Tenant:
        """Look up an extracted label and require the tenant to be routable.

        Raises:
            TenantNotFoundError: If unbound, or bound to a tenant that is
                still provisioning, suspended or deleted
        """
        tenant = await self._registry.resolve(label.binding_key)
        if tenant is None:
            self._probe.binding_not_found(label.binding_key.value)
            raise TenantNotFoundError(label.binding_key.value)

        if not tenant.is_routable:
            self._probe.tenant_not_routable(tenant.id.value, tenant.status.value)
            raise TenantNotFoundError(label.binding_key.value)

        self._probe.tenant_resolved(
            tenant.id.value, label.binding_key.value, label.source
        )
        return tenant

    def _usable(self, raw: str | None) -> BindingKey | None:
        if not raw:
            return None
        candidate = raw.strip().lower()
        if candidate in self._reserved:
            return None
        try:
            return BindingKey.from_string(candidate)
        except ValueError:
            return None

    @staticmethod
    def _leading_segment(path: str) -> str | None:
        path = path.split("?", 1)[0]
        segments = [segment for segment in path.split("/") if segment]
        return segments[0] if segments else None

    def _subdomain(self, host: str) -> str | None:
        hostname = _strip_port(host.strip().lower()).rstrip(".")
        if not hostname or _is_ip_address(hostname):
            return None

        if self._base_domain:
            suffix = f".{self._base_domain}"
            if not hostname.endswith(suffix):
                return None
            label = hostname[: -len(suffix)]
            # Only a single label directly under the base domain identifies a tenant
            return None if "." in label else label

        labels = hostname.split(".")
        if len(labels) >= 3 or (len(labels) == 2 and labels[1] == "localhost"):
            return labels[0]
        return None


def _strip_port(host: str) -> str:
    if host.startswith("["):
        return host.split("]", 1)[0] + "]"
    if host.count(":") == 1:
        return host.rsplit(":", 1)[0]
    return host


def _is_ip_address(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        return False
    return True
