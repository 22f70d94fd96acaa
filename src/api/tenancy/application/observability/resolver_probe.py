"""Domain probe for per-request tenant resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantResolverProbe(Protocol):
    """Domain probe for tenant resolution."""

    def tenant_resolved(self, tenant_id: str, binding_key: str, source: str) -> None:
        """Record that a request was routed to a tenant."""
        ...

    def binding_not_found(self, binding_key: str) -> None:
        """Record that no tenant is bound to a key."""
        ...

    def tenant_not_routable(self, tenant_id: str, status: str) -> None:
        """Record that the bound tenant is not active."""
        ...

    def ambiguous_request(self, path: str | None, host: str | None) -> None:
        """Record a request carrying no usable tenant label."""
        ...

    def with_context(self, context: ObservationContext) -> TenantResolverProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantResolverProbe:
    """Default implementation of TenantResolverProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultTenantResolverProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantResolverProbe(logger=self._logger, context=context)

    def tenant_resolved(self, tenant_id: str, binding_key: str, source: str) -> None:
        """Record that a request was routed to a tenant."""
        self._logger.debug(
            "tenant_resolved",
            tenant_id=tenant_id,
            binding_key=binding_key,
            source=source,
            **self._get_context_kwargs(),
        )

    def binding_not_found(self, binding_key: str) -> None:
        """Record that no tenant is bound to a key."""
        self._logger.info(
            "tenant_binding_not_found",
            binding_key=binding_key,
            **self._get_context_kwargs(),
        )

    def tenant_not_routable(self, tenant_id: str, status: str) -> None:
        """Record that the bound tenant is not active."""
        self._logger.info(
            "tenant_not_routable",
            tenant_id=tenant_id,
            status=status,
            **self._get_context_kwargs(),
        )

    def ambiguous_request(self, path: str | None, host: str | None) -> None:
        """Record a request carrying no usable tenant label."""
        self._logger.info(
            "tenant_request_ambiguous",
            path=path,
            host=host,
            **self._get_context_kwargs(),
        )
