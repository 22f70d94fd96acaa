"""Domain probe for tenant context resolution.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events related to resolving the tenant of an inbound
request from its path segment or Host header.

See: https://martinfowler.com/articles/domain-oriented-observability.html
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantContextProbe(Protocol):
    """Domain probe for tenant context resolution operations."""

    def tenant_context_resolved(
        self,
        tenant_id: str,
        binding_key: str,
        source: str,
    ) -> None:
        """Record that a request was bound to a tenant."""
        ...

    def tenant_context_rejected(
        self,
        status_code: int,
        reason: str,
    ) -> None:
        """Record that tenant resolution short-circuited the request."""
        ...

    def with_context(self, context: ObservationContext) -> TenantContextProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantContextProbe:
    """Default implementation of TenantContextProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultTenantContextProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantContextProbe(logger=self._logger, context=context)

    def tenant_context_resolved(
        self,
        tenant_id: str,
        binding_key: str,
        source: str,
    ) -> None:
        """Record that a request was bound to a tenant."""
        self._logger.debug(
            "tenant_context_resolved",
            tenant_id=tenant_id,
            binding_key=binding_key,
            source=source,
            **self._get_context_kwargs(),
        )

    def tenant_context_rejected(
        self,
        status_code: int,
        reason: str,
    ) -> None:
        """Record that tenant resolution short-circuited the request."""
        self._logger.info(
            "tenant_context_rejected",
            status_code=status_code,
            reason=reason,
            **self._get_context_kwargs(),
        )
