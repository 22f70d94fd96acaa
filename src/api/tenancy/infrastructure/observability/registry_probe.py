"""Domain probe for tenant registry operations.

Following Domain-Oriented Observability patterns, this probe captures
domain-significant events related to tenant records and route bindings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantRegistryProbe(Protocol):
    """Domain probe for tenant registry operations."""

    def tenant_registered(self, tenant_id: str) -> None:
        """Record that a tenant record was inserted."""
        ...

    def duplicate_identity(self, tenant_id: str, field: str) -> None:
        """Record that registration hit a uniqueness constraint."""
        ...

    def binding_created(self, tenant_id: str, binding_key: str) -> None:
        """Record that a route binding was inserted."""
        ...

    def binding_conflict(self, binding_key: str, tenant_id: str) -> None:
        """Record that a binding key is owned by another tenant."""
        ...

    def status_changed(self, tenant_id: str, status: str) -> None:
        """Record a tenant status transition."""
        ...

    def tenant_not_found(self, tenant_id: str) -> None:
        """Record that a tenant lookup missed."""
        ...

    def tenant_removed(self, tenant_id: str) -> None:
        """Record that a tenant and its bindings were deleted."""
        ...

    def with_context(self, context: ObservationContext) -> TenantRegistryProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantRegistryProbe:
    """Default implementation of TenantRegistryProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultTenantRegistryProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantRegistryProbe(logger=self._logger, context=context)

    def tenant_registered(self, tenant_id: str) -> None:
        """Record that a tenant record was inserted."""
        self._logger.info(
            "tenant_registered",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def duplicate_identity(self, tenant_id: str, field: str) -> None:
        """Record that registration hit a uniqueness constraint."""
        self._logger.warning(
            "tenant_duplicate_identity",
            tenant_id=tenant_id,
            field=field,
            **self._get_context_kwargs(),
        )

    def binding_created(self, tenant_id: str, binding_key: str) -> None:
        """Record that a route binding was inserted."""
        self._logger.info(
            "route_binding_created",
            tenant_id=tenant_id,
            binding_key=binding_key,
            **self._get_context_kwargs(),
        )

    def binding_conflict(self, binding_key: str, tenant_id: str) -> None:
        """Record that a binding key is owned by another tenant."""
        self._logger.warning(
            "route_binding_conflict",
            binding_key=binding_key,
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def status_changed(self, tenant_id: str, status: str) -> None:
        """Record a tenant status transition."""
        self._logger.info(
            "tenant_status_changed",
            tenant_id=tenant_id,
            status=status,
            **self._get_context_kwargs(),
        )

    def tenant_not_found(self, tenant_id: str) -> None:
        """Record that a tenant lookup missed."""
        self._logger.debug(
            "tenant_not_found",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_removed(self, tenant_id: str) -> None:
        """Record that a tenant and its bindings were deleted."""
        self._logger.info(
            "tenant_removed",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )
