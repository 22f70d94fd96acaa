"""Protocol for tenant administration service observability."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class TenantServiceProbe(Protocol):
    """Domain probe for tenant administration operations."""

    def tenants_listed(self, count: int) -> None:
        """Record that tenants were listed."""
        ...

    def tenant_retrieved(self, tenant_id: str) -> None:
        """Record that a tenant was retrieved."""
        ...

    def tenant_not_found(self, tenant_id: str) -> None:
        """Record that a tenant was not found."""
        ...

    def tenant_deprovisioned(self, tenant_id: str, physical_name: str) -> None:
        """Record that a tenant and its database were removed."""
        ...

    def tenant_migrated(
        self, tenant_id: str, physical_name: str, revision: str | None
    ) -> None:
        """Record that a tenant database was brought to head."""
        ...

    def tenant_migration_failed(
        self, tenant_id: str, physical_name: str, error: BaseException
    ) -> None:
        """Record that bulk migration failed for one tenant."""
        ...

    def with_context(self, context: ObservationContext) -> TenantServiceProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantServiceProbe:
    """Default implementation of TenantServiceProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultTenantServiceProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantServiceProbe(logger=self._logger, context=context)

    def tenants_listed(self, count: int) -> None:
        """Record that tenants were listed."""
        self._logger.debug(
            "tenants_listed",
            count=count,
            **self._get_context_kwargs(),
        )

    def tenant_retrieved(self, tenant_id: str) -> None:
        """Record that a tenant was retrieved."""
        self._logger.debug(
            "tenant_retrieved",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_not_found(self, tenant_id: str) -> None:
        """Record that a tenant was not found."""
        self._logger.debug(
            "tenant_not_found",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_deprovisioned(self, tenant_id: str, physical_name: str) -> None:
        """Record that a tenant and its database were removed."""
        self._logger.info(
            "tenant_deprovisioned",
            tenant_id=tenant_id,
            physical_name=physical_name,
            **self._get_context_kwargs(),
        )

    def tenant_migrated(
        self, tenant_id: str, physical_name: str, revision: str | None
    ) -> None:
        """Record that a tenant database was brought to head."""
        self._logger.info(
            "tenant_migrated",
            tenant_id=tenant_id,
            physical_name=physical_name,
            revision=revision,
            **self._get_context_kwargs(),
        )

    def tenant_migration_failed(
        self, tenant_id: str, physical_name: str, error: BaseException
    ) -> None:
        """Record that bulk migration failed for one tenant."""
        self._logger.error(
            "tenant_migration_failed",
            tenant_id=tenant_id,
            physical_name=physical_name,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )
