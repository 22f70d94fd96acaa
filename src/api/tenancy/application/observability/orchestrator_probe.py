"""Domain probe for provisioning runs.

Captures every state transition of the provisioning saga and every
compensating action, so an operator can reconstruct a failed run from
logs alone.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ProvisioningProbe(Protocol):
    """Domain probe for the provisioning orchestrator."""

    def provisioning_started(
        self, tenant_id: str, binding_key: str, resumed: bool
    ) -> None:
        """Record that a run acquired its lock and started."""
        ...

    def tenant_id_suffixed(self, base: str, chosen: str) -> None:
        """Record that a derived tenant id collided and a suffix was applied."""
        ...

    def unowned_database_found(self, tenant_id: str, physical_name: str) -> None:
        """Record that a fresh run found a database nobody has a record for."""
        ...

    def state_reached(self, tenant_id: str, state: str) -> None:
        """Record a successful transition."""
        ...

    def step_skipped(self, tenant_id: str, step: str, reason: str) -> None:
        """Record a step that had nothing to do."""
        ...

    def provisioning_failed(
        self, tenant_id: str, step: str, error: BaseException
    ) -> None:
        """Record the primary failure of a run."""
        ...

    def compensation_failed(
        self, tenant_id: str, action: str, error: BaseException
    ) -> None:
        """Record a compensating action that itself failed."""
        ...

    def rolled_back(self, tenant_id: str, warnings: list[str]) -> None:
        """Record the end of compensation."""
        ...

    def provisioning_succeeded(self, tenant_id: str, physical_name: str) -> None:
        """Record that a tenant became active."""
        ...

    def with_context(self, context: ObservationContext) -> ProvisioningProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultProvisioningProbe:
    """Default implementation of ProvisioningProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultProvisioningProbe:
        """Create a new probe with observation context bound."""
        return DefaultProvisioningProbe(logger=self._logger, context=context)

    def provisioning_started(
        self, tenant_id: str, binding_key: str, resumed: bool
    ) -> None:
        """Record that a run acquired its lock and started."""
        self._logger.info(
            "provisioning_started",
            tenant_id=tenant_id,
            binding_key=binding_key,
            resumed=resumed,
            **self._get_context_kwargs(),
        )

    def tenant_id_suffixed(self, base: str, chosen: str) -> None:
        """Record that a derived tenant id collided and a suffix was applied."""
        self._logger.info(
            "provisioning_tenant_id_suffixed",
            base=base,
            tenant_id=chosen,
            **self._get_context_kwargs(),
        )

    def unowned_database_found(self, tenant_id: str, physical_name: str) -> None:
        """Record that a fresh run found a database nobody has a record for."""
        self._logger.error(
            "provisioning_unowned_database_found",
            tenant_id=tenant_id,
            physical_name=physical_name,
            **self._get_context_kwargs(),
        )

    def state_reached(self, tenant_id: str, state: str) -> None:
        """Record a successful transition."""
        self._logger.info(
            "provisioning_state_reached",
            tenant_id=tenant_id,
            state=state,
            **self._get_context_kwargs(),
        )

    def step_skipped(self, tenant_id: str, step: str, reason: str) -> None:
        """Record a step that had nothing to do."""
        self._logger.debug(
            "provisioning_step_skipped",
            tenant_id=tenant_id,
            step=step,
            reason=reason,
            **self._get_context_kwargs(),
        )

    def provisioning_failed(
        self, tenant_id: str, step: str, error: BaseException
    ) -> None:
        """Record the primary failure of a run."""
        self._logger.error(
            "provisioning_failed",
            tenant_id=tenant_id,
            step=step,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def compensation_failed(
        self, tenant_id: str, action: str, error: BaseException
    ) -> None:
        """Record a compensating action that itself failed."""
        self._logger.warning(
            "provisioning_compensation_failed",
            tenant_id=tenant_id,
            action=action,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def rolled_back(self, tenant_id: str, warnings: list[str]) -> None:
        """Record the end of compensation."""
        self._logger.warning(
            "provisioning_rolled_back",
            tenant_id=tenant_id,
            clean=not warnings,
            warnings=warnings,
            **self._get_context_kwargs(),
        )

    def provisioning_succeeded(self, tenant_id: str, physical_name: str) -> None:
        """Record that a tenant became active."""
        self._logger.info(
            "provisioning_succeeded",
            tenant_id=tenant_id,
            physical_name=physical_name,
            **self._get_context_kwargs(),
        )
