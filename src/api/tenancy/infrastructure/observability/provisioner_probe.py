"""Domain probe for tenant databases: DDL, migrations, admin seeding and locking."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ProvisionerProbe(Protocol):
    """Domain probe for tenant databases: DDL, migrations, seeding and locking."""

    def database_created(self, database: str, already_existed: bool) -> None:
        """Record that a database exists after create (verified)."""
        ...

    def database_verification_failed(self, database: str) -> None:
        """Record that the catalog did not list a database after create."""
        ...

    def database_create_failed(self, database: str, error: Exception) -> None:
        """Record that CREATE DATABASE errored."""
        ...

    def database_dropped(self, database: str) -> None:
        """Record that a database was dropped (or was already absent)."""
        ...

    def operation_retry(
        self, operation: str, database: str, attempt: int, error: Exception
    ) -> None:
        """Record a transient failure that will be retried."""
        ...

    def migration_step_applied(self, database: str, revision: str) -> None:
        """Record that one tenant migration revision was applied."""
        ...

    def migration_step_failed(
        self, database: str, revision: str, error: BaseException
    ) -> None:
        """Record that a tenant migration revision failed."""
        ...

    def migrations_up_to_date(self, database: str, revision: str | None) -> None:
        """Record that a database is already at head."""
        ...

    def admin_seeded(self, email: str) -> None:
        """Record that the first administrator was inserted."""
        ...

    def admin_already_present(self, email: str) -> None:
        """Record that seeding found the administrator already there."""
        ...

    def lock_release_failed(self, tenant_id: str, error: BaseException) -> None:
        """Record that a provisioning lock could not be released cleanly."""
        ...

    def with_context(self, context: ObservationContext) -> ProvisionerProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultProvisionerProbe:
    """Default implementation of ProvisionerProbe using structlog."""

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

    def with_context(self, context: ObservationContext) -> DefaultProvisionerProbe:
        """Create a new probe with observation context bound."""
        return DefaultProvisionerProbe(logger=self._logger, context=context)

    def database_created(self, database: str, already_existed: bool) -> None:
        """Record that a database exists after create (verified)."""
        self._logger.info(
            "tenant_database_created",
            database=database,
            already_existed=already_existed,
            **self._get_context_kwargs(),
        )

    def database_verification_failed(self, database: str) -> None:
        """Record that the catalog did not list a database after create."""
        self._logger.error(
            "tenant_database_verification_failed",
            database=database,
            **self._get_context_kwargs(),
        )

    def database_create_failed(self, database: str, error: Exception) -> None:
        """Record that CREATE DATABASE errored."""
        self._logger.error(
            "tenant_database_create_failed",
            database=database,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def database_dropped(self, database: str) -> None:
        """Record that a database was dropped (or was already absent)."""
        self._logger.info(
            "tenant_database_dropped",
            database=database,
            **self._get_context_kwargs(),
        )

    def operation_retry(
        self, operation: str, database: str, attempt: int, error: Exception
    ) -> None:
        """Record a transient failure that will be retried."""
        self._logger.warning(
            "provisioner_operation_retry",
            operation=operation,
            database=database,
            attempt=attempt,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def migration_step_applied(self, database: str, revision: str) -> None:
        """Record that one tenant migration revision was applied."""
        self._logger.info(
            "tenant_migration_step_applied",
            database=database,
            revision=revision,
            **self._get_context_kwargs(),
        )

    def migration_step_failed(
        self, database: str, revision: str, error: BaseException
    ) -> None:
        """Record that a tenant migration revision failed."""
        self._logger.error(
            "tenant_migration_step_failed",
            database=database,
            revision=revision,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def migrations_up_to_date(self, database: str, revision: str | None) -> None:
        """Record that a database is already at head."""
        self._logger.debug(
            "tenant_migrations_up_to_date",
            database=database,
            revision=revision,
            **self._get_context_kwargs(),
        )

    def admin_seeded(self, email: str) -> None:
        """Record that the first administrator was inserted."""
        self._logger.info(
            "tenant_admin_seeded",
            email=email,
            **self._get_context_kwargs(),
        )

    def admin_already_present(self, email: str) -> None:
        """Record that seeding found the administrator already there."""
        self._logger.info(
            "tenant_admin_already_present",
            email=email,
            **self._get_context_kwargs(),
        )

    def lock_release_failed(self, tenant_id: str, error: BaseException) -> None:
        """Record that a provisioning lock could not be released cleanly."""
        self._logger.warning(
            "provisioning_lock_release_failed",
            tenant_id=tenant_id,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )
