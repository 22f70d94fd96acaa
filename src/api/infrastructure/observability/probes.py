"""Domain probes for infrastructure observability.

Domain probes provide a high-level instrumentation API oriented around
domain semantics, keeping infrastructure code clean and testable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class ConnectionProbe(Protocol):
    """Domain probe for database engine and connection observability.

    Covers both the central engines and the per-tenant engines managed by
    the connection router.
    """

    def engine_created(self, database: str, kind: str) -> None:
        """Record that an engine was created for a database."""
        ...

    def engine_disposed(self, kind: str, database: str | None = None) -> None:
        """Record that an engine was disposed."""
        ...

    def engine_evicted(self, database: str) -> None:
        """Record that a tenant engine was evicted from the cache."""
        ...

    def connection_acquired(self, database: str) -> None:
        """Record that a tenant-bound connection was checked out."""
        ...

    def connection_released(self, database: str) -> None:
        """Record that a tenant-bound connection was returned."""
        ...

    def connection_retry(self, database: str, attempt: int, error: Exception) -> None:
        """Record a transient failure that will be retried."""
        ...

    def connection_unavailable(self, database: str, error: Exception) -> None:
        """Record that no connection could be produced after retries."""
        ...

    def tenant_database_missing(self, database: str) -> None:
        """Record that a scope was requested for a database that does not exist."""
        ...

    def with_context(self, context: ObservationContext) -> ConnectionProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultConnectionProbe:
    """Default implementation of ConnectionProbe using structlog.

    Supports observation context for including request-scoped metadata
    with all log events.
    """

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

    def with_context(self, context: ObservationContext) -> DefaultConnectionProbe:
        """Create a new probe with observation context bound."""
        return DefaultConnectionProbe(logger=self._logger, context=context)

    def engine_created(self, database: str, kind: str) -> None:
        """Record that an engine was created for a database."""
        self._logger.info(
            "database_engine_created",
            database=database,
            kind=kind,
            **self._get_context_kwargs(),
        )

    def engine_disposed(self, kind: str, database: str | None = None) -> None:
        """Record that an engine was disposed."""
        self._logger.info(
            "database_engine_disposed",
            kind=kind,
            database=database,
            **self._get_context_kwargs(),
        )

    def engine_evicted(self, database: str) -> None:
        """Record that a tenant engine was evicted from the cache."""
        self._logger.debug(
            "tenant_engine_evicted",
            database=database,
            **self._get_context_kwargs(),
        )

    def connection_acquired(self, database: str) -> None:
        """Record that a tenant-bound connection was checked out."""
        self._logger.debug(
            "tenant_connection_acquired",
            database=database,
            **self._get_context_kwargs(),
        )

    def connection_released(self, database: str) -> None:
        """Record that a tenant-bound connection was returned."""
        self._logger.debug(
            "tenant_connection_released",
            database=database,
            **self._get_context_kwargs(),
        )

    def connection_retry(self, database: str, attempt: int, error: Exception) -> None:
        """Record a transient failure that will be retried."""
        self._logger.warning(
            "tenant_connection_retry",
            database=database,
            attempt=attempt,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def connection_unavailable(self, database: str, error: Exception) -> None:
        """Record that no connection could be produced after retries."""
        self._logger.error(
            "tenant_connection_unavailable",
            database=database,
            error=str(error),
            error_type=type(error).__name__,
            **self._get_context_kwargs(),
        )

    def tenant_database_missing(self, database: str) -> None:
        """Record that a scope was requested for a database that does not exist."""
        self._logger.warning(
            "tenant_database_missing",
            database=database,
            **self._get_context_kwargs(),
        )
