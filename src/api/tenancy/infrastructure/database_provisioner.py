"""PostgreSQL implementation of IDatabaseProvisioner.

Physical databases are created and dropped through an AUTOCOMMIT admin
engine connected to the central database. Every statement is bounded by
the operation timeout and retried on infrastructure failures only.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from infrastructure.database.retry import retry_transient
from infrastructure.settings import ProvisioningSettings
from tenancy.domain.value_objects import PhysicalDatabaseName, TenantId
from tenancy.infrastructure.observability import (
    DefaultProvisionerProbe,
    ProvisionerProbe,
)
from tenancy.infrastructure.tenant_migrator import AlembicTenantMigrator
from tenancy.ports.exceptions import ProvisioningFailedError
from tenancy.ports.provisioning import IDatabaseProvisioner

T = TypeVar("T")

# SQLSTATE duplicate_database
_DUPLICATE_DATABASE = "42P04"


class PostgresDatabaseProvisioner(IDatabaseProvisioner):
    """Creates, migrates and drops one database per tenant."""

    def __init__(
        self,
        admin_engine: AsyncEngine,
        settings: ProvisioningSettings,
        migrator: AlembicTenantMigrator,
        probe: ProvisionerProbe | None = None,
    ) -> None:
        """Initialize the provisioner.

        Args:
            admin_engine: AUTOCOMMIT engine allowed to run CREATE/DROP DATABASE
            settings: Prefix, timeouts and retry bounds
            migrator: Applies the tenant migration set
            probe: Optional domain probe for observability
        """
        self._admin_engine = admin_engine
        self._settings = settings
        self._migrator = migrator
        self._probe = probe or DefaultProvisionerProbe()

    def physical_name(self, tenant_id: TenantId) -> PhysicalDatabaseName:
        """Compute ``prefix + sanitize(tenant_id)``."""
        return PhysicalDatabaseName.for_tenant(
            self._settings.database_prefix, tenant_id
        )

    async def create(self, tenant_id: TenantId) -> PhysicalDatabaseName:
        """Create the tenant's database if absent and verify it exists.

        Calling this for a database that already exists succeeds, so a
        provisioning run resumed after a crash can call it again.

        Raises:
            ProvisioningFailedError: If creation errors or the catalog does
                not list the database afterwards
        """
        name = self.physical_name(tenant_id)

        try:
            already_existed = await self.exists(name)
            if not already_existed:
                await self._create_database(name)
            verified = await self.exists(name)
        except (SQLAlchemyError, OSError) as e:
            self._probe.database_create_failed(name.value, e)
            raise ProvisioningFailedError(
                f"Could not create database '{name.value}': {e}",
                tenant_id=tenant_id.value,
                physical_name=name.value,
            ) from e

        if not verified:
            self._probe.database_verification_failed(name.value)
            raise ProvisioningFailedError(
                f"Database '{name.value}' not found after create",
                tenant_id=tenant_id.value,
                physical_name=name.value,
            )

        self._probe.database_created(name.value, already_existed)
        return name

    async def exists(self, name: PhysicalDatabaseName) -> bool:
        """Whether ``pg_database`` lists this database."""

        async def query() -> bool:
            async with self._admin_engine.connect() as conn:
                result = await conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"),
                    {"name": name.value},
                )
                return result.scalar_one_or_none() is not None

        return await self._retry("exists", name, query)

    async def migrate(self, name: PhysicalDatabaseName) -> None:
        """Bring the database to the head of the tenant migration set.

        Raises:
            MigrationFailedError: On the first failing revision, or when the
                run exceeds the migration timeout
        """
        await self._migrator.upgrade(
            name.value,
            timeout_seconds=self._settings.migration_timeout_seconds,
        )

    async def current_revision(self, name: PhysicalDatabaseName) -> str | None:
        """Revision the database is at (None when unmigrated)."""
        return await self._retry(
            "current_revision",
            name,
            lambda: self._migrator.current_revision(name.value),
        )

    def head_revision(self) -> str | None:
        """Latest revision of the tenant migration set."""
        return self._migrator.head_revision()

    async def drop(self, name: PhysicalDatabaseName) -> None:
        """Drop the database, terminating any remaining sessions on it.

        Succeeds when the database is already absent.

        Raises:
            ProvisioningFailedError: If the drop fails after retries
        """
        statement = text(f"DROP DATABASE IF EXISTS {self._quote(name)} WITH (FORCE)")

        async def run() -> None:
            async with self._admin_engine.connect() as conn:
                await conn.execute(statement)

        try:
            await self._retry("drop", name, run)
        except (SQLAlchemyError, OSError) as e:
            raise ProvisioningFailedError(
                f"Could not drop database '{name.value}': {e}",
                physical_name=name.value,
            ) from e

        self._probe.database_dropped(name.value)

    async def _create_database(self, name: PhysicalDatabaseName) -> None:
        statement = text(f"CREATE DATABASE {self._quote(name)}")

        async def run() -> None:
            async with self._admin_engine.connect() as conn:
                await conn.execute(statement)

        try:
            await self._retry("create", name, run)
        except DBAPIError as e:
            # A concurrent create of the same name already won
            if not _is_duplicate_database(e):
                raise

    async def _retry(
        self,
        operation: str,
        name: PhysicalDatabaseName,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        return await retry_transient(
            fn,
            attempts=self._settings.max_attempts,
            backoff_seconds=self._settings.retry_backoff_seconds,
            timeout_seconds=self._settings.operation_timeout_seconds,
            on_retry=lambda attempt, e: self._probe.operation_retry(
                operation, name.value, attempt, e
            ),
        )

    def _quote(self, name: PhysicalDatabaseName) -> str:
        return self._admin_engine.dialect.identifier_preparer.quote_identifier(
            name.value
        )


def _is_duplicate_database(error: DBAPIError) -> bool:
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(
        error.orig, "pgcode", None
    )
    if sqlstate == _DUPLICATE_DATABASE:
        return True
    return "already exists" in str(error)
