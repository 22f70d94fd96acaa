"""Routes data access to the physical database of one tenant.

One pooled engine is kept per physical database, created on first use
and evicted least-recently-used once ``max_cached_engines`` is reached.
A session handed out by the router can only ever reach the database its
engine was built for, so a scope opened for tenant A cannot touch tenant
B's data. There is no ambient "current connection" to leak between
concurrent requests: each scope owns its session and closes it on exit.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_tenant_engine
from infrastructure.database.retry import is_transient_error, retry_transient
from infrastructure.observability import ConnectionProbe, DefaultConnectionProbe
from infrastructure.settings import DatabaseSettings, ProvisioningSettings
from tenancy.domain.value_objects import PhysicalDatabaseName, TenantId
from tenancy.ports.exceptions import (
    ConnectionUnavailableError,
    UnresolvedTenantError,
)
from tenancy.ports.provisioning import (
    HasPhysicalDatabase,
    IConnectionRouter,
    IDatabaseProvisioner,
)

T = TypeVar("T")


class TenantConnectionRouter(IConnectionRouter):
    """Hands out sessions bound to a tenant's physical database."""

    def __init__(
        self,
        db_settings: DatabaseSettings,
        settings: ProvisioningSettings,
        provisioner: IDatabaseProvisioner,
        probe: ConnectionProbe | None = None,
        engine_factory: Callable[[str], AsyncEngine] | None = None,
    ) -> None:
        """Initialize the router.

        Args:
            db_settings: Cluster host and credentials
            settings: Pool sizing, timeouts and retry bounds
            provisioner: Used to name databases and check they exist
            probe: Optional domain probe for observability
            engine_factory: Builds an engine for a database name; defaults
                to a pooled asyncpg engine
        """
        self._db_settings = db_settings
        self._settings = settings
        self._provisioner = provisioner
        self._probe = probe or DefaultConnectionProbe()
        self._engine_factory = engine_factory or self._create_engine
        self._engines: OrderedDict[
            str, tuple[AsyncEngine, async_sessionmaker[AsyncSession]]
        ] = OrderedDict()
        self._verified: set[str] = set()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def session(self, tenant: HasPhysicalDatabase) -> AsyncIterator[AsyncSession]:
        """Open a session bound to the tenant's physical database.

        The connection is acquired before the block runs, so pool exhaustion
        and connect failures surface here rather than at the first query.

        Raises:
            UnresolvedTenantError: If the tenant's database does not exist
            ConnectionUnavailableError: If no connection could be acquired
        """
        tenant_key = tenant.database_key()
        name = self._provisioner.physical_name(TenantId(value=tenant_key))
        await self._ensure_exists(tenant_key, name)

        sessionmaker = await self._sessionmaker_for(name.value)
        session = sessionmaker()
        try:
            await self._acquire(session, name.value)
            self._probe.connection_acquired(name.value)
            with structlog.contextvars.bound_contextvars(
                tenant_id=tenant_key,
                tenant_database=name.value,
            ):
                yield session
        finally:
            await session.close()
            self._probe.connection_released(name.value)

    async def with_tenant(
        self,
        tenant: HasPhysicalDatabase,
        fn: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run ``fn`` inside a tenant-bound session and return its result."""
        async with self.session(tenant) as session:
            return await fn(session)

    async def release(self, name: PhysicalDatabaseName) -> None:
        """Dispose the engine for a database and forget that it exists."""
        async with self._lock:
            entry = self._engines.pop(name.value, None)
            self._verified.discard(name.value)
        if entry is not None:
            await entry[0].dispose()
            self._probe.engine_disposed("tenant", database=name.value)

    async def close(self) -> None:
        """Dispose every tenant engine."""
        async with self._lock:
            entries = list(self._engines.items())
            self._engines.clear()
            self._verified.clear()
        for database, (engine, _) in entries:
            await engine.dispose()
            self._probe.engine_disposed("tenant", database=database)

    async def _ensure_exists(self, tenant_key: str, name: PhysicalDatabaseName) -> None:
        if name.value in self._verified:
            return
        try:
            exists = await self._provisioner.exists(name)
        except (SQLAlchemyError, OSError) as e:
            self._probe.connection_unavailable(name.value, e)
            raise ConnectionUnavailableError(name.value, cause=e) from e
        if not exists:
            self._probe.tenant_database_missing(name.value)
            raise UnresolvedTenantError(tenant_key, name.value)
        self._verified.add(name.value)

    async def _acquire(self, session: AsyncSession, database: str) -> None:
        try:
            await retry_transient(
                session.connection,
                attempts=self._settings.max_attempts,
                backoff_seconds=self._settings.retry_backoff_seconds,
                timeout_seconds=self._settings.tenant_pool_timeout_seconds,
                on_retry=lambda attempt, e: self._probe.connection_retry(
                    database, attempt, e
                ),
            )
        except Exception as e:
            if not is_transient_error(e):
                raise
            self._probe.connection_unavailable(database, e)
            raise ConnectionUnavailableError(database, cause=e) from e

    async def _sessionmaker_for(
        self, database: str
    ) -> async_sessionmaker[AsyncSession]:
        async with self._lock:
            entry = self._engines.get(database)
            if entry is not None:
                self._engines.move_to_end(database)
                return entry[1]

            engine = self._engine_factory(database)
            sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
            self._engines[database] = (engine, sessionmaker)
            self._probe.engine_created(database=database, kind="tenant")

            evicted = []
            while len(self._engines) > self._settings.max_cached_engines:
                evicted.append(self._engines.popitem(last=False))

        for evicted_database, (evicted_engine, _) in evicted:
            # Checked-out connections stay usable; dispose only drops idle ones
            await evicted_engine.dispose()
            self._probe.engine_evicted(evicted_database)

        return sessionmaker

    def _create_engine(self, database: str) -> AsyncEngine:
        return create_tenant_engine(
            self._db_settings,
            database,
            pool_size=self._settings.tenant_pool_size,
            pool_timeout=self._settings.tenant_pool_timeout_seconds,
        )
