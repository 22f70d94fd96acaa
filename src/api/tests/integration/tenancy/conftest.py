"""Integration test fixtures for the tenancy bounded context.

Every test run uses its own database prefix, so physical databases
created here never collide with a developer's tenants and can be swept
afterwards.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from ulid import ULID

from infrastructure.database.engines import create_admin_engine, create_write_engine
from infrastructure.database.models import Base
from infrastructure.settings import (
    AdminSeedPolicy,
    DatabaseSettings,
    ProvisioningSettings,
)
from tenancy.application.services import ProvisioningOrchestrator, TenantService
from tenancy.infrastructure import models  # noqa: F401
from tenancy.infrastructure.admin_seeder import AdminSeeder
from tenancy.infrastructure.connection_router import TenantConnectionRouter
from tenancy.infrastructure.database_provisioner import PostgresDatabaseProvisioner
from tenancy.infrastructure.provisioning_lock import PostgresAdvisoryLock
from tenancy.infrastructure.tenant_migrator import AlembicTenantMigrator
from tenancy.infrastructure.tenant_registry import TenantRegistry


@pytest.fixture(scope="session")
def run_suffix() -> str:
    """Short random suffix shared by every database and domain of this run."""
    return str(ULID()).lower()[-8:]


@pytest.fixture
def provisioning_settings(run_suffix: str) -> ProvisioningSettings:
    """Provisioning settings with a per-run prefix."""
    return ProvisioningSettings(
        database_prefix=f"it{run_suffix}_",
        admin_seed_policy=AdminSeedPolicy.OPTIONAL,
        max_attempts=2,
        retry_backoff_seconds=0.1,
        tenant_pool_size=2,
        max_cached_engines=4,
    )


@pytest_asyncio.fixture
async def admin_engine(
    require_database: DatabaseSettings,
) -> AsyncGenerator[AsyncEngine, None]:
    """AUTOCOMMIT engine for CREATE/DROP DATABASE and advisory locks."""
    engine = create_admin_engine(require_database)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def central_sessionmaker(
    require_database: DatabaseSettings,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory for the central registry, with its tables created."""
    engine = create_write_engine(require_database)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def central_session(
    central_sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a central session for one test."""
    async with central_sessionmaker() as session:
        yield session


@pytest.fixture
def registry(central_session: AsyncSession) -> TenantRegistry:
    return TenantRegistry(session=central_session)


@pytest.fixture
def provisioner(
    require_database: DatabaseSettings,
    admin_engine: AsyncEngine,
    provisioning_settings: ProvisioningSettings,
) -> PostgresDatabaseProvisioner:
    return PostgresDatabaseProvisioner(
        admin_engine=admin_engine,
        settings=provisioning_settings,
        migrator=AlembicTenantMigrator(
            db_settings=require_database,
            settings=provisioning_settings,
        ),
    )


@pytest_asyncio.fixture
async def router(
    require_database: DatabaseSettings,
    provisioning_settings: ProvisioningSettings,
    provisioner: PostgresDatabaseProvisioner,
) -> AsyncGenerator[TenantConnectionRouter, None]:
    router = TenantConnectionRouter(
        db_settings=require_database,
        settings=provisioning_settings,
        provisioner=provisioner,
    )
    yield router
    await router.close()


@pytest.fixture
def lock(admin_engine: AsyncEngine) -> PostgresAdvisoryLock:
    return PostgresAdvisoryLock(admin_engine=admin_engine)


@pytest.fixture
def orchestrator(
    registry: TenantRegistry,
    central_session: AsyncSession,
    provisioner: PostgresDatabaseProvisioner,
    router: TenantConnectionRouter,
    lock: PostgresAdvisoryLock,
    provisioning_settings: ProvisioningSettings,
) -> ProvisioningOrchestrator:
    """ProvisioningOrchestrator wired to PostgreSQL."""
    return ProvisioningOrchestrator(
        registry=registry,
        session=central_session,
        provisioner=provisioner,
        router=router,
        lock=lock,
        seeder=AdminSeeder(),
        settings=provisioning_settings,
    )


@pytest.fixture
def tenant_service(
    registry: TenantRegistry,
    central_session: AsyncSession,
    provisioner: PostgresDatabaseProvisioner,
    router: TenantConnectionRouter,
    lock: PostgresAdvisoryLock,
) -> TenantService:
    return TenantService(
        registry=registry,
        session=central_session,
        provisioner=provisioner,
        router=router,
        lock=lock,
    )


@pytest_asyncio.fixture
async def clean_tenancy_data(
    central_sessionmaker: async_sessionmaker[AsyncSession],
    admin_engine: AsyncEngine,
    run_suffix: str,
) -> AsyncGenerator[None, None]:
    """Remove this run's tenant records and databases after each test.

    Tenant ids and domains created by these tests all end with the run
    suffix; databases all start with the run prefix.
    """
    yield

    pattern = f"%{run_suffix}"

    async with central_sessionmaker() as session:
        async with session.begin():
            await session.execute(
                text("DELETE FROM route_bindings WHERE binding_key LIKE :p"),
                {"p": pattern},
            )
            await session.execute(
                text("DELETE FROM tenants WHERE id LIKE :p"),
                {"p": pattern},
            )

    async with admin_engine.connect() as conn:
        result = await conn.execute(
            text("SELECT datname FROM pg_database WHERE datname LIKE :p"),
            {"p": f"it{run_suffix}\\_%"},
        )
        for (name,) in result.all():
            await conn.execute(text(f'DROP DATABASE IF EXISTS "{name}" WITH (FORCE)'))
