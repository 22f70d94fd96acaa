"""Shared fixtures for tenancy unit tests."""

import pytest

from infrastructure.settings import AdminSeedPolicy, ProvisioningSettings
from tenancy.application.services import ProvisioningOrchestrator
from tests.unit.tenancy.fakes import (
    FakeAdminSeeder,
    FakeConnectionRouter,
    FakeProvisioner,
    FakeProvisioningLock,
    FakeSession,
    InMemoryTenantRegistry,
)


@pytest.fixture
def provisioning_settings() -> ProvisioningSettings:
    """Settings with a single attempt and no backoff, for fast failures."""
    return ProvisioningSettings(
        database_prefix="tenant_",
        admin_seed_policy=AdminSeedPolicy.OPTIONAL,
        operation_timeout_seconds=5,
        migration_timeout_seconds=5,
        max_attempts=1,
        retry_backoff_seconds=0,
    )


@pytest.fixture
def registry() -> InMemoryTenantRegistry:
    return InMemoryTenantRegistry()


@pytest.fixture
def central_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner(prefix="tenant_")


@pytest.fixture
def router(provisioner) -> FakeConnectionRouter:
    return FakeConnectionRouter(provisioner)


@pytest.fixture
def lock() -> FakeProvisioningLock:
    return FakeProvisioningLock()


@pytest.fixture
def seeder() -> FakeAdminSeeder:
    return FakeAdminSeeder()


@pytest.fixture
def orchestrator(
    registry,
    central_session,
    provisioner,
    router,
    lock,
    seeder,
    provisioning_settings,
) -> ProvisioningOrchestrator:
    """ProvisioningOrchestrator wired to in-memory fakes."""
    return ProvisioningOrchestrator(
        registry=registry,
        session=central_session,
        provisioner=provisioner,
        router=router,
        lock=lock,
        seeder=seeder,
        settings=provisioning_settings,
    )
