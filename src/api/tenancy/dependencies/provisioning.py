"""Process-wide provisioning collaborators.

The connection router owns a cache of tenant engines and must be a
single instance per process; the provisioner, migrator and lock are
stateless apart from their engine and are shared for convenience.
"""

from __future__ import annotations

import threading

from infrastructure.database.dependencies import get_admin_engine
from infrastructure.settings import get_database_settings, get_provisioning_settings
from tenancy.infrastructure.admin_seeder import AdminSeeder
from tenancy.infrastructure.connection_router import TenantConnectionRouter
from tenancy.infrastructure.database_provisioner import PostgresDatabaseProvisioner
from tenancy.infrastructure.provisioning_lock import PostgresAdvisoryLock
from tenancy.infrastructure.tenant_migrator import AlembicTenantMigrator

_provisioner: PostgresDatabaseProvisioner | None = None
_router: TenantConnectionRouter | None = None

_lock = threading.Lock()


def get_database_provisioner() -> PostgresDatabaseProvisioner:
    """Get the database provisioner (singleton)."""
    global _provisioner
    if _provisioner is None:
        with _lock:
            if _provisioner is None:
                settings = get_provisioning_settings()
                _provisioner = PostgresDatabaseProvisioner(
                    admin_engine=get_admin_engine(),
                    settings=settings,
                    migrator=AlembicTenantMigrator(
                        db_settings=get_database_settings(),
                        settings=settings,
                    ),
                )
    return _provisioner


def get_connection_router() -> TenantConnectionRouter:
    """Get the connection router (singleton)."""
    global _router
    if _router is None:
        provisioner = get_database_provisioner()
        with _lock:
            if _router is None:
                _router = TenantConnectionRouter(
                    db_settings=get_database_settings(),
                    settings=get_provisioning_settings(),
                    provisioner=provisioner,
                )
    return _router


def get_provisioning_lock() -> PostgresAdvisoryLock:
    """Get an advisory lock bound to the admin engine."""
    return PostgresAdvisoryLock(admin_engine=get_admin_engine())


def get_admin_seeder() -> AdminSeeder:
    """Get the admin principal seeder."""
    return AdminSeeder()


async def close_tenant_connections() -> None:
    """Dispose every tenant engine and reset the singletons.

    Should be called on application shutdown, before the central engines
    are closed.
    """
    global _provisioner, _router

    if _router is not None:
        await _router.close()
        _router = None
    _provisioner = None
