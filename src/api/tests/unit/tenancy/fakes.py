"""In-memory implementations of the tenancy ports for offline tests.

Each fake keeps its state in plain dicts and sets so tests can assert on
what a run left behind. Failures are injected per operation through the
``fail_*`` attributes.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from tenancy.domain.aggregates import RouteBinding, Tenant
from tenancy.domain.value_objects import (
    AdminPrincipal,
    BindingKey,
    PhysicalDatabaseName,
    TenantId,
)
from tenancy.ports.exceptions import (
    AlreadyProvisioningError,
    BindingConflictError,
    DuplicateIdentityError,
    MigrationFailedError,
    ProvisioningFailedError,
    TenantNotFoundError,
    UnresolvedTenantError,
)
from tenancy.ports.provisioning import HasPhysicalDatabase

T = TypeVar("T")

HEAD_REVISION = "8e4b27c5d0f3"


class FakeSession:
    """Stands in for the central AsyncSession: ``begin()`` is a no-op block."""

    def __init__(self) -> None:
        self.transactions = 0

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[None]:
        self.transactions += 1
        yield


class InMemoryTenantRegistry:
    """ITenantRegistry over dicts, enforcing the same uniqueness rules."""

    def __init__(self) -> None:
        self.tenants: dict[str, Tenant] = {}
        self.bindings: dict[str, str] = {}
        self.fail_on: dict[str, BaseException] = {}

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    async def register(self, tenant: Tenant) -> TenantId:
        self._maybe_fail("register")
        if tenant.id.value in self.tenants:
            raise DuplicateIdentityError("duplicate id", field="id")
        if any(t.contact_email == tenant.contact_email for t in self.tenants.values()):
            raise DuplicateIdentityError("duplicate email", field="contact_email")
        self.tenants[tenant.id.value] = replace(tenant)
        return tenant.id

    async def bind(self, tenant_id: TenantId, binding_key: BindingKey) -> None:
        self._maybe_fail("bind")
        if tenant_id.value not in self.tenants:
            raise TenantNotFoundError(tenant_id.value)
        owner = self.bindings.get(binding_key.value)
        if owner is not None and owner != tenant_id.value:
            raise BindingConflictError(binding_key.value, existing_tenant_id=owner)
        self.bindings[binding_key.value] = tenant_id.value

    async def mark_active(self, tenant_id: TenantId) -> None:
        self._maybe_fail("mark_active")
        self._get(tenant_id).mark_active()

    async def mark_deleted(self, tenant_id: TenantId) -> None:
        self._maybe_fail("mark_deleted")
        self._get(tenant_id).mark_deleted()

    async def resolve(self, binding_key: BindingKey) -> Tenant | None:
        owner = self.bindings.get(binding_key.value)
        if owner is None:
            return None
        return replace(self.tenants[owner])

    async def get_by_id(self, tenant_id: TenantId) -> Tenant | None:
        self._maybe_fail("get_by_id")
        tenant = self.tenants.get(tenant_id.value)
        return None if tenant is None else replace(tenant)

    async def list_all(self) -> list[Tenant]:
        return [replace(t) for t in self.tenants.values()]

    async def list_bindings(self, tenant_id: TenantId) -> list[RouteBinding]:
        return [
            RouteBinding(binding_key=BindingKey(value=key), tenant_id=tenant_id)
            for key, owner in self.bindings.items()
            if owner == tenant_id.value
        ]

    async def remove(self, tenant_id: TenantId) -> bool:
        self._maybe_fail("remove")
        self.bindings = {
            key: owner
            for key, owner in self.bindings.items()
            if owner != tenant_id.value
        }
        return self.tenants.pop(tenant_id.value, None) is not None

    def _get(self, tenant_id: TenantId) -> Tenant:
        tenant = self.tenants.get(tenant_id.value)
        if tenant is None:
            raise TenantNotFoundError(tenant_id.value)
        return tenant


class FakeProvisioner:
    """IDatabaseProvisioner over a set of database names."""

    def __init__(self, prefix: str = "tenant_") -> None:
        self.prefix = prefix
        self.databases: set[str] = set()
        self.revisions: dict[str, str] = {}
        self.created: list[str] = []
        self.dropped: list[str] = []
        self.fail_create: BaseException | None = None
        self.fail_migrate: BaseException | None = None
        self.fail_drop: BaseException | None = None

    def physical_name(self, tenant_id: TenantId) -> PhysicalDatabaseName:
        return PhysicalDatabaseName.for_tenant(self.prefix, tenant_id)

    async def create(self, tenant_id: TenantId) -> PhysicalDatabaseName:
        name = self.physical_name(tenant_id)
        if self.fail_create is not None:
            raise self.fail_create
        # Yield so concurrent runs interleave
        await asyncio.sleep(0)
        if name.value not in self.databases:
            self.databases.add(name.value)
            self.created.append(name.value)
        return name

    async def exists(self, name: PhysicalDatabaseName) -> bool:
        return name.value in self.databases

    async def migrate(self, name: PhysicalDatabaseName) -> None:
        if name.value not in self.databases:
            raise MigrationFailedError(
                HEAD_REVISION, RuntimeError("database missing"), name.value
            )
        if self.fail_migrate is not None:
            raise self.fail_migrate
        await asyncio.sleep(0)
        self.revisions[name.value] = HEAD_REVISION

    async def current_revision(self, name: PhysicalDatabaseName) -> str | None:
        return self.revisions.get(name.value)

    def head_revision(self) -> str | None:
        return HEAD_REVISION

    async def drop(self, name: PhysicalDatabaseName) -> None:
        if self.fail_drop is not None:
            raise self.fail_drop
        self.databases.discard(name.value)
        self.revisions.pop(name.value, None)
        self.dropped.append(name.value)


@dataclass
class FakeTenantSession:
    """Session handed out by FakeConnectionRouter.

    ``rows`` is the user table of exactly one tenant database.
    """

    database: str
    rows: list[dict] = field(default_factory=list)
    commits: int = 0
    closed: bool = False

    async def commit(self) -> None:
        self.commits += 1


class FakeConnectionRouter:
    """IConnectionRouter keeping one row list per physical database."""

    def __init__(self, provisioner: FakeProvisioner) -> None:
        self._provisioner = provisioner
        self.tables: dict[str, list[dict]] = {}
        self.released: list[str] = []
        self.open_sessions = 0
        self.fail_release: BaseException | None = None

    @asynccontextmanager
    async def session(
        self, tenant: HasPhysicalDatabase
    ) -> AsyncIterator[FakeTenantSession]:
        tenant_key = tenant.database_key()
        name = self._provisioner.physical_name(TenantId(value=tenant_key))
        if not await self._provisioner.exists(name):
            raise UnresolvedTenantError(tenant_key, name.value)

        session = FakeTenantSession(
            database=name.value,
            rows=self.tables.setdefault(name.value, []),
        )
        self.open_sessions += 1
        try:
            yield session
        finally:
            session.closed = True
            self.open_sessions -= 1

    async def with_tenant(
        self,
        tenant: HasPhysicalDatabase,
        fn: Callable[[FakeTenantSession], Awaitable[T]],
    ) -> T:
        async with self.session(tenant) as session:
            return await fn(session)

    async def release(self, name: PhysicalDatabaseName) -> None:
        if self.fail_release is not None:
            raise self.fail_release
        self.released.append(name.value)
        self.tables.pop(name.value, None)

    async def close(self) -> None:
        self.tables.clear()


class FakeProvisioningLock:
    """IProvisioningLock over an in-process set of held tenant ids."""

    def __init__(self) -> None:
        self.held: set[str] = set()
        self.acquisitions: list[str] = []

    @asynccontextmanager
    async def hold(self, tenant_id: TenantId) -> AsyncIterator[None]:
        if tenant_id.value in self.held:
            raise AlreadyProvisioningError(tenant_id.value)
        self.held.add(tenant_id.value)
        self.acquisitions.append(tenant_id.value)
        try:
            yield
        finally:
            self.held.discard(tenant_id.value)


class FakeAdminSeeder:
    """IAdminSeeder writing into the fake tenant session's rows."""

    def __init__(self) -> None:
        self.fail_with: BaseException | None = None

    async def seed(self, session: FakeTenantSession, admin: AdminPrincipal) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        if any(row["email"] == admin.email for row in session.rows):
            return False
        session.rows.append(
            {
                "id": len(session.rows) + 1,
                "name": admin.name,
                "email": admin.email,
                "role": "admin",
            }
        )
        return True


def drop_failure() -> ProvisioningFailedError:
    """The error a real provisioner raises when DROP DATABASE fails."""
    return ProvisioningFailedError("could not drop database")
