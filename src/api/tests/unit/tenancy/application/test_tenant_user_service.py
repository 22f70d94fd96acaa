"""Unit tests for TenantUserService routing through the connection router."""

import pytest

from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.services import TenantUserService
from tenancy.ports.exceptions import UnresolvedTenantError
from tenancy.ports.tenant_users import TenantUserRecord


class _RowDirectory:
    """Reads the fake tenant session's rows as user records."""

    async def list_users(self, session):
        return [
            TenantUserRecord(
                id=row["id"], name=row["name"], email=row["email"], role=row["role"]
            )
            for row in session.rows
        ]


@pytest.fixture
def user_service(router) -> TenantUserService:
    return TenantUserService(router=router, directory=_RowDirectory())


def _context(tenant_id: str) -> TenantContext:
    return TenantContext(tenant_id=tenant_id, binding_key=tenant_id, source="path")


class TestListUsers:
    """Tests for TenantUserService.list_users()."""

    @pytest.mark.asyncio
    async def test_reads_only_own_tenant_database(
        self, user_service, provisioner, router
    ):
        provisioner.databases.update({"tenant_acme", "tenant_globex"})
        router.tables["tenant_acme"] = [
            {"id": 1, "name": "Ada", "email": "ada@acme.test", "role": "admin"}
        ]
        router.tables["tenant_globex"] = [
            {"id": 1, "name": "Hank", "email": "hank@globex.test", "role": "admin"}
        ]

        acme_users = await user_service.list_users(_context("acme"))
        globex_users = await user_service.list_users(_context("globex"))

        assert [u.email for u in acme_users] == ["ada@acme.test"]
        assert [u.email for u in globex_users] == ["hank@globex.test"]
        assert router.open_sessions == 0

    @pytest.mark.asyncio
    async def test_missing_database_is_unresolved(self, user_service):
        with pytest.raises(UnresolvedTenantError):
            await user_service.list_users(_context("acme"))
