"""Creates the first administrator inside a tenant database."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.value_objects import AdminPrincipal
from tenancy.infrastructure.models import TenantUserModel
from tenancy.infrastructure.observability import (
    DefaultProvisionerProbe,
    ProvisionerProbe,
)
from tenancy.infrastructure.security import hash_password
from tenancy.ports.provisioning import IAdminSeeder

ADMIN_ROLE = "admin"


class AdminSeeder(IAdminSeeder):
    """Inserts the admin principal into the tenant's users table.

    The caller owns the transaction. Seeding an email that already exists
    is a no-op, so a resumed provisioning run can seed again.
    """

    def __init__(self, probe: ProvisionerProbe | None = None) -> None:
        self._probe = probe or DefaultProvisionerProbe()

    async def seed(self, session: AsyncSession, admin: AdminPrincipal) -> bool:
        """Create the admin unless a user with that email exists.

        Returns:
            True if a user row was inserted
        """
        result = await session.execute(
            select(TenantUserModel.id).where(TenantUserModel.email == admin.email)
        )
        if result.scalar_one_or_none() is not None:
            self._probe.admin_already_present(admin.email)
            return False

        session.add(
            TenantUserModel(
                name=admin.name,
                email=admin.email,
                password=hash_password(admin.password),
                role=ADMIN_ROLE,
            )
        )
        await session.flush()
        self._probe.admin_seeded(admin.email)
        return True
