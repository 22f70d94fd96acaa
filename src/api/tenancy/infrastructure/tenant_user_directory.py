"""SQLAlchemy implementation of ITenantUserDirectory."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.infrastructure.models import TenantUserModel
from tenancy.ports.tenant_users import ITenantUserDirectory, TenantUserRecord


class TenantUserDirectory(ITenantUserDirectory):
    """Lists users of whichever tenant database the session is bound to."""

    async def list_users(self, session: AsyncSession) -> list[TenantUserRecord]:
        """Return users ordered by id."""
        result = await session.execute(
            select(TenantUserModel).order_by(TenantUserModel.id)
        )
        return [
            TenantUserRecord(
                id=model.id,
                name=model.name,
                email=model.email,
                role=model.role,
            )
            for model in result.scalars().all()
        ]
