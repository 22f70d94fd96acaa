"""Read access to the users table inside a tenant database."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class TenantUserRecord:
    """A user row from a tenant database, without its password hash."""

    id: int
    name: str
    email: str
    role: str


@runtime_checkable
class ITenantUserDirectory(Protocol):
    """Queries tenant-local users through a tenant-bound session."""

    async def list_users(self, session: AsyncSession) -> list[TenantUserRecord]:
        """Return every user in the database ``session`` is bound to."""
        ...
