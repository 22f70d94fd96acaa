"""Session-level PostgreSQL advisory lock keyed by tenant id.

Held on a dedicated admin connection for the whole provisioning run. The
lock is released explicitly. If that fails the connection is invalidated
instead: PostgreSQL drops session-level advisory locks when the session
ends, and a pooled connection never carries a stale lock.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from tenancy.domain.value_objects import TenantId
from tenancy.infrastructure.observability import (
    DefaultProvisionerProbe,
    ProvisionerProbe,
)
from tenancy.ports.exceptions import AlreadyProvisioningError
from tenancy.ports.provisioning import IProvisioningLock

_LOCK_NAMESPACE = "tenancy.provision:"


class PostgresAdvisoryLock(IProvisioningLock):
    """Non-blocking advisory lock: a second holder fails fast."""

    def __init__(
        self,
        admin_engine: AsyncEngine,
        probe: ProvisionerProbe | None = None,
    ) -> None:
        self._engine = admin_engine
        self._probe = probe or DefaultProvisionerProbe()

    @asynccontextmanager
    async def hold(self, tenant_id: TenantId) -> AsyncIterator[None]:
        """Hold the provisioning lock for ``tenant_id``.

        A failed unlock does not replace the outcome of the guarded block;
        the connection is invalidated, which ends the session holding the
        lock.

        Raises:
            AlreadyProvisioningError: If another session holds it
        """
        params = {"key": f"{_LOCK_NAMESPACE}{tenant_id.value}"}

        async with self._engine.connect() as conn:
            acquired = await conn.scalar(
                text("SELECT pg_try_advisory_lock(hashtext(:key))"), params
            )
            if not acquired:
                raise AlreadyProvisioningError(tenant_id.value)

            try:
                yield
            finally:
                try:
                    await conn.execute(
                        text("SELECT pg_advisory_unlock(hashtext(:key))"), params
                    )
                except Exception as e:
                    self._probe.lock_release_failed(tenant_id.value, e)
                    await conn.invalidate()
