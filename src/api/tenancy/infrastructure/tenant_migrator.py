"""Applies the tenant migration set to one physical database.

The migration set is an ordinary Alembic script directory. Revisions are
applied one at a time, each in its own transaction, so a failure reports
the exact revision that broke and leaves earlier revisions applied.
"""

from __future__ import annotations

import asyncio

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from infrastructure.database.engines import create_tenant_engine
from infrastructure.settings import DatabaseSettings, ProvisioningSettings
from tenancy.infrastructure.observability import (
    DefaultProvisionerProbe,
    ProvisionerProbe,
)
from tenancy.ports.exceptions import MigrationFailedError


class AlembicTenantMigrator:
    """Runs the tenant Alembic script directory against tenant databases."""

    def __init__(
        self,
        db_settings: DatabaseSettings,
        settings: ProvisioningSettings,
        probe: ProvisionerProbe | None = None,
    ) -> None:
        self._db_settings = db_settings
        self._location = settings.migrations_location
        self._probe = probe or DefaultProvisionerProbe()
        self._script: ScriptDirectory | None = None

    def _config(self) -> Config:
        cfg = Config()
        cfg.set_main_option("script_location", self._location)
        return cfg

    def _script_directory(self) -> ScriptDirectory:
        if self._script is None:
            self._script = ScriptDirectory.from_config(self._config())
        return self._script

    def head_revision(self) -> str | None:
        """Latest revision in the tenant migration set."""
        return self._script_directory().get_current_head()

    def revisions_after(self, current: str | None) -> list[str]:
        """Revisions newer than ``current``, oldest first.

        The tenant migration set is a single linear history.
        """
        script = self._script_directory()
        chain: list[str] = []
        revision = script.get_revision(script.get_current_head())
        while revision is not None and revision.revision != current:
            chain.append(revision.revision)
            down = revision.down_revision
            revision = script.get_revision(down) if down else None
        chain.reverse()
        return chain

    async def current_revision(self, database: str) -> str | None:
        """Revision recorded in the database's version table, if any."""
        engine = self._engine(database)
        try:
            async with engine.connect() as conn:
                return await conn.run_sync(_read_revision)
        finally:
            await engine.dispose()

    async def upgrade(
        self,
        database: str,
        *,
        timeout_seconds: float | None = None,
    ) -> list[str]:
        """Apply every pending revision in order.

        Args:
            database: Physical database name
            timeout_seconds: Bound on the whole run; exceeding it fails the
                revision in progress

        Returns:
            Revisions applied by this call (empty when already at head)

        Raises:
            MigrationFailedError: On the first failing revision
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout_seconds is None else loop.time() + timeout_seconds

        current = await self.current_revision(database)
        pending = self.revisions_after(current)
        if not pending:
            self._probe.migrations_up_to_date(database, current)
            return []

        applied: list[str] = []
        engine = self._engine(database)
        try:
            for revision in pending:
                remaining = (
                    None if deadline is None else max(deadline - loop.time(), 0.0)
                )
                try:
                    await asyncio.wait_for(
                        self._apply(engine, revision), timeout=remaining
                    )
                except Exception as e:
                    self._probe.migration_step_failed(database, revision, e)
                    raise MigrationFailedError(revision, e, database=database) from e

                applied.append(revision)
                self._probe.migration_step_applied(database, revision)
        finally:
            await engine.dispose()

        return applied

    async def _apply(self, engine: AsyncEngine, revision: str) -> None:
        async with engine.begin() as conn:
            await conn.run_sync(self._upgrade_to, revision)

    def _upgrade_to(self, connection: Connection, revision: str) -> None:
        cfg = self._config()
        cfg.attributes["connection"] = connection
        command.upgrade(cfg, revision)

    def _engine(self, database: str) -> AsyncEngine:
        return create_tenant_engine(self._db_settings, database, pooled=False)


def _read_revision(connection: Connection) -> str | None:
    return MigrationContext.configure(connection).get_current_revision()
