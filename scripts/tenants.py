#!/usr/bin/env python3
"""Tenant database operator tool.

Checks that the cluster can host tenant databases and brings existing
tenant databases up to the latest schema revision.

Usage:
    uv run python scripts/tenants.py diagnose
    uv run python scripts/tenants.py migrate

Environment Variables:
    TENANCY_DB_HOST: Database host (default: localhost)
    TENANCY_DB_PORT: Database port (default: 5432)
    TENANCY_DB_DATABASE: Central database name (default: tenancy)
    TENANCY_DB_USERNAME: Database user (default: tenancy)
    TENANCY_DB_PASSWORD: Database password
    TENANCY_PROVISIONING_DATABASE_PREFIX: Tenant database prefix (default: tenant_)
"""

import argparse
import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path

import psycopg2
from psycopg2 import errors, sql
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from ulid import ULID

root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path / "src" / "api"))

from infrastructure.database.dependencies import (  # noqa: E402
    close_database_connections,
    get_write_sessionmaker,
)
from infrastructure.settings import (  # noqa: E402
    DatabaseSettings,
    ProvisioningSettings,
    get_database_settings,
    get_provisioning_settings,
)
from tenancy.application.services import TenantService  # noqa: E402
from tenancy.dependencies.provisioning import (  # noqa: E402
    close_tenant_connections,
    get_connection_router,
    get_database_provisioner,
    get_provisioning_lock,
)
from tenancy.domain.value_objects import PhysicalDatabaseName, TenantId  # noqa: E402
from tenancy.infrastructure.tenant_registry import TenantRegistry  # noqa: E402


console = Console()


@dataclass
class CheckResult:
    """Outcome of one diagnostic check."""

    name: str
    ok: bool
    detail: str


def get_connection(settings: DatabaseSettings, database: str | None = None):
    """Create a database connection from the application settings."""
    return psycopg2.connect(
        host=settings.host,
        port=settings.port,
        database=database or settings.database,
        user=settings.username,
        password=settings.password.get_secret_value(),
    )


def fetch_one(conn, query, params: tuple = ()):
    """Execute a query and return its first row."""
    with conn.cursor() as cursor:
        cursor.execute(query, params)
        return cursor.fetchone()


def fetch_all(conn, query, params: tuple = ()) -> list[tuple]:
    """Execute a query and return every row."""
    with conn.cursor() as cursor:
        cursor.execute(query, params)
        return cursor.fetchall()


def render_configuration(
    db_settings: DatabaseSettings, settings: ProvisioningSettings
) -> Panel:
    """Render the effective configuration."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Setting", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Host", f"{db_settings.host}:{db_settings.port}")
    table.add_row("Central database", db_settings.database)
    table.add_row("User", db_settings.username)
    password_set = bool(db_settings.password.get_secret_value())
    table.add_row("Password", "[green]set[/]" if password_set else "[yellow]empty[/]")
    table.add_row("Database prefix", settings.database_prefix)
    table.add_row("Migration set", settings.migrations_location)
    table.add_row("Admin seed policy", settings.admin_seed_policy.value)

    return Panel(
        table,
        title="[bold]Configuration[/]",
        border_style="blue",
        box=box.ROUNDED,
    )


def check_connectivity(conn) -> CheckResult:
    """Check that the central database answers."""
    (version,) = fetch_one(conn, "SELECT version()")
    return CheckResult("Connectivity", True, version.split(",")[0])


def check_createdb(conn) -> CheckResult:
    """Check that the configured role may create databases."""
    row = fetch_one(
        conn,
        "SELECT rolcreatedb, rolsuper FROM pg_roles WHERE rolname = current_user",
    )
    if row is None:
        return CheckResult("CREATEDB privilege", False, "role not found")
    can_create, is_super = row
    if can_create or is_super:
        return CheckResult(
            "CREATEDB privilege", True, "superuser" if is_super else "granted"
        )
    return CheckResult("CREATEDB privilege", False, "role lacks CREATEDB")


def check_create_drop(conn, prefix: str) -> CheckResult:
    """Create, verify and drop a throwaway database."""
    name = f"{prefix}diagnose_{str(ULID()).lower()}"
    identifier = sql.Identifier(name)

    conn.autocommit = True
    try:
        with conn.cursor() as cursor:
            cursor.execute(sql.SQL("CREATE DATABASE {}").format(identifier))
        exists = fetch_one(
            conn, "SELECT 1 FROM pg_database WHERE datname = %s", (name,)
        )
        if exists is None:
            return CheckResult("Create / drop", False, f"{name} missing after CREATE")
    except psycopg2.Error as e:
        return CheckResult("Create / drop", False, str(e).strip())
    finally:
        with conn.cursor() as cursor:
            cursor.execute(
                sql.SQL("DROP DATABASE IF EXISTS {} WITH (FORCE)").format(identifier)
            )
        conn.autocommit = False

    return CheckResult("Create / drop", True, f"{name} created and dropped")


def find_orphans(conn, prefix: str) -> tuple[list[str], list[str]]:
    """Compare tenant databases on the cluster with the registry.

    Returns:
        (databases without a tenant record, tenants without a database)
    """
    pattern = prefix.replace("_", r"\_") + "%"
    databases = {
        row[0]
        for row in fetch_all(
            conn, "SELECT datname FROM pg_database WHERE datname LIKE %s", (pattern,)
        )
    }
    tenants = {
        PhysicalDatabaseName.for_tenant(prefix, TenantId(value=row[0])).value
        for row in fetch_all(conn, "SELECT id FROM tenants WHERE status != 'deleted'")
    }
    return sorted(databases - tenants), sorted(tenants - databases)


def render_checks(results: list[CheckResult]) -> Panel:
    """Render diagnostic results."""
    table = Table(show_header=True, box=box.SIMPLE, padding=(0, 1), expand=True)
    table.add_column("Check", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Detail", style="dim")

    for result in results:
        status = "[green]✓ ok[/]" if result.ok else "[red]✗ failed[/]"
        table.add_row(result.name, status, result.detail)

    return Panel(
        table,
        title="[bold]Diagnostics[/]",
        border_style="green" if all(r.ok for r in results) else "red",
        box=box.ROUNDED,
    )


def render_orphans(unregistered: list[str], missing: list[str]) -> Panel:
    """Render databases and tenants that do not match up."""
    table = Table(show_header=True, box=box.SIMPLE, padding=(0, 1), expand=True)
    table.add_column("Kind", style="cyan")
    table.add_column("Name")

    for name in unregistered:
        table.add_row("database without tenant", f"[yellow]{name}[/]")
    for name in missing:
        table.add_row("tenant without database", f"[red]{name}[/]")
    if not unregistered and not missing:
        table.add_row("[green]none[/]", "")

    return Panel(
        table,
        title="[bold]Orphans[/]",
        border_style="yellow" if unregistered or missing else "green",
        box=box.ROUNDED,
    )


def diagnose() -> int:
    """Run every diagnostic check and print a report."""
    db_settings = get_database_settings()
    settings = get_provisioning_settings()

    console.print(render_configuration(db_settings, settings))

    try:
        conn = get_connection(db_settings)
    except psycopg2.OperationalError as e:
        console.print(
            render_checks([CheckResult("Connectivity", False, str(e).strip())])
        )
        return 1

    try:
        results = [
            check_connectivity(conn),
            check_createdb(conn),
        ]
        if results[-1].ok:
            results.append(check_create_drop(conn, settings.database_prefix))
        console.print(render_checks(results))

        try:
            unregistered, missing = find_orphans(conn, settings.database_prefix)
        except errors.UndefinedTable:
            conn.rollback()
            console.print(
                "[yellow]Registry tables missing; run 'alembic upgrade head' first.[/]"
            )
        else:
            console.print(render_orphans(unregistered, missing))
    finally:
        conn.close()

    return 0 if all(result.ok for result in results) else 1


async def _migrate_all():
    try:
        async with get_write_sessionmaker()() as session:
            service = TenantService(
                registry=TenantRegistry(session=session),
                session=session,
                provisioner=get_database_provisioner(),
                router=get_connection_router(),
                lock=get_provisioning_lock(),
            )
            return await service.migrate_all()
    finally:
        await close_tenant_connections()
        await close_database_connections()


def migrate() -> int:
    """Bring every active tenant database to the latest revision."""
    with console.status("[cyan]Migrating tenant databases..."):
        outcomes = asyncio.run(_migrate_all())

    table = Table(show_header=True, box=box.SIMPLE, padding=(0, 1), expand=True)
    table.add_column("Tenant", style="cyan")
    table.add_column("Database")
    table.add_column("Revision")
    table.add_column("Status", justify="center")

    for outcome in outcomes:
        if outcome.succeeded:
            status = "[green]✓[/]"
        else:
            status = f"[red]✗ {outcome.error}[/]"
        table.add_row(
            outcome.tenant_id,
            outcome.physical_name,
            outcome.revision or "-",
            status,
        )

    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    console.print(
        Panel(
            table,
            title=f"[bold]Migrated {len(outcomes) - failed}/{len(outcomes)} tenants[/]",
            border_style="red" if failed else "green",
            box=box.ROUNDED,
        )
    )
    return 1 if failed else 0


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Diagnose the tenant database cluster and migrate tenants.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser(
        "diagnose",
        help="Check configuration, privileges, and orphaned tenant databases",
    )
    subparsers.add_parser(
        "migrate",
        help="Bring every active tenant database to the latest schema revision",
    )
    return parser.parse_args()


def main():
    """Main entry point."""
    args = parse_args()

    try:
        if args.command == "diagnose":
            exit_code = diagnose()
        else:
            exit_code = migrate()
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/] {e}")
        import traceback

        console.print(traceback.format_exc(), style="dim red")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
