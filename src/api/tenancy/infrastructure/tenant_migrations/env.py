"""Alembic environment for the schema carried by every tenant database.

Tenant databases are migrated by the provisioner, which hands this
environment an open connection through ``config.attributes["connection"]``.
Offline mode renders SQL against ``sqlalchemy.url`` for review.
"""

from alembic import context

from infrastructure.database.models import TenantSchemaBase
import tenancy.infrastructure.models  # noqa: F401  (registers tenant tables)

config = context.config

target_metadata = TenantSchemaBase.metadata


def run_migrations_offline() -> None:
    """Emit SQL for the tenant schema without a live connection."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations on the connection supplied by the caller."""
    connection = config.attributes.get("connection")
    if connection is None:
        raise RuntimeError(
            "Tenant migrations need a connection in config.attributes['connection']"
        )

    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
