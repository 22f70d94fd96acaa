"""create route_bindings table

Revision ID: b7e29c4f06d1
Revises: 5a0d3e7c19b4
Create Date: 2026-09-27 14:38:51.902446

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "b7e29c4f06d1"
down_revision: Union[str, Sequence[str], None] = "5a0d3e7c19b4"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "route_bindings",
        sa.Column("binding_key", sa.String(length=63), nullable=False),
        sa.Column("tenant_id", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("binding_key", name="pk_route_bindings"),
        sa.ForeignKeyConstraint(
            ["tenant_id"],
            ["tenants.id"],
            name="fk_route_bindings_tenant_id_tenants",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_route_bindings_tenant_id", "route_bindings", ["tenant_id"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_route_bindings_tenant_id", table_name="route_bindings")
    op.drop_table("route_bindings")
