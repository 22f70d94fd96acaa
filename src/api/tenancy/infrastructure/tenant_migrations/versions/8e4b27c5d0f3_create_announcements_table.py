"""create announcements table

Revision ID: 8e4b27c5d0f3
Revises: 3c1f0a9d2b71
Create Date: 2026-09-28 10:21:47.530914

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "8e4b27c5d0f3"
down_revision: Union[str, Sequence[str], None] = "3c1f0a9d2b71"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "announcements",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "status", sa.String(length=20), nullable=False, server_default="draft"
        ),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_announcements"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_announcements_user_id_users",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_announcements_title", "announcements", ["title"])
    op.create_index("ix_announcements_status", "announcements", ["status"])
    # Per-author listings filtered by status
    op.create_index(
        "ix_announcements_user_id_status", "announcements", ["user_id", "status"]
    )
    # Published feed ordered by recency
    op.create_index(
        "ix_announcements_status_created_at",
        "announcements",
        ["status", "created_at"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_announcements_status_created_at", table_name="announcements")
    op.drop_index("ix_announcements_user_id_status", table_name="announcements")
    op.drop_index("ix_announcements_status", table_name="announcements")
    op.drop_index("ix_announcements_title", table_name="announcements")
    op.drop_table("announcements")
