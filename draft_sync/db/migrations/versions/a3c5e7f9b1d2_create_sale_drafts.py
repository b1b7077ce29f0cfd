"""Create sale_drafts table

Revision ID: a3c5e7f9b1d2
Revises:
Create Date: 2026-10-19

One row per in-progress sale listing. The partial unique index allows a
single active draft per (owner, draft key) while archived rows accumulate.
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a3c5e7f9b1d2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sale_drafts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("draft_key", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "status",
            sa.Enum(
                "active", "archived",
                name="draft_status",
                create_constraint=True,
            ),
            nullable=False,
            server_default="active",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index("ix_sale_drafts_owner_id", "sale_drafts", ["owner_id"])
    op.create_index("ix_sale_drafts_status", "sale_drafts", ["status"])
    op.create_index(
        "ix_sale_drafts_owner_status_updated",
        "sale_drafts",
        ["owner_id", "status", "updated_at"],
    )
    op.create_index("ix_sale_drafts_expires_at", "sale_drafts", ["expires_at"])

    # At most one active draft per (owner, draft key)
    op.create_index(
        "uq_sale_drafts_owner_key_active",
        "sale_drafts",
        ["owner_id", "draft_key"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )


def downgrade() -> None:
    op.drop_index("uq_sale_drafts_owner_key_active", table_name="sale_drafts")
    op.drop_index("ix_sale_drafts_expires_at", table_name="sale_drafts")
    op.drop_index("ix_sale_drafts_owner_status_updated", table_name="sale_drafts")
    op.drop_index("ix_sale_drafts_status", table_name="sale_drafts")
    op.drop_index("ix_sale_drafts_owner_id", table_name="sale_drafts")

    op.drop_table("sale_drafts")

    # Drop PostgreSQL enum type (no-op for SQLite)
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("DROP TYPE IF EXISTS draft_status")
