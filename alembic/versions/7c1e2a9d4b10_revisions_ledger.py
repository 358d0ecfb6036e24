"""revisions ledger + revisionable pages/content blocks

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-19 10:12:41.208517

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '7c1e2a9d4b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade():
    op.create_table(
        "pages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False),
        sa.Column(
            "status",
            sa.Enum("draft", "published", "archived", name="page_status", native_enum=False, create_constraint=True),
            nullable=False,
        ),
        sa.Column("content", JSONType, nullable=False),
        sa.Column("meta", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("slug", name="uq_pages_slug"),
    )

    op.create_table(
        "content_blocks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("page_id", sa.Integer(), sa.ForeignKey("pages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("data", JSONType, nullable=False),
        sa.Column("settings", JSONType, nullable=False),
        sa.Column("visible", sa.Boolean(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_content_blocks_page_id", "content_blocks", ["page_id"])
    op.create_index("ix_content_blocks_page_position", "content_blocks", ["page_id", "position"])

    op.create_table(
        "revisions",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("actor_id", sa.BigInteger(), nullable=True),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("data", JSONType, nullable=False),
        sa.Column("changes", JSONType, nullable=False),
        sa.Column("metadata", JSONType, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("entity_type", "entity_id", "version", name="uq_revisions_entity_version"),
        sa.CheckConstraint("version >= 1", name="ck_revisions_version_positive"),
    )
    op.create_index("ix_revisions_entity_version", "revisions", ["entity_type", "entity_id", "version"])
    op.create_index("ix_revisions_entity_published", "revisions", ["entity_type", "entity_id", "is_published"])
    op.create_index("ix_revisions_action", "revisions", ["action"])
    op.create_index("ix_revisions_actor", "revisions", ["actor_id"])


def downgrade():
    op.drop_index("ix_revisions_actor", table_name="revisions")
    op.drop_index("ix_revisions_action", table_name="revisions")
    op.drop_index("ix_revisions_entity_published", table_name="revisions")
    op.drop_index("ix_revisions_entity_version", table_name="revisions")
    op.drop_table("revisions")
    op.drop_index("ix_content_blocks_page_position", table_name="content_blocks")
    op.drop_index("ix_content_blocks_page_id", table_name="content_blocks")
    op.drop_table("content_blocks")
    op.drop_table("pages")
