"""Document and version tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates:
- document (owner, entity type, display title)
- document_version (append-only snapshots, one current row per document)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create document tables."""
    # document table
    op.create_table(
        "document",
        sa.Column("document_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("idx_document_owner", "document", ["owner_id"])

    # document_version table
    op.create_table(
        "document_version",
        sa.Column("version_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("document_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("full_content", postgresql.JSONB(), nullable=False),
        sa.Column("version_type", sa.Text(), nullable=False),
        sa.Column("base_version_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_current", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.document_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["base_version_id"], ["document_version.version_id"]),
        sa.UniqueConstraint("document_id", "version_number", name="uq_version_document_number"),
        sa.CheckConstraint(
            "version_type IN ('user_edit', 'ai_edit', 'restore')", name="ck_version_type"
        ),
    )

    # At most one current version per document
    op.create_index(
        "uq_version_document_current",
        "document_version",
        ["document_id"],
        unique=True,
        postgresql_where=sa.text("is_current"),
    )


def downgrade() -> None:
    """Drop document tables."""
    op.drop_index("uq_version_document_current", table_name="document_version")
    op.drop_table("document_version")
    op.drop_index("idx_document_owner", table_name="document")
    op.drop_table("document")
