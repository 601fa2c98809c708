"""Documents and highlights tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Key changes:
- Create documents table (owner-scoped, storage key written once)
- Create highlights table with per-document creation order (seq)
- CHECK constraints for page, offsets, non-empty text and color palette

Column types are generic (UUID, timezone-aware DateTime) so the same
revision applies to PostgreSQL and SQLite.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # Step 1: documents
    # ==========================================================================
    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=True),
        sa.Column(
            "content_type",
            sa.Text(),
            nullable=False,
            server_default="application/pdf",
        ),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("next_highlight_seq", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("size_bytes >= 0", name="ck_documents_size_nonnegative"),
    )
    op.create_index(
        "ix_documents_owner_created", "documents", ["owner_user_id", "created_at"]
    )

    # ==========================================================================
    # Step 2: highlights
    # ==========================================================================
    op.create_table(
        "highlights",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "document_id",
            sa.Uuid(),
            sa.ForeignKey("documents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("color", sa.Text(), nullable=False, server_default="yellow"),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("page", sa.Integer(), nullable=False),
        sa.Column("start_offset", sa.Integer(), nullable=False),
        sa.Column("end_offset", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("length(text) > 0", name="ck_highlights_text_nonempty"),
        sa.CheckConstraint("page >= 1", name="ck_highlights_page_positive"),
        sa.CheckConstraint(
            "start_offset >= 0 AND end_offset >= 0",
            name="ck_highlights_offsets_nonnegative",
        ),
        sa.CheckConstraint(
            "color IN ('yellow','blue','green','pink','orange')",
            name="ck_highlights_color",
        ),
        sa.UniqueConstraint("document_id", "seq", name="uix_highlights_document_seq"),
    )


def downgrade() -> None:
    op.drop_table("highlights")
    op.drop_index("ix_documents_owner_created", table_name="documents")
    op.drop_table("documents")
