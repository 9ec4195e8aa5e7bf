"""Add signing_sessions table.

Revision ID: 0001_add_signing_sessions
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql


# revision identifiers, used by Alembic.
revision = "0001_add_signing_sessions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "signing_sessions",
        sa.Column("token", sa.String(36), primary_key=True, nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("document_base64", sa.Text().with_variant(mysql.LONGTEXT(), "mysql"), nullable=True),
        sa.Column("document_path", sa.String(500), nullable=True),
        sa.Column("fields", sa.JSON, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("signer_email", sa.String(255), nullable=True),
        sa.Column("signed_document_base64", sa.Text().with_variant(mysql.LONGTEXT(), "mysql"), nullable=True),
        sa.Column("signed_document_path", sa.String(500), nullable=True),
        sa.Column("preset_id", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False),
        sa.Column("signed_at", sa.DateTime, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=False),
    )

    op.create_index("ix_signing_sessions_status", "signing_sessions", ["status"])
    op.create_index("ix_signing_sessions_created_at", "signing_sessions", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_signing_sessions_created_at", table_name="signing_sessions")
    op.drop_index("ix_signing_sessions_status", table_name="signing_sessions")
    op.drop_table("signing_sessions")
