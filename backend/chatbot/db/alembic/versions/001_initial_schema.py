"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- tenant, template, template_version
- chat_session, message, lead
- job (outbox)
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

JSONDocument = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


def upgrade() -> None:
    """Create all tables."""
    # tenant table
    op.create_table(
        "tenant",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("slug", name="uq_tenant_slug"),
    )
    op.create_index("idx_tenant_created", "tenant", ["created_at", "id"])

    # template table
    op.create_table(
        "template",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
        sa.UniqueConstraint("tenant_id", "slug", name="uq_template_tenant_slug"),
    )
    op.create_index("idx_template_tenant_created", "template", ["tenant_id", "created_at", "id"])

    # template_version table
    op.create_table(
        "template_version",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("content", JSONDocument, nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["template_id"], ["template.id"]),
        sa.UniqueConstraint("template_id", "version", name="uq_template_version_number"),
    )
    # At most one published version per template
    op.create_index(
        "uq_template_version_one_published",
        "template_version",
        ["template_id"],
        unique=True,
        postgresql_where=sa.text("status = 'published'"),
        sqlite_where=sa.text("status = 'published'"),
    )

    # chat_session table
    op.create_table(
        "chat_session",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenant.id"]),
    )
    op.create_index(
        "idx_session_tenant_created", "chat_session", ["tenant_id", "created_at", "id"]
    )

    # message table
    op.create_table(
        "message",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("tool_name", sa.Text(), nullable=True),
        sa.Column("tool_data", JSONDocument, nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["session_id"], ["chat_session.id"]),
    )
    op.create_index("idx_message_session_created", "message", ["session_id", "created_at"])

    # lead table
    op.create_table(
        "lead",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("session_id", sa.Uuid(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["session_id"], ["chat_session.id"]),
        sa.UniqueConstraint("session_id", name="uq_lead_session"),
    )

    # job table
    op.create_table(
        "job",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("payload", JSONDocument, nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'queued'")),
        _created_at(),
    )
    op.create_index("idx_job_status_created", "job", ["status", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("job")
    op.drop_table("lead")
    op.drop_table("message")
    op.drop_table("chat_session")
    op.drop_table("template_version")
    op.drop_table("template")
    op.drop_table("tenant")
