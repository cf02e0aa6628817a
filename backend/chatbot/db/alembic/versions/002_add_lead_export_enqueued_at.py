"""Add export_enqueued_at to lead.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add export_enqueued_at column to lead table."""
    op.add_column(
        "lead",
        sa.Column("export_enqueued_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Remove export_enqueued_at column from lead table."""
    op.drop_column("lead", "export_enqueued_at")
