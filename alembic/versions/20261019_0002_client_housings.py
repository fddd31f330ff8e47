"""client housing and landlord details

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "client_housings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("landlord_name", sa.String(length=255), nullable=True),
        sa.Column("landlord_phone", sa.String(length=64), nullable=True),
        sa.Column("landlord_email", sa.String(length=320), nullable=True),
        sa.Column("landlord_address", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("client_id", name="uq_client_housings_client"),
    )


def downgrade() -> None:
    op.drop_table("client_housings")
