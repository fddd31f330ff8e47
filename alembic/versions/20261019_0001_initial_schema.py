"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role = postgresql.ENUM("admin", "super_admin", name="user_role", create_type=False)
document_type = postgresql.ENUM(
    "HS_AWARD", "LEASE", "POLICY", "OTHER", "SERVICE_AGREEMENT", name="document_type", create_type=False
)


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _fk(name: str, target: str, *, nullable: bool) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), sa.ForeignKey(target), nullable=nullable)


def upgrade() -> None:
    user_role.create(op.get_bind(), checkfirst=True)
    document_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("role", user_role, nullable=False, server_default="admin"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    for table_name in ("counties", "service_types"):
        op.create_table(
            table_name,
            _uuid_pk(),
            sa.Column("name", sa.String(length=255), nullable=False, unique=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        )

    for table_name in ("service_statuses", "payment_methods", "expense_categories"):
        op.create_table(
            table_name,
            _uuid_pk(),
            sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        )

    op.create_table(
        "clients",
        _uuid_pk(),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("county_case_number", sa.String(length=128), nullable=True),
        _fk("county_id", "counties.id", nullable=True),
        _fk("service_type_id", "service_types.id", nullable=True),
        _fk("service_status_id", "service_statuses.id", nullable=True),
        sa.Column("status_override", sa.Text(), nullable=True),
        _fk("status_override_by", "users.id", nullable=True),
        sa.Column("status_override_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_clients_county_id", "clients", ["county_id"])
    op.create_index("ix_clients_service_type_id", "clients", ["service_type_id"])

    op.create_table(
        "client_histories",
        _uuid_pk(),
        _fk("client_id", "clients.id", nullable=False),
        sa.Column("field_changed", sa.String(length=128), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        _fk("changed_by", "users.id", nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_client_histories_client_id", "client_histories", ["client_id"])

    op.create_table(
        "client_documents",
        _uuid_pk(),
        _fk("client_id", "clients.id", nullable=False),
        sa.Column("document_type", document_type, nullable=False),
        sa.Column("file_url", sa.String(length=2000), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        _fk("uploaded_by", "users.id", nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_client_documents_client_type", "client_documents", ["client_id", "document_type"])

    op.create_table(
        "client_months",
        _uuid_pk(),
        _fk("client_id", "clients.id", nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("manually_unlocked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_client_months_month_range"),
    )
    op.create_unique_constraint("uq_client_months_client_period", "client_months", ["client_id", "year", "month"])
    op.create_index("ix_client_months_period", "client_months", ["year", "month"])

    op.create_table(
        "housing_supports",
        _uuid_pk(),
        _fk("client_month_id", "client_months.id", nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("received_date", sa.Date(), nullable=True),
        _fk("created_by", "users.id", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_unique_constraint("uq_housing_supports_client_month", "housing_supports", ["client_month_id"])

    op.create_table(
        "rent_payments",
        _uuid_pk(),
        _fk("client_month_id", "client_months.id", nullable=False),
        sa.Column("expected_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("paid_date", sa.Date(), nullable=True),
        _fk("payment_method_id", "payment_methods.id", nullable=True),
        sa.Column("is_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_unique_constraint("uq_rent_payments_client_month", "rent_payments", ["client_month_id"])

    op.create_table(
        "lth_payments",
        _uuid_pk(),
        _fk("client_month_id", "client_months.id", nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("received_date", sa.Date(), nullable=True),
    )
    op.create_index("ix_lth_payments_client_month_id", "lth_payments", ["client_month_id"])

    op.create_table(
        "expenses",
        _uuid_pk(),
        _fk("client_month_id", "client_months.id", nullable=False),
        _fk("category_id", "expense_categories.id", nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_expenses_client_month_id", "expenses", ["client_month_id"])

    op.create_table(
        "expense_documents",
        _uuid_pk(),
        _fk("expense_id", "expenses.id", nullable=False),
        _fk("client_id", "clients.id", nullable=False),
        _fk("client_month_id", "client_months.id", nullable=False),
        sa.Column("file_url", sa.String(length=2000), nullable=False),
        _fk("uploaded_by", "users.id", nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_expense_documents_expense_id", "expense_documents", ["expense_id"])

    op.create_table(
        "pool_funds",
        _uuid_pk(),
        _fk("client_month_id", "client_months.id", nullable=False),
        sa.Column("hs_amount", sa.Numeric(12, 2), nullable=False, server_default="0.00"),
        sa.Column("rent_amount", sa.Numeric(12, 2), nullable=False, server_default="0.00"),
        sa.Column("expense_amount", sa.Numeric(12, 2), nullable=False, server_default="0.00"),
        sa.Column("pool_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("calculated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_unique_constraint("uq_pool_funds_client_month", "pool_funds", ["client_month_id"])

    op.create_table(
        "audit_logs",
        _uuid_pk(),
        _fk("user_id", "users.id", nullable=True),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("entity", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("old_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("new_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    op.create_table(
        "activities",
        _uuid_pk(),
        sa.Column("message", sa.Text(), nullable=False),
        _fk("related_client_id", "clients.id", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activities_created_at", "activities", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_activities_created_at", table_name="activities")
    op.drop_table("activities")

    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_entity_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_constraint("uq_pool_funds_client_month", "pool_funds", type_="unique")
    op.drop_table("pool_funds")

    op.drop_index("ix_expense_documents_expense_id", table_name="expense_documents")
    op.drop_table("expense_documents")

    op.drop_index("ix_expenses_client_month_id", table_name="expenses")
    op.drop_table("expenses")

    op.drop_index("ix_lth_payments_client_month_id", table_name="lth_payments")
    op.drop_table("lth_payments")

    op.drop_constraint("uq_rent_payments_client_month", "rent_payments", type_="unique")
    op.drop_table("rent_payments")

    op.drop_constraint("uq_housing_supports_client_month", "housing_supports", type_="unique")
    op.drop_table("housing_supports")

    op.drop_index("ix_client_months_period", table_name="client_months")
    op.drop_constraint("uq_client_months_client_period", "client_months", type_="unique")
    op.drop_table("client_months")

    op.drop_index("ix_client_documents_client_type", table_name="client_documents")
    op.drop_table("client_documents")

    op.drop_index("ix_client_histories_client_id", table_name="client_histories")
    op.drop_table("client_histories")

    op.drop_index("ix_clients_service_type_id", table_name="clients")
    op.drop_index("ix_clients_county_id", table_name="clients")
    op.drop_table("clients")

    for table_name in ("expense_categories", "payment_methods", "service_statuses", "service_types", "counties"):
        op.drop_table(table_name)

    op.drop_table("users")

    document_type.drop(op.get_bind(), checkfirst=True)
    user_role.drop(op.get_bind(), checkfirst=True)
