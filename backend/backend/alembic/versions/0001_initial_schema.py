"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18T09:00:00Z
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _base():
    return [
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=64), nullable=False, server_default="default"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _updated():
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _money(name, nullable=False):
    return sa.Column(name, sa.Numeric(15, 2), nullable=nullable)


def upgrade():
    op.create_table(
        "sys_audit_log",
        *_base(),
        sa.Column("actor", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
    )
    op.create_index("ix_audit_tenant_time", "sys_audit_log", ["tenant_id", "created_at"])

    op.create_table(
        "company",
        *_base(),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("registration_no", sa.String(length=64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_company_name", "company", ["name"])

    op.create_table(
        "contact",
        *_base(),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("company.id"), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("email", sa.String(length=256), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("position", sa.String(length=128), nullable=True),
    )
    op.create_index("ix_contact_company_id", "contact", ["company_id"])

    op.create_table(
        "team_member",
        *_base(),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("email", sa.String(length=256), nullable=True),
        sa.Column("role", sa.String(length=64), nullable=False, server_default="engineer"),
        sa.Column("department", sa.String(length=128), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_team_member_user_id", "team_member", ["user_id"])

    op.create_table(
        "project",
        *_base(),
        _updated(),
        sa.Column("project_code", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("company_id", sa.String(length=36), sa.ForeignKey("company.id"), nullable=True),
        sa.Column("contact_id", sa.String(length=36), sa.ForeignKey("contact.id"), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pre-lim"),
        sa.Column("billing_type", sa.String(length=16), nullable=False, server_default="hourly"),
        sa.Column("project_type", sa.String(length=32), nullable=False, server_default="standard"),
        sa.Column("parent_project_id", sa.String(length=36), sa.ForeignKey("project.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("is_variation_order", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("vo_number", sa.Integer(), nullable=True),
        sa.Column("planned_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("actual_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("lead_engineer_id", sa.String(length=36), nullable=True),
        sa.Column("manager_id", sa.String(length=36), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("po_received_date", sa.Date(), nullable=True),
        sa.Column("completion_date", sa.Date(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.UniqueConstraint("tenant_id", "project_code", name="uq_project_tenant_code"),
    )
    op.create_index("ix_project_status", "project", ["status"])
    op.create_index("ix_project_parent_type", "project", ["parent_project_id", "project_type"])

    op.create_table(
        "project_hourly_rate",
        *_base(),
        _updated(),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("project.id"), nullable=False),
        sa.Column("team_member_id", sa.String(length=36), sa.ForeignKey("team_member.id"), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.UniqueConstraint("project_id", "team_member_id", name="uq_project_hourly_rate_member"),
    )

    op.create_table(
        "timesheet",
        *_base(),
        sa.Column("engineer_id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("project.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Numeric(6, 2), nullable=False),
        sa.Column("work_category", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_index("ix_timesheet_project_engineer", "timesheet", ["project_id", "engineer_id"])
    op.create_index("ix_timesheet_date", "timesheet", ["date"])

    op.create_table(
        "purchase_order",
        *_base(),
        _updated(),
        sa.Column("po_number", sa.String(length=128), nullable=False),
        sa.Column("po_number_base", sa.String(length=128), nullable=False),
        sa.Column("revision_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("project_code", sa.String(length=50), nullable=False),
        sa.Column("client_name", sa.String(length=256), nullable=True),
        _money("amount"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="MYR"),
        _money("amount_myr", nullable=True),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column("exchange_rate_source", sa.String(length=16), nullable=True),
        _money("amount_myr_adjusted", nullable=True),
        sa.Column("adjustment_reason", sa.Text(), nullable=True),
        sa.Column("adjusted_by", sa.String(length=128), nullable=True),
        sa.Column("adjusted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="received"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("supersedes", sa.String(length=36), nullable=True),
        sa.Column("superseded_by", sa.String(length=36), nullable=True),
        sa.Column("revision_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revision_reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_purchase_order_project_active", "purchase_order", ["project_code", "is_active"])
    op.create_index("ix_purchase_order_po_number_base", "purchase_order", ["po_number_base"])

    op.create_table(
        "invoice",
        *_base(),
        _updated(),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("project_code", sa.String(length=50), nullable=False),
        sa.Column("project_name", sa.String(length=500), nullable=True),
        _money("amount"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="MYR"),
        _money("amount_myr", nullable=True),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("percentage_of_total", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("invoice_sequence", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("cumulative_percentage", sa.Numeric(6, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.UniqueConstraint("tenant_id", "invoice_number", name="uq_invoice_tenant_number"),
    )
    op.create_index("ix_invoice_project_code", "invoice", ["project_code"])

    op.create_table(
        "issued_po",
        *_base(),
        sa.Column("po_number", sa.String(length=64), nullable=False),
        sa.Column("project_code", sa.String(length=50), nullable=False),
        sa.Column("recipient", sa.String(length=256), nullable=False),
        _money("amount"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="MYR"),
        _money("amount_myr", nullable=True),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="issued"),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_index("ix_issued_po_project_code", "issued_po", ["project_code"])

    op.create_table(
        "received_invoice",
        *_base(),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("issued_po_id", sa.String(length=36), sa.ForeignKey("issued_po.id"), nullable=False),
        sa.Column("vendor_name", sa.String(length=256), nullable=False),
        _money("amount"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="MYR"),
        _money("amount_myr", nullable=True),
        sa.Column("exchange_rate", sa.Numeric(18, 6), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
    )
    op.create_index("ix_received_invoice_issued_po_id", "received_invoice", ["issued_po_id"])

    op.create_table(
        "exchange_rate",
        *_base(),
        sa.Column("from_currency", sa.String(length=3), nullable=False),
        sa.Column("to_currency", sa.String(length=3), nullable=False, server_default="MYR"),
        sa.Column("rate", sa.Numeric(18, 6), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("source", sa.String(length=8), nullable=False, server_default="manual"),
        sa.UniqueConstraint("tenant_id", "from_currency", "to_currency", "effective_date", "source", name="uq_exchange_rate_day_source"),
    )
    op.create_index("ix_exchange_rate_lookup", "exchange_rate", ["from_currency", "to_currency", "effective_date"])


def downgrade():
    for table in (
        "exchange_rate", "received_invoice", "issued_po", "invoice", "purchase_order",
        "timesheet", "project_hourly_rate", "project", "team_member", "contact", "company",
        "sys_audit_log",
    ):
        op.drop_table(table)
