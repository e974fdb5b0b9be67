"""
MODULE: PROJECT FINANCE
Purchase orders received from clients, invoices issued to clients,
purchase orders issued to vendors, vendor invoices, and exchange rates.
Every document keeps its original amount/currency plus the MYR figure
it was converted to when recorded.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.models.common import HasCreatedAt, HasId, HasTenant, HasUpdatedAt

__all__ = [
    "POStatus", "InvoiceStatus", "RateSource",
    "PurchaseOrder", "Invoice", "IssuedPO", "ReceivedInvoice", "ExchangeRate",
]


class POStatus(str, enum.Enum):
    RECEIVED = "received"
    IN_PROGRESS = "in-progress"
    INVOICED = "invoiced"
    PAID = "paid"
    CANCELLED = "cancelled"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class RateSource(str, enum.Enum):
    MANUAL = "manual"
    API = "api"


# ============= RECEIVED (CLIENT) PURCHASE ORDERS =============

class PurchaseOrder(Base, HasId, HasCreatedAt, HasUpdatedAt, HasTenant):
    """PO received from a client. Revisions deactivate their predecessor."""
    __tablename__ = "purchase_order"

    po_number: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    po_number_base: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    revision_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Joined to Project.project_code by value
    project_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    client_name: Mapped[str | None] = mapped_column(String(256), nullable=True)

    # Amounts
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MYR", nullable=False)
    amount_myr: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    exchange_rate_source: Mapped[str | None] = mapped_column(String(16), nullable=True)  # base|custom|fetched|fallback

    # Manual MYR adjustment (bank fees, taxes); overrides amount_myr everywhere downstream
    amount_myr_adjusted: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    adjustment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    adjusted_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    adjusted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Dates
    received_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default=POStatus.RECEIVED.value, nullable=False)

    # Revision chain (soft delete via is_active)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    supersedes: Mapped[str | None] = mapped_column(String(36), nullable=True)
    superseded_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    revision_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def effective_amount_myr(self) -> Decimal:
        if self.amount_myr_adjusted is not None:
            return self.amount_myr_adjusted
        if self.amount_myr is not None:
            return self.amount_myr
        return self.amount


Index("ix_purchase_order_project_active", PurchaseOrder.project_code, PurchaseOrder.is_active)


# ============= CLIENT INVOICES =============

class Invoice(Base, HasId, HasCreatedAt, HasUpdatedAt, HasTenant):
    __tablename__ = "invoice"

    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    project_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    project_name: Mapped[str | None] = mapped_column(String(500), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MYR", nullable=False)
    amount_myr: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Progress billing
    percentage_of_total: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    invoice_sequence: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    cumulative_percentage: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=0, nullable=False)

    status: Mapped[str] = mapped_column(String(16), default=InvoiceStatus.DRAFT.value, nullable=False, index=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoice_tenant_number"),
    )


# ============= VENDOR SIDE =============

class IssuedPO(Base, HasId, HasCreatedAt, HasTenant):
    """PO issued to a vendor / subcontractor"""
    __tablename__ = "issued_po"

    po_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    project_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    recipient: Mapped[str] = mapped_column(String(256), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MYR", nullable=False)
    amount_myr: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)

    issue_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), default="issued", nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class ReceivedInvoice(Base, HasId, HasCreatedAt, HasTenant):
    """Invoice received from a vendor against an issued PO"""
    __tablename__ = "received_invoice"

    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    issued_po_id: Mapped[str] = mapped_column(ForeignKey("issued_po.id"), nullable=False, index=True)
    vendor_name: Mapped[str] = mapped_column(String(256), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="MYR", nullable=False)
    amount_myr: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    exchange_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)


# ============= EXCHANGE RATES =============

class ExchangeRate(Base, HasId, HasCreatedAt, HasTenant):
    """Rate to convert 1 unit of from_currency into to_currency on effective_date.

    Rows are never updated; a correction is a new manual row.
    """
    __tablename__ = "exchange_rate"

    from_currency: Mapped[str] = mapped_column(String(3), nullable=False, index=True)
    to_currency: Mapped[str] = mapped_column(String(3), default="MYR", nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    source: Mapped[str] = mapped_column(String(8), default=RateSource.MANUAL.value, nullable=False)  # manual|api

    __table_args__ = (
        UniqueConstraint("tenant_id", "from_currency", "to_currency", "effective_date", "source", name="uq_exchange_rate_day_source"),
        Index("ix_exchange_rate_lookup", "from_currency", "to_currency", "effective_date"),
    )
