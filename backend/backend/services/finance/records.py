"""Plain snapshots of the rows the finance calculations read.

The calculations never touch ORM objects or sessions: a data source turns
rows (SqlFinanceSource) or JSON bodies (ApiFinanceSource) into these frozen
records first, so the aggregation functions stay pure.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from services.finance.constants import BASE_CURRENCY, ZERO


def to_decimal(value: Any, default: Decimal | None = ZERO) -> Decimal | None:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a number: {value!r}") from None


def to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _pick(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins; the REST layer speaks snake_case, older clients camelCase."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


def _currency(value: Any) -> str:
    return (str(value).strip().upper() if value else "") or BASE_CURRENCY


@dataclass(frozen=True)
class ProjectRecord:
    id: str
    project_code: str
    title: str
    client_name: str | None = None
    status: str = "pre-lim"
    billing_type: str = "hourly"
    project_type: str = "standard"
    parent_project_id: str | None = None
    is_variation_order: bool = False
    planned_hours: Decimal = ZERO

    @classmethod
    def from_row(cls, row) -> "ProjectRecord":
        return cls(
            id=row.id,
            project_code=row.project_code,
            title=row.title,
            client_name=row.client_name,
            status=row.status,
            billing_type=row.billing_type,
            project_type=row.project_type,
            parent_project_id=row.parent_project_id,
            is_variation_order=bool(row.is_variation_order),
            planned_hours=to_decimal(row.planned_hours),
        )

    @classmethod
    def from_payload(cls, p: Mapping[str, Any]) -> "ProjectRecord":
        return cls(
            id=str(p["id"]),
            project_code=_pick(p, "project_code", "projectCode", default=""),
            title=_pick(p, "title", default=""),
            client_name=_pick(p, "client_name", "clientName", "companyName"),
            status=_pick(p, "status", default="pre-lim"),
            billing_type=_pick(p, "billing_type", "billingType", default="hourly"),
            project_type=_pick(p, "project_type", "projectType", default="standard"),
            parent_project_id=_pick(p, "parent_project_id", "parentProjectId"),
            is_variation_order=bool(_pick(p, "is_variation_order", "isVariationOrder", default=False)),
            planned_hours=to_decimal(_pick(p, "planned_hours", "plannedHours")),
        )


@dataclass(frozen=True)
class PurchaseOrderRecord:
    id: str
    po_number: str
    project_code: str
    amount: Decimal
    currency: str = BASE_CURRENCY
    amount_myr: Decimal | None = None
    amount_myr_adjusted: Decimal | None = None
    exchange_rate: Decimal | None = None
    received_date: date | None = None
    status: str = "received"
    is_active: bool = True

    @property
    def effective_amount_myr(self) -> Decimal:
        # adjusted > converted > original amount
        if self.amount_myr_adjusted is not None:
            return self.amount_myr_adjusted
        if self.amount_myr is not None:
            return self.amount_myr
        return self.amount

    @property
    def period_date(self) -> date | None:
        return self.received_date

    @classmethod
    def from_row(cls, row) -> "PurchaseOrderRecord":
        return cls(
            id=row.id,
            po_number=row.po_number,
            project_code=row.project_code,
            amount=to_decimal(row.amount),
            currency=_currency(row.currency),
            amount_myr=to_decimal(row.amount_myr, None),
            amount_myr_adjusted=to_decimal(row.amount_myr_adjusted, None),
            exchange_rate=to_decimal(row.exchange_rate, None),
            received_date=to_date(row.received_date),
            status=row.status,
            is_active=bool(row.is_active),
        )

    @classmethod
    def from_payload(cls, p: Mapping[str, Any]) -> "PurchaseOrderRecord":
        return cls(
            id=str(p["id"]),
            po_number=_pick(p, "po_number", "poNumber", default=""),
            project_code=_pick(p, "project_code", "projectCode", default=""),
            amount=to_decimal(_pick(p, "amount")),
            currency=_currency(_pick(p, "currency")),
            amount_myr=to_decimal(_pick(p, "amount_myr", "amountMyr"), None),
            amount_myr_adjusted=to_decimal(_pick(p, "amount_myr_adjusted", "amountMyrAdjusted"), None),
            exchange_rate=to_decimal(_pick(p, "exchange_rate", "exchangeRate"), None),
            received_date=to_date(_pick(p, "received_date", "receivedDate")),
            status=_pick(p, "status", default="received"),
            is_active=bool(_pick(p, "is_active", "isActive", default=True)),
        )


@dataclass(frozen=True)
class InvoiceRecord:
    id: str
    invoice_number: str
    project_code: str
    amount: Decimal
    currency: str = BASE_CURRENCY
    amount_myr: Decimal | None = None
    invoice_date: date | None = None
    status: str = "draft"
    percentage_of_total: Decimal = ZERO

    @property
    def effective_amount_myr(self) -> Decimal:
        return self.amount_myr if self.amount_myr is not None else self.amount

    @property
    def period_date(self) -> date | None:
        return self.invoice_date

    @classmethod
    def from_row(cls, row) -> "InvoiceRecord":
        return cls(
            id=row.id,
            invoice_number=row.invoice_number,
            project_code=row.project_code,
            amount=to_decimal(row.amount),
            currency=_currency(row.currency),
            amount_myr=to_decimal(row.amount_myr, None),
            invoice_date=to_date(row.invoice_date),
            status=row.status,
            percentage_of_total=to_decimal(row.percentage_of_total),
        )

    @classmethod
    def from_payload(cls, p: Mapping[str, Any]) -> "InvoiceRecord":
        return cls(
            id=str(p["id"]),
            invoice_number=_pick(p, "invoice_number", "invoiceNumber", default=""),
            project_code=_pick(p, "project_code", "projectCode", default=""),
            amount=to_decimal(_pick(p, "amount")),
            currency=_currency(_pick(p, "currency")),
            amount_myr=to_decimal(_pick(p, "amount_myr", "amountMyr"), None),
            invoice_date=to_date(_pick(p, "invoice_date", "invoiceDate")),
            status=_pick(p, "status", default="draft"),
            percentage_of_total=to_decimal(_pick(p, "percentage_of_total", "percentageOfTotal")),
        )


@dataclass(frozen=True)
class IssuedPORecord:
    id: str
    po_number: str
    project_code: str
    amount: Decimal
    currency: str = BASE_CURRENCY
    amount_myr: Decimal | None = None
    issue_date: date | None = None
    status: str = "issued"

    @property
    def effective_amount_myr(self) -> Decimal:
        return self.amount_myr if self.amount_myr is not None else self.amount

    @property
    def period_date(self) -> date | None:
        return self.issue_date

    @classmethod
    def from_row(cls, row) -> "IssuedPORecord":
        return cls(
            id=row.id,
            po_number=row.po_number,
            project_code=row.project_code,
            amount=to_decimal(row.amount),
            currency=_currency(row.currency),
            amount_myr=to_decimal(row.amount_myr, None),
            issue_date=to_date(row.issue_date),
            status=row.status,
        )

    @classmethod
    def from_payload(cls, p: Mapping[str, Any]) -> "IssuedPORecord":
        return cls(
            id=str(p["id"]),
            po_number=_pick(p, "po_number", "poNumber", default=""),
            project_code=_pick(p, "project_code", "projectCode", default=""),
            amount=to_decimal(_pick(p, "amount")),
            currency=_currency(_pick(p, "currency")),
            amount_myr=to_decimal(_pick(p, "amount_myr", "amountMyr"), None),
            issue_date=to_date(_pick(p, "issue_date", "issueDate")),
            status=_pick(p, "status", default="issued"),
        )


@dataclass(frozen=True)
class ReceivedInvoiceRecord:
    id: str
    invoice_number: str
    issued_po_id: str
    amount: Decimal
    currency: str = BASE_CURRENCY
    amount_myr: Decimal | None = None
    invoice_date: date | None = None
    status: str = "pending"

    @property
    def effective_amount_myr(self) -> Decimal:
        return self.amount_myr if self.amount_myr is not None else self.amount

    @property
    def period_date(self) -> date | None:
        return self.invoice_date

    @classmethod
    def from_row(cls, row) -> "ReceivedInvoiceRecord":
        return cls(
            id=row.id,
            invoice_number=row.invoice_number,
            issued_po_id=row.issued_po_id,
            amount=to_decimal(row.amount),
            currency=_currency(row.currency),
            amount_myr=to_decimal(row.amount_myr, None),
            invoice_date=to_date(row.invoice_date),
            status=row.status,
        )

    @classmethod
    def from_payload(cls, p: Mapping[str, Any]) -> "ReceivedInvoiceRecord":
        return cls(
            id=str(p["id"]),
            invoice_number=_pick(p, "invoice_number", "invoiceNumber", default=""),
            issued_po_id=str(_pick(p, "issued_po_id", "issuedPoId", default="")),
            amount=to_decimal(_pick(p, "amount")),
            currency=_currency(_pick(p, "currency")),
            amount_myr=to_decimal(_pick(p, "amount_myr", "amountMyr"), None),
            invoice_date=to_date(_pick(p, "invoice_date", "invoiceDate")),
            status=_pick(p, "status", default="pending"),
        )


@dataclass(frozen=True)
class TimesheetRecord:
    id: str
    engineer_id: str
    project_id: str
    hours: Decimal
    date: date | None = None

    @classmethod
    def from_row(cls, row) -> "TimesheetRecord":
        return cls(
            id=row.id,
            engineer_id=str(row.engineer_id),
            project_id=str(row.project_id),
            hours=to_decimal(row.hours),
            date=to_date(row.date),
        )

    @classmethod
    def from_payload(cls, p: Mapping[str, Any]) -> "TimesheetRecord":
        return cls(
            id=str(p["id"]),
            engineer_id=str(_pick(p, "engineer_id", "engineerId", default="")),
            project_id=str(_pick(p, "project_id", "projectId", default="")),
            hours=to_decimal(_pick(p, "hours")),
            date=to_date(_pick(p, "date")),
        )


@dataclass(frozen=True)
class TeamMemberRecord:
    id: str
    user_id: str | None
    name: str
    role: str = "engineer"
    hourly_rate: Decimal | None = None

    @classmethod
    def from_row(cls, row) -> "TeamMemberRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            role=row.role,
            hourly_rate=to_decimal(row.hourly_rate, None),
        )

    @classmethod
    def from_payload(cls, p: Mapping[str, Any]) -> "TeamMemberRecord":
        user_id = _pick(p, "user_id", "userId")
        return cls(
            id=str(p["id"]),
            user_id=str(user_id) if user_id is not None else None,
            name=_pick(p, "name", default="Unknown"),
            role=_pick(p, "role", default="engineer"),
            hourly_rate=to_decimal(_pick(p, "hourly_rate", "hourlyRate"), None),
        )


# ============= COMPUTED VIEWS =============

@dataclass(frozen=True)
class OriginalCurrencyAmount:
    amount: Decimal
    currency: str
    amount_myr: Decimal


@dataclass(frozen=True)
class EngineerCost:
    engineer_id: str
    engineer_name: str
    role: str
    hours: Decimal
    hourly_rate: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class ProjectFinanceSummary:
    project_id: str
    project_code: str
    project_title: str
    client_name: str
    status: str
    po_received: Decimal
    invoiced: Decimal
    outstanding: Decimal
    po_received_original: tuple[OriginalCurrencyAmount, ...]
    invoiced_original: tuple[OriginalCurrencyAmount, ...]
    man_hour_cost: Decimal
    actual_hours: Decimal
    engineer_breakdown: tuple[EngineerCost, ...]
    vendor_pos_issued: Decimal = ZERO
    vendor_invoices_received: Decimal = ZERO
    vendor_pos_original: tuple[OriginalCurrencyAmount, ...] = ()
    vendor_invoices_original: tuple[OriginalCurrencyAmount, ...] = ()
    is_parent_project: bool = False
    vo_count: int = 0


@dataclass(frozen=True)
class FinanceTotals:
    total_po_received: Decimal = ZERO
    total_invoiced: Decimal = ZERO
    total_outstanding: Decimal = ZERO
    total_man_hour_cost: Decimal = ZERO
    po_received_by_currency: dict[str, Decimal] = field(default_factory=dict)
    invoiced_by_currency: dict[str, Decimal] = field(default_factory=dict)
    total_vendor_pos_issued: Decimal = ZERO
    total_vendor_invoices_received: Decimal = ZERO
    vendor_pos_by_currency: dict[str, Decimal] = field(default_factory=dict)
    vendor_invoices_by_currency: dict[str, Decimal] = field(default_factory=dict)


def as_json(value: Any) -> Any:
    """Dataclasses to plain dicts; Decimal to float, dates to ISO strings."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: as_json(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: as_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [as_json(v) for v in value]
    return value
