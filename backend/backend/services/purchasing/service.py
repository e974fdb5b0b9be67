"""Client purchase orders (received) and vendor purchasing (issued POs, vendor invoices)."""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from app.core.errors import FinanceConflict, FinanceError, NotFound
from app.core.tenant import get_tenant_id, scoped
from app.db.models.finance import IssuedPO, POStatus, PurchaseOrder, ReceivedInvoice
from app.db.models.projects import Project, ProjectStatus, ProjectType
from services.finance.constants import CENT
from services.finance.currency import ConversionResult, Converter, db_converter, normalize
from services.projects.structure import apply_status_dates, sync_container_status

log = logging.getLogger(__name__)

MAX_ADJUSTMENT_PCT = Decimal("50")
MIN_REASON_LENGTH = 10


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _positive(amount: Decimal | None, field: str = "amount") -> Decimal:
    if amount is None or amount <= 0:
        raise FinanceError(f"{field} must be a positive number")
    return amount


def _convert(db: Session, amount: Decimal, currency: str, custom_rate: Decimal | None, converter: Converter | None) -> ConversionResult:
    result = normalize(amount, currency, custom_rate, converter=converter or db_converter(db))
    if result.is_fallback:
        log.warning("stored %s %s at rate 1.0 (%s)", amount, currency, result.error)
    return result


def project_by_code(db: Session, project_code: str) -> Project:
    p = scoped(db.query(Project), Project).filter(Project.project_code == project_code).first()
    if p is None:
        raise NotFound(f"Project {project_code} not found")
    return p


def active_po_for_project(db: Session, project_code: str) -> PurchaseOrder | None:
    q = db.query(PurchaseOrder).filter(PurchaseOrder.project_code == project_code, PurchaseOrder.is_active == True)  # noqa: E712
    return scoped(q, PurchaseOrder).first()


def get_purchase_order(db: Session, po_id: str) -> PurchaseOrder:
    po = scoped(db.query(PurchaseOrder), PurchaseOrder).filter(PurchaseOrder.id == po_id).first()
    if po is None:
        raise NotFound("Purchase order not found")
    return po


# ============= RECEIVED POs =============

def create_purchase_order(
    db: Session,
    *,
    po_number: str,
    project_code: str,
    amount: Decimal,
    received_date: date,
    currency: str = "MYR",
    client_name: str | None = None,
    due_date: date | None = None,
    description: str | None = None,
    status: str = POStatus.RECEIVED.value,
    planned_hours: Decimal | None = None,
    custom_rate: Decimal | None = None,
    converter: Converter | None = None,
) -> tuple[PurchaseOrder, ConversionResult]:
    """Record a client PO. A project carries one active PO at a time; changes go through revisions.

    Receiving the PO moves a pre-lim project to ongoing.
    """
    project = project_by_code(db, project_code)
    existing = active_po_for_project(db, project_code)
    if existing is not None:
        raise FinanceConflict(f"This project already has {existing.po_number}. Please edit the current PO.")
    amount = _positive(amount)
    currency = (currency or "MYR").upper()

    conv = _convert(db, amount, currency, custom_rate, converter)
    po = PurchaseOrder(
        tenant_id=get_tenant_id(),
        po_number=po_number,
        po_number_base=po_number,
        revision_number=1,
        project_code=project_code,
        client_name=client_name or project.client_name,
        amount=amount,
        currency=currency,
        amount_myr=_money(conv.normalized_amount),
        exchange_rate=conv.rate,
        exchange_rate_source=conv.source.value,
        received_date=received_date,
        due_date=due_date,
        description=description,
        status=status,
        is_active=True,
    )
    db.add(po)

    if planned_hours is not None:
        project.planned_hours = planned_hours
    if project.status == ProjectStatus.PRE_LIM.value:
        project.status = ProjectStatus.ONGOING.value
        apply_status_dates(project, project.status, received_date)
        if project.project_type == ProjectType.STRUCTURE_CHILD.value and project.parent_project_id:
            db.flush()
            sync_container_status(db, project.parent_project_id)

    db.commit()
    db.refresh(po)
    log.info("PO %s recorded for %s (%s %s -> MYR %s, %s)", po.po_number, project_code, amount, currency, po.amount_myr, conv.source.value)
    return po, conv


def adjust_myr_amount(db: Session, po_id: str, adjusted_amount: Decimal, reason: str | None, actor: str) -> PurchaseOrder:
    """Override the converted MYR figure (bank charges, withholding tax).

    Large corrections must be a revision instead.
    """
    po = get_purchase_order(db, po_id)
    if not po.is_active:
        raise FinanceError("Cannot adjust inactive PO")
    adjusted_amount = _positive(adjusted_amount, "Adjusted amount")

    base = po.amount_myr if po.amount_myr is not None else po.amount
    if base:
        pct = abs(adjusted_amount - base) / base * 100
        if pct > MAX_ADJUSTMENT_PCT:
            raise FinanceError(f"Adjustment too large ({pct:.1f}%). Please create a revision instead.")

    if not reason or len(reason.strip()) < MIN_REASON_LENGTH:
        raise FinanceError(f"Adjustment reason must be at least {MIN_REASON_LENGTH} characters")

    po.amount_myr_adjusted = _money(adjusted_amount)
    po.adjustment_reason = reason.strip()
    po.adjusted_by = actor
    po.adjusted_at = datetime.utcnow()
    db.commit()
    db.refresh(po)
    return po


def create_revision(
    db: Session,
    po_id: str,
    *,
    amount: Decimal,
    received_date: date,
    revision_reason: str | None,
    currency: str | None = None,
    description: str | None = None,
    custom_rate: Decimal | None = None,
    converter: Converter | None = None,
) -> tuple[PurchaseOrder, ConversionResult]:
    """Supersede an active PO with ``<base> Rev n``; the old row is deactivated."""
    original = get_purchase_order(db, po_id)
    if not original.is_active:
        raise FinanceError("Cannot create revision from inactive PO")
    if original.status == POStatus.PAID.value:
        raise FinanceError("Cannot revise paid PO")
    if not (revision_reason or "").strip():
        raise FinanceError("revision_reason required")
    amount = _positive(amount)
    currency = (currency or original.currency).upper()

    conv = _convert(db, amount, currency, custom_rate, converter)
    n = original.revision_number + 1
    revision = PurchaseOrder(
        tenant_id=original.tenant_id,
        po_number=f"{original.po_number_base} Rev {n}",
        po_number_base=original.po_number_base,
        revision_number=n,
        project_code=original.project_code,
        client_name=original.client_name,
        amount=amount,
        currency=currency,
        amount_myr=_money(conv.normalized_amount),
        exchange_rate=conv.rate,
        exchange_rate_source=conv.source.value,
        received_date=received_date,
        due_date=original.due_date,
        description=description or original.description,
        status=original.status,
        is_active=True,
        supersedes=original.id,
        revision_date=datetime.utcnow(),
        revision_reason=revision_reason.strip(),
    )
    db.add(revision)
    db.flush()

    original.is_active = False
    original.superseded_by = revision.id
    db.commit()
    db.refresh(revision)
    return revision, conv


def revision_history(db: Session, po_number_base: str) -> list[PurchaseOrder]:
    q = db.query(PurchaseOrder).filter(PurchaseOrder.po_number_base == po_number_base)
    return scoped(q, PurchaseOrder).order_by(PurchaseOrder.revision_number).all()


def deactivate_purchase_order(db: Session, po_id: str) -> PurchaseOrder:
    po = get_purchase_order(db, po_id)
    po.is_active = False
    db.commit()
    return po


# ============= VENDOR SIDE =============

def create_issued_po(
    db: Session,
    *,
    po_number: str,
    project_code: str,
    recipient: str,
    amount: Decimal,
    issue_date: date,
    currency: str = "MYR",
    description: str | None = None,
    custom_rate: Decimal | None = None,
    converter: Converter | None = None,
) -> IssuedPO:
    project_by_code(db, project_code)
    amount = _positive(amount)
    currency = (currency or "MYR").upper()
    conv = _convert(db, amount, currency, custom_rate, converter)
    po = IssuedPO(
        tenant_id=get_tenant_id(),
        po_number=po_number,
        project_code=project_code,
        recipient=recipient,
        amount=amount,
        currency=currency,
        amount_myr=_money(conv.normalized_amount),
        exchange_rate=conv.rate,
        issue_date=issue_date,
        description=description,
    )
    db.add(po)
    db.commit()
    db.refresh(po)
    return po


def create_received_invoice(
    db: Session,
    *,
    invoice_number: str,
    issued_po_id: str,
    amount: Decimal,
    invoice_date: date,
    vendor_name: str | None = None,
    currency: str | None = None,
    custom_rate: Decimal | None = None,
    converter: Converter | None = None,
) -> ReceivedInvoice:
    issued = scoped(db.query(IssuedPO), IssuedPO).filter(IssuedPO.id == issued_po_id).first()
    if issued is None:
        raise NotFound("Issued PO not found")
    amount = _positive(amount)
    currency = (currency or issued.currency).upper()
    conv = _convert(db, amount, currency, custom_rate, converter)
    inv = ReceivedInvoice(
        tenant_id=get_tenant_id(),
        invoice_number=invoice_number,
        issued_po_id=issued.id,
        vendor_name=vendor_name or issued.recipient,
        amount=amount,
        currency=currency,
        amount_myr=_money(conv.normalized_amount),
        exchange_rate=conv.rate,
        invoice_date=invoice_date,
    )
    db.add(inv)
    db.commit()
    db.refresh(inv)
    return inv
