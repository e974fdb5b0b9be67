from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from app.core.errors import FinanceConflict, FinanceError, NotFound
from app.core.tenant import get_tenant_id, scoped
from app.db.models.finance import Invoice, InvoiceStatus
from app.db.models.projects import BillingType, ProjectStatus, ProjectType
from services.finance.constants import CENT, ZERO
from services.finance.currency import Converter, db_converter, normalize
from services.projects.structure import apply_status_dates, sync_container_status
from services.purchasing.service import project_by_code

log = logging.getLogger(__name__)

FULL = Decimal("100")


def project_invoices(db: Session, project_code: str) -> list[Invoice]:
    q = db.query(Invoice).filter(Invoice.project_code == project_code)
    return scoped(q, Invoice).order_by(Invoice.invoice_sequence).all()


def create_invoice(
    db: Session,
    *,
    invoice_number: str,
    project_code: str,
    amount: Decimal,
    invoice_date: date,
    percentage_of_total: Decimal,
    currency: str = "MYR",
    due_date: date | None = None,
    status: str = InvoiceStatus.DRAFT.value,
    remark: str | None = None,
    custom_rate: Decimal | None = None,
    converter: Converter | None = None,
) -> tuple[Invoice, bool]:
    """Issue a progress invoice. Returns the invoice and whether it completed the project.

    Percentages are checked here, at entry: an hourly project cannot be
    billed past 100 %. Reaching 100 % completes the project.
    """
    project = project_by_code(db, project_code)
    if amount is None or amount <= 0:
        raise FinanceError("amount must be a positive number")
    if percentage_of_total is None or percentage_of_total < 0:
        raise FinanceError("percentage_of_total must be zero or more")

    dup = scoped(db.query(Invoice), Invoice).filter(Invoice.invoice_number == invoice_number).first()
    if dup is not None:
        raise FinanceConflict("Invoice with this number already exists")

    previous = project_invoices(db, project_code)
    cumulative = sum((Decimal(i.percentage_of_total) for i in previous), ZERO) + percentage_of_total
    if project.billing_type != BillingType.LUMP_SUM.value and cumulative > FULL:
        raise FinanceError(f"Invoices for {project_code} would total {cumulative}% of the project (limit 100%)")

    currency = (currency or "MYR").upper()
    conv = normalize(amount, currency, custom_rate, converter=converter or db_converter(db))
    inv = Invoice(
        tenant_id=get_tenant_id(),
        invoice_number=invoice_number,
        project_code=project_code,
        project_name=project.title,
        amount=amount,
        currency=currency,
        amount_myr=conv.normalized_amount.quantize(CENT, rounding=ROUND_HALF_UP),
        exchange_rate=conv.rate,
        invoice_date=invoice_date,
        due_date=due_date,
        percentage_of_total=percentage_of_total,
        invoice_sequence=len(previous) + 1,
        cumulative_percentage=cumulative,
        status=status,
        remark=remark,
    )
    db.add(inv)

    completed = False
    if cumulative >= FULL and project.status != ProjectStatus.COMPLETED.value:
        project.status = ProjectStatus.COMPLETED.value
        apply_status_dates(project, project.status, invoice_date)
        completed = True
        log.info("project %s fully invoiced, marked completed", project_code)
        if project.project_type == ProjectType.STRUCTURE_CHILD.value and project.parent_project_id:
            db.flush()
            sync_container_status(db, project.parent_project_id)

    db.commit()
    db.refresh(inv)
    return inv, completed


def set_invoice_status(db: Session, invoice_id: str, status: str) -> Invoice:
    if status not in {s.value for s in InvoiceStatus}:
        raise FinanceError(f"Unknown invoice status: {status}")
    inv = scoped(db.query(Invoice), Invoice).filter(Invoice.id == invoice_id).first()
    if inv is None:
        raise NotFound("Invoice not found")
    inv.status = status
    db.commit()
    db.refresh(inv)
    return inv
