from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.audit import audit, current_actor
from app.core.errors import FinanceConflict, FinanceError, NotFound
from app.core.tenant import scoped
from app.db.models.finance import Invoice
from app.db.session import get_db
from services._crud import dec, f, get_or_404, parse_date, req
from services.invoicing import service

router = APIRouter(prefix="/invoices", tags=["invoices"])


def invoice_out(inv: Invoice) -> dict:
    return {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "project_code": inv.project_code,
        "project_name": inv.project_name,
        "amount": f(inv.amount),
        "currency": inv.currency,
        "amount_myr": f(inv.amount_myr),
        "exchange_rate": f(inv.exchange_rate),
        "invoice_date": inv.invoice_date,
        "due_date": inv.due_date,
        "percentage_of_total": f(inv.percentage_of_total),
        "invoice_sequence": inv.invoice_sequence,
        "cumulative_percentage": f(inv.cumulative_percentage),
        "status": inv.status,
        "remark": inv.remark,
    }


@router.get("")
def list_invoices(db: Session = Depends(get_db), project_code: str | None = None, status: str | None = None, limit: int | None = None):
    q = scoped(db.query(Invoice), Invoice)
    if project_code:
        q = q.filter(Invoice.project_code == project_code)
    if status:
        q = q.filter(Invoice.status == status)
    return [invoice_out(i) for i in q.order_by(Invoice.invoice_date.desc()).limit(limit).all()]


@router.get("/{invoice_id}")
def get_invoice(invoice_id: str, db: Session = Depends(get_db)):
    return invoice_out(get_or_404(db, Invoice, invoice_id, "Invoice"))


@router.post("", status_code=201)
def create_invoice(payload: dict, request: Request, db: Session = Depends(get_db)):
    try:
        inv, completed = service.create_invoice(
            db,
            invoice_number=req(payload, "invoice_number"),
            project_code=req(payload, "project_code"),
            amount=dec(req(payload, "amount")),
            invoice_date=parse_date(req(payload, "invoice_date"), "invoice_date"),
            percentage_of_total=dec(payload.get("percentage_of_total", 0), "percentage_of_total"),
            currency=payload.get("currency") or "MYR",
            due_date=parse_date(payload.get("due_date"), "due_date"),
            status=payload.get("status") or "draft",
            remark=payload.get("remark"),
            custom_rate=dec(payload.get("custom_exchange_rate"), "custom_exchange_rate"),
        )
    except NotFound as e:
        raise HTTPException(404, str(e))
    except FinanceConflict as e:
        raise HTTPException(409, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=current_actor(request), action="invoice.create", entity_type="invoice", entity_id=inv.id,
          payload={"invoice_number": inv.invoice_number, "amount": inv.amount, "currency": inv.currency,
                   "cumulative_percentage": inv.cumulative_percentage})
    return {**invoice_out(inv), "project_completed": completed}


@router.patch("/{invoice_id}/status")
def update_invoice_status(invoice_id: str, payload: dict, request: Request, db: Session = Depends(get_db)):
    try:
        inv = service.set_invoice_status(db, invoice_id, req(payload, "status"))
    except NotFound as e:
        raise HTTPException(404, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=current_actor(request), action="invoice.status", entity_type="invoice", entity_id=inv.id,
          payload={"status": inv.status})
    return invoice_out(inv)
