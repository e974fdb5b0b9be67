from __future__ import annotations
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.audit import audit, current_actor
from app.core.errors import FinanceConflict, FinanceError, NotFound
from app.core.tenant import scoped
from app.db.models.finance import IssuedPO, PurchaseOrder, ReceivedInvoice
from app.db.session import get_db
from services._crud import dec, f, parse_date, req
from services.purchasing import service

router = APIRouter(tags=["purchasing"])


class AdjustMyrIn(BaseModel):
    amount_myr_adjusted: Decimal
    reason: str = Field(default="", max_length=2000)


def po_out(po: PurchaseOrder) -> dict:
    return {
        "id": po.id,
        "po_number": po.po_number,
        "po_number_base": po.po_number_base,
        "revision_number": po.revision_number,
        "project_code": po.project_code,
        "client_name": po.client_name,
        "amount": f(po.amount),
        "currency": po.currency,
        "amount_myr": f(po.amount_myr),
        "amount_myr_adjusted": f(po.amount_myr_adjusted),
        "effective_amount_myr": f(po.effective_amount_myr),
        "exchange_rate": f(po.exchange_rate),
        "exchange_rate_source": po.exchange_rate_source,
        "adjustment_reason": po.adjustment_reason,
        "adjusted_by": po.adjusted_by,
        "received_date": po.received_date,
        "due_date": po.due_date,
        "description": po.description,
        "status": po.status,
        "is_active": po.is_active,
        "supersedes": po.supersedes,
        "superseded_by": po.superseded_by,
        "revision_reason": po.revision_reason,
    }


def issued_po_out(po: IssuedPO) -> dict:
    return {
        "id": po.id,
        "po_number": po.po_number,
        "project_code": po.project_code,
        "recipient": po.recipient,
        "amount": f(po.amount),
        "currency": po.currency,
        "amount_myr": f(po.amount_myr),
        "exchange_rate": f(po.exchange_rate),
        "issue_date": po.issue_date,
        "status": po.status,
    }


def received_invoice_out(inv: ReceivedInvoice) -> dict:
    return {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "issued_po_id": inv.issued_po_id,
        "vendor_name": inv.vendor_name,
        "amount": f(inv.amount),
        "currency": inv.currency,
        "amount_myr": f(inv.amount_myr),
        "exchange_rate": f(inv.exchange_rate),
        "invoice_date": inv.invoice_date,
        "status": inv.status,
    }


# ============= RECEIVED POs =============

@router.get("/purchase-orders")
def list_purchase_orders(
    db: Session = Depends(get_db),
    include_inactive: bool = False,
    project_code: str | None = None,
    limit: int | None = None,
):
    q = scoped(db.query(PurchaseOrder), PurchaseOrder)
    if not include_inactive:
        q = q.filter(PurchaseOrder.is_active == True)  # noqa: E712
    if project_code:
        q = q.filter(PurchaseOrder.project_code == project_code)
    return [po_out(po) for po in q.order_by(PurchaseOrder.received_date.desc()).limit(limit).all()]


@router.get("/purchase-orders/{po_id}")
def get_purchase_order(po_id: str, db: Session = Depends(get_db)):
    try:
        return po_out(service.get_purchase_order(db, po_id))
    except NotFound as e:
        raise HTTPException(404, str(e))


@router.post("/purchase-orders", status_code=201)
def create_purchase_order(payload: dict, request: Request, db: Session = Depends(get_db)):
    try:
        po, conv = service.create_purchase_order(
            db,
            po_number=req(payload, "po_number"),
            project_code=req(payload, "project_code"),
            amount=dec(req(payload, "amount")),
            received_date=parse_date(req(payload, "received_date"), "received_date"),
            currency=payload.get("currency") or "MYR",
            client_name=payload.get("client_name"),
            due_date=parse_date(payload.get("due_date"), "due_date"),
            description=payload.get("description"),
            status=payload.get("status") or "received",
            planned_hours=dec(payload.get("planned_hours"), "planned_hours"),
            custom_rate=dec(payload.get("custom_exchange_rate"), "custom_exchange_rate"),
        )
    except NotFound as e:
        raise HTTPException(404, str(e))
    except FinanceConflict as e:
        raise HTTPException(409, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=current_actor(request), action="purchase_order.create", entity_type="purchase_order", entity_id=po.id,
          payload={"po_number": po.po_number, "amount": po.amount, "currency": po.currency, "rate_source": conv.source.value})
    return po_out(po)


@router.post("/purchase-orders/{po_id}/adjust-myr")
def adjust_myr(po_id: str, payload: AdjustMyrIn, request: Request, db: Session = Depends(get_db)):
    actor = current_actor(request)
    try:
        po = service.adjust_myr_amount(db, po_id, payload.amount_myr_adjusted, payload.reason, actor)
    except NotFound as e:
        raise HTTPException(404, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=actor, action="purchase_order.adjust_myr", entity_type="purchase_order", entity_id=po.id,
          payload={"amount_myr": po.amount_myr, "amount_myr_adjusted": po.amount_myr_adjusted, "reason": po.adjustment_reason})
    return po_out(po)


@router.get("/purchase-orders/{po_id}/revisions")
def list_revisions(po_id: str, db: Session = Depends(get_db)):
    try:
        po = service.get_purchase_order(db, po_id)
    except NotFound as e:
        raise HTTPException(404, str(e))
    return [po_out(r) for r in service.revision_history(db, po.po_number_base)]


@router.post("/purchase-orders/{po_id}/revisions", status_code=201)
def create_revision(po_id: str, payload: dict, request: Request, db: Session = Depends(get_db)):
    try:
        rev, conv = service.create_revision(
            db,
            po_id,
            amount=dec(req(payload, "amount")),
            received_date=parse_date(req(payload, "received_date"), "received_date"),
            revision_reason=payload.get("revision_reason"),
            currency=payload.get("currency"),
            description=payload.get("description"),
            custom_rate=dec(payload.get("custom_exchange_rate"), "custom_exchange_rate"),
        )
    except NotFound as e:
        raise HTTPException(404, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=current_actor(request), action="purchase_order.revise", entity_type="purchase_order", entity_id=rev.id,
          payload={"supersedes": rev.supersedes, "po_number": rev.po_number, "rate_source": conv.source.value})
    return po_out(rev)


@router.delete("/purchase-orders/{po_id}")
def delete_purchase_order(po_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        po = service.deactivate_purchase_order(db, po_id)
    except NotFound as e:
        raise HTTPException(404, str(e))
    audit(db, actor=current_actor(request), action="purchase_order.deactivate", entity_type="purchase_order", entity_id=po.id)
    return {"ok": True}


# ============= VENDOR SIDE =============

@router.get("/issued-pos")
def list_issued_pos(db: Session = Depends(get_db), project_code: str | None = None, limit: int | None = None):
    q = scoped(db.query(IssuedPO), IssuedPO)
    if project_code:
        q = q.filter(IssuedPO.project_code == project_code)
    return [issued_po_out(po) for po in q.order_by(IssuedPO.issue_date.desc()).limit(limit).all()]


@router.post("/issued-pos", status_code=201)
def create_issued_po(payload: dict, request: Request, db: Session = Depends(get_db)):
    try:
        po = service.create_issued_po(
            db,
            po_number=req(payload, "po_number"),
            project_code=req(payload, "project_code"),
            recipient=req(payload, "recipient"),
            amount=dec(req(payload, "amount")),
            issue_date=parse_date(req(payload, "issue_date"), "issue_date"),
            currency=payload.get("currency") or "MYR",
            description=payload.get("description"),
            custom_rate=dec(payload.get("custom_exchange_rate"), "custom_exchange_rate"),
        )
    except NotFound as e:
        raise HTTPException(404, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=current_actor(request), action="issued_po.create", entity_type="issued_po", entity_id=po.id,
          payload={"po_number": po.po_number, "amount": po.amount, "currency": po.currency})
    return issued_po_out(po)


@router.get("/received-invoices")
def list_received_invoices(db: Session = Depends(get_db), issued_po_id: str | None = None, limit: int | None = None):
    q = scoped(db.query(ReceivedInvoice), ReceivedInvoice)
    if issued_po_id:
        q = q.filter(ReceivedInvoice.issued_po_id == issued_po_id)
    return [received_invoice_out(inv) for inv in q.order_by(ReceivedInvoice.invoice_date.desc()).limit(limit).all()]


@router.post("/received-invoices", status_code=201)
def create_received_invoice(payload: dict, request: Request, db: Session = Depends(get_db)):
    try:
        inv = service.create_received_invoice(
            db,
            invoice_number=req(payload, "invoice_number"),
            issued_po_id=req(payload, "issued_po_id"),
            amount=dec(req(payload, "amount")),
            invoice_date=parse_date(req(payload, "invoice_date"), "invoice_date"),
            vendor_name=payload.get("vendor_name"),
            currency=payload.get("currency"),
            custom_rate=dec(payload.get("custom_exchange_rate"), "custom_exchange_rate"),
        )
    except NotFound as e:
        raise HTTPException(404, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=current_actor(request), action="received_invoice.create", entity_type="received_invoice", entity_id=inv.id,
          payload={"invoice_number": inv.invoice_number, "amount": inv.amount, "currency": inv.currency})
    return received_invoice_out(inv)
