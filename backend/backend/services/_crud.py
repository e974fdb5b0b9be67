from __future__ import annotations
from datetime import date
from decimal import Decimal, InvalidOperation

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.core.tenant import get_tenant_id, scoped


def commit_refresh(db: Session, obj):
    if getattr(obj, "tenant_id", None) is None and hasattr(obj, "tenant_id"):
        obj.tenant_id = get_tenant_id()
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def get_or_404(db: Session, model, obj_id: str, label: str | None = None):
    obj = scoped(db.query(model), model).filter(model.id == obj_id).first()
    if not obj:
        raise HTTPException(404, f"{label or model.__name__} not found")
    return obj


def req(payload: dict, key: str):
    v = payload.get(key)
    if v is None or v == "":
        raise HTTPException(400, f"{key} required")
    return v


def dec(value, field: str = "amount") -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise HTTPException(400, f"{field} must be a number")


def parse_date(value, field: str = "date") -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise HTTPException(400, f"{field} must be an ISO date")


def f(value) -> float | None:
    return float(value) if value is not None else None
