from __future__ import annotations
from datetime import date
from decimal import Decimal

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.audit import audit, current_actor
from app.core.errors import ExchangeRateConflict, ExchangeRateNotFound, FinanceError
from app.db.session import get_db
from services._crud import dec
from services.finance.constants import BASE_CURRENCY
from services.finance.currency import convert_to_myr, get_exchange_rate, latest_rates, set_exchange_rate
from services.finance.rates_api import RateFetchError, fetch_latest_rates, import_rates

router = APIRouter(prefix="/exchange-rates", tags=["exchange-rates"])


class ManualRateIn(BaseModel):
    from_currency: str = Field(..., max_length=3)
    rate: Decimal
    effective_date: date | None = None
    to_currency: str = Field(default=BASE_CURRENCY, max_length=3)


def get_rates_client() -> httpx.AsyncClient | None:
    """Outbound client for the rate API; None lets the fetcher open its own."""
    return None


def rate_out(r) -> dict:
    return {
        "id": r.id,
        "from_currency": r.from_currency,
        "to_currency": r.to_currency,
        "rate": float(r.rate),
        "effective_date": r.effective_date,
        "source": r.source,
    }


@router.get("")
def list_latest(db: Session = Depends(get_db)):
    return [rate_out(r) for r in latest_rates(db)]


@router.post("", status_code=201)
def create_manual_rate(payload: ManualRateIn, request: Request, db: Session = Depends(get_db)):
    try:
        r = set_exchange_rate(db, payload.from_currency, payload.rate, payload.effective_date, "manual", to_currency=payload.to_currency)
    except ExchangeRateConflict as e:
        raise HTTPException(409, str(e))
    except FinanceError as e:
        raise HTTPException(400, str(e))
    audit(db, actor=current_actor(request), action="exchange_rate.create", entity_type="exchange_rate", entity_id=r.id,
          payload={"pair": f"{r.from_currency}/{r.to_currency}", "rate": r.rate, "effective_date": r.effective_date})
    return rate_out(r)


@router.get("/single")
def single_rate(from_currency: str, to_currency: str = BASE_CURRENCY, on: date | None = None, db: Session = Depends(get_db)):
    try:
        rate = get_exchange_rate(db, from_currency, to_currency, on)
    except ExchangeRateNotFound as e:
        raise HTTPException(404, str(e))
    return {"from_currency": from_currency.upper(), "to_currency": to_currency.upper(), "rate": float(rate)}


@router.get("/convert")
def convert(amount: str, currency: str, db: Session = Depends(get_db)):
    value = dec(amount)
    if value is None:
        raise HTTPException(400, "amount required")
    try:
        rate, amount_myr = convert_to_myr(db, value, currency)
    except ExchangeRateNotFound as e:
        raise HTTPException(404, str(e))
    return {"amount": float(value), "currency": currency.upper(), "rate": float(rate), "amount_myr": float(amount_myr)}


@router.post("/import")
async def import_latest(request: Request, db: Session = Depends(get_db), client: httpx.AsyncClient | None = Depends(get_rates_client)):
    try:
        rates = await fetch_latest_rates(client)
    except RateFetchError as e:
        raise HTTPException(502, str(e))
    imported = import_rates(db, rates)
    audit(db, actor=current_actor(request), action="exchange_rate.import", entity_type="exchange_rate",
          payload={"imported": sorted(imported)})
    return {"fetched": len(rates), "imported": len(imported), "rates": {k: float(v) for k, v in imported.items()}}
