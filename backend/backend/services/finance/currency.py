"""Currency normalisation into the base currency (MYR) and the exchange-rate store."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from sqlalchemy import case
from sqlalchemy.orm import Session

from app.core.errors import ExchangeRateConflict, ExchangeRateNotFound, FinanceError
from app.core.tenant import get_tenant_id, scoped
from app.db.models.finance import ExchangeRate, RateSource
from services.finance.constants import BASE_CURRENCY, CENT, RATE_PRECISION

log = logging.getLogger(__name__)

ONE = Decimal("1")

# (amount, currency) -> (rate, amount in base currency)
Converter = Callable[[Decimal, str], "tuple[Decimal, Decimal]"]


class ConversionSource(str, enum.Enum):
    BASE = "base"          # already in base currency
    CUSTOM = "custom"      # caller supplied the rate
    FETCHED = "fetched"    # converter answered
    FALLBACK = "fallback"  # converter failed, amount passed through at 1.0


@dataclass(frozen=True)
class ConversionResult:
    rate: Decimal
    normalized_amount: Decimal
    source: ConversionSource
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.source is ConversionSource.FALLBACK


def normalize(
    amount: Decimal,
    currency: str,
    custom_rate: Decimal | None = None,
    *,
    converter: Converter,
) -> ConversionResult:
    """Express ``amount`` in the base currency.

    Base currency is returned unchanged at rate 1 (a custom rate is ignored).
    A custom rate is used verbatim with no sanity check. Otherwise ``converter``
    is asked; if it fails for any reason the amount passes through at rate 1
    and the result is marked FALLBACK.
    """
    currency = (currency or BASE_CURRENCY).strip().upper()
    if currency == BASE_CURRENCY:
        return ConversionResult(ONE, amount, ConversionSource.BASE)

    if custom_rate is not None:
        return ConversionResult(custom_rate, amount * custom_rate, ConversionSource.CUSTOM)

    try:
        rate, converted = converter(amount, currency)
    except Exception as exc:
        log.warning("currency conversion failed for %s %s, using 1.0: %s", amount, currency, exc)
        return ConversionResult(ONE, amount, ConversionSource.FALLBACK, error=str(exc) or exc.__class__.__name__)
    return ConversionResult(rate, converted, ConversionSource.FETCHED)


# ============= EXCHANGE RATE STORE =============

def _rate_query(db: Session, from_currency: str, to_currency: str):
    q = db.query(ExchangeRate).filter(
        ExchangeRate.from_currency == from_currency,
        ExchangeRate.to_currency == to_currency,
    )
    return scoped(q, ExchangeRate)


def _manual_first():
    return case((ExchangeRate.source == RateSource.MANUAL.value, 0), else_=1)


def get_exchange_rate(db: Session, from_currency: str, to_currency: str = BASE_CURRENCY, on: date | None = None) -> Decimal:
    """Most recent rate effective on or before ``on``; manual beats api on the same day."""
    from_currency = from_currency.upper()
    to_currency = to_currency.upper()
    if from_currency == to_currency:
        return ONE

    on = on or date.today()
    row = (
        _rate_query(db, from_currency, to_currency)
        .filter(ExchangeRate.effective_date <= on)
        .order_by(ExchangeRate.effective_date.desc(), _manual_first())
        .first()
    )
    if row is None:
        raise ExchangeRateNotFound(from_currency, to_currency)
    return Decimal(row.rate)


def convert_to_myr(db: Session, amount: Decimal, currency: str, on: date | None = None) -> tuple[Decimal, Decimal]:
    rate = get_exchange_rate(db, currency, BASE_CURRENCY, on)
    return rate, (Decimal(amount) * rate).quantize(CENT, rounding=ROUND_HALF_UP)


def db_converter(db: Session) -> Converter:
    """Bind the rate store as a ``normalize`` converter."""
    def _convert(amount: Decimal, currency: str) -> tuple[Decimal, Decimal]:
        return convert_to_myr(db, amount, currency)
    return _convert


def set_exchange_rate(
    db: Session,
    from_currency: str,
    rate: Decimal,
    effective_date: date | None = None,
    source: str = RateSource.MANUAL.value,
    to_currency: str = BASE_CURRENCY,
    commit: bool = True,
) -> ExchangeRate:
    """Record a rate. A (pair, date, source) that already exists is never overwritten."""
    from_currency = (from_currency or "").strip().upper()
    to_currency = (to_currency or BASE_CURRENCY).strip().upper()
    if len(from_currency) != 3:
        raise FinanceError("from_currency must be a 3-letter code")
    if source not in (RateSource.MANUAL.value, RateSource.API.value):
        raise FinanceError(f"Unknown rate source: {source}")
    rate = Decimal(str(rate)).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
    if rate <= 0:
        raise FinanceError("Exchange rate must be positive")
    effective_date = effective_date or date.today()

    exists = (
        _rate_query(db, from_currency, to_currency)
        .filter(ExchangeRate.effective_date == effective_date, ExchangeRate.source == source)
        .first()
    )
    if exists is not None:
        raise ExchangeRateConflict(
            f"{source} rate for {from_currency}/{to_currency} on {effective_date.isoformat()} already recorded"
        )

    row = ExchangeRate(
        tenant_id=get_tenant_id(),
        from_currency=from_currency,
        to_currency=to_currency,
        rate=rate,
        effective_date=effective_date,
        source=source,
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()
    return row


def latest_rates(db: Session, to_currency: str = BASE_CURRENCY) -> list[ExchangeRate]:
    """One row per currency: the latest effective date, manual preferred on ties."""
    rows = (
        scoped(db.query(ExchangeRate), ExchangeRate)
        .filter(ExchangeRate.to_currency == to_currency.upper())
        .order_by(ExchangeRate.from_currency, ExchangeRate.effective_date.desc(), _manual_first())
        .all()
    )
    seen: dict[str, ExchangeRate] = {}
    for r in rows:
        seen.setdefault(r.from_currency, r)
    return list(seen.values())
