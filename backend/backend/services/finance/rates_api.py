from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

import httpx
from sqlalchemy.orm import Session

from app.core.config import EXCHANGE_RATE_API_URL, EXCHANGE_RATE_TIMEOUT
from app.core.errors import ExchangeRateConflict, FinanceError
from app.db.models.finance import RateSource
from services.finance.constants import BASE_CURRENCY, RATE_PRECISION
from services.finance.currency import set_exchange_rate

log = logging.getLogger(__name__)

# ASEAN, then the rest of Asia, then global majors
TRACKED_CURRENCIES = (
    "SGD", "THB", "IDR", "PHP", "VND", "BND",
    "INR", "CNY", "JPY", "KRW", "HKD", "TWD",
    "USD", "EUR", "GBP", "AUD", "NZD", "CAD",
)


class RateFetchError(FinanceError):
    pass


async def fetch_latest_rates(
    client: httpx.AsyncClient | None = None,
    currencies: tuple[str, ...] = TRACKED_CURRENCIES,
) -> dict[str, Decimal]:
    """Latest X->MYR rates from the Frankfurter (ECB) API.

    The API quotes MYR->X, so each rate is inverted and rounded to 6 dp.
    """
    params = {"from": BASE_CURRENCY, "to": ",".join(currencies)}
    owns_client = client is None
    client = client or httpx.AsyncClient(base_url=EXCHANGE_RATE_API_URL, timeout=EXCHANGE_RATE_TIMEOUT)
    try:
        resp = await client.get("/latest", params=params)
        resp.raise_for_status()
        body = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        log.error("exchange rate fetch failed: %s", e)
        raise RateFetchError(f"Failed to fetch exchange rates: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    quoted = body.get("rates") if isinstance(body, dict) else None
    if not quoted:
        raise RateFetchError("Failed to fetch exchange rates: invalid response from exchange rate API")

    out: dict[str, Decimal] = {}
    for currency, value in quoted.items():
        if not value:
            continue
        out[currency] = (Decimal("1") / Decimal(str(value))).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
    return out


def import_rates(db: Session, rates: dict[str, Decimal], on: date | None = None) -> dict[str, Decimal]:
    """Store fetched rates with source ``api``; dates already recorded are left alone."""
    on = on or date.today()
    imported: dict[str, Decimal] = {}
    for currency, rate in rates.items():
        try:
            set_exchange_rate(db, currency, rate, on, RateSource.API.value, commit=False)
        except ExchangeRateConflict:
            log.debug("api rate for %s on %s already recorded", currency, on)
            continue
        imported[currency] = rate
    db.commit()
    log.info("imported %d/%d exchange rates for %s", len(imported), len(rates), on.isoformat())
    return imported
