from __future__ import annotations
from decimal import Decimal

from app.core.config import BASE_CURRENCY

# Finance overview (cash tracking): RM 3,500/day over an 8 hour day
FIXED_HOURLY_RATE = Decimal("437.50")

# Profitability view: used when neither a project override nor a personal rate exists
DEFAULT_PROFIT_HOURLY_RATE = Decimal("75")

ZERO = Decimal("0")
CENT = Decimal("0.01")
RATE_PRECISION = Decimal("0.000001")

CURRENCY_SYMBOLS: dict[str, str] = {
    "MYR": "RM",
    "USD": "US$",
    "SGD": "S$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "AUD": "A$",
    "THB": "฿",
    "IDR": "Rp",
}

__all__ = [
    "BASE_CURRENCY", "FIXED_HOURLY_RATE", "DEFAULT_PROFIT_HOURLY_RATE",
    "ZERO", "CENT", "RATE_PRECISION", "CURRENCY_SYMBOLS",
]
