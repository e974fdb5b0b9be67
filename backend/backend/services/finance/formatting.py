from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence

from services.finance.constants import BASE_CURRENCY, CENT, CURRENCY_SYMBOLS
from services.finance.records import OriginalCurrencyAmount


def currency_symbol(currency: str) -> str:
    return CURRENCY_SYMBOLS.get(currency, currency)


def _grouped(amount) -> str:
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    return f"{value:,.2f}"


def format_currency_amount(amount, currency: str) -> str:
    """``US$ 1,234.50``; unknown codes are printed as-is."""
    return f"{currency_symbol(currency)} {_grouped(amount)}"


def format_myr(amount) -> str:
    return format_currency_amount(amount, BASE_CURRENCY)


def format_finance_amount(amount_myr, originals: Sequence[OriginalCurrencyAmount], show_original: bool) -> str:
    """One table cell: MYR, or the original amounts joined inline with `` + ``."""
    if not show_original or not originals:
        return format_myr(amount_myr)

    if len(originals) == 1:
        return format_currency_amount(originals[0].amount, originals[0].currency)

    currencies = {o.currency for o in originals}
    if len(currencies) == 1:
        return format_currency_amount(sum(o.amount for o in originals), originals[0].currency)

    return " + ".join(format_currency_amount(o.amount, o.currency) for o in originals)


def format_total_with_currency(total_myr, by_currency: Mapping[str, Decimal], show_original: bool) -> str:
    """One summary card: MYR total, or one line per original currency."""
    if not show_original or not by_currency or list(by_currency) == [BASE_CURRENCY]:
        return format_myr(total_myr)
    return "\n".join(format_currency_amount(amount, currency) for currency, amount in by_currency.items())
