from __future__ import annotations


class FinanceError(ValueError):
    """A finance operation was rejected. The message is shown to the user as-is."""


class FinanceConflict(FinanceError):
    """The operation clashes with a record that already exists."""


class NotFound(LookupError):
    pass


class ExchangeRateNotFound(NotFound):
    def __init__(self, from_currency: str, to_currency: str):
        super().__init__(f"No exchange rate found for {from_currency} to {to_currency}")
        self.from_currency = from_currency
        self.to_currency = to_currency


class ExchangeRateConflict(FinanceConflict):
    pass


def error_message(exc: BaseException, default: str) -> str:
    """Collapse any failure into the one human-readable string the UI shows."""
    msg = str(exc).strip()
    return msg or default
