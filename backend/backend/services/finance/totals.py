from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence, TypeVar

from services.finance.constants import ZERO
from services.finance.records import (
    FinanceTotals,
    InvoiceRecord,
    IssuedPORecord,
    ProjectFinanceSummary,
    PurchaseOrderRecord,
    ReceivedInvoiceRecord,
)

S = TypeVar("S")


def by_currency(docs: Iterable) -> dict[str, Decimal]:
    """Original (unconverted) amounts summed per currency, first-seen order."""
    out: dict[str, Decimal] = {}
    for d in docs:
        out[d.currency] = out.get(d.currency, ZERO) + d.amount
    return out


def calculate_totals(
    summaries: Sequence[ProjectFinanceSummary],
    purchase_orders: Iterable[PurchaseOrderRecord],
    invoices: Iterable[InvoiceRecord],
    issued_pos: Iterable[IssuedPORecord] = (),
    received_invoices: Iterable[ReceivedInvoiceRecord] = (),
) -> FinanceTotals:
    total_po = sum((s.po_received for s in summaries), ZERO)
    total_invoiced = sum((s.invoiced for s in summaries), ZERO)
    return FinanceTotals(
        total_po_received=total_po,
        total_invoiced=total_invoiced,
        # from the totals, not summed per project
        total_outstanding=total_po - total_invoiced,
        total_man_hour_cost=sum((s.man_hour_cost for s in summaries), ZERO),
        po_received_by_currency=by_currency(po for po in purchase_orders if po.is_active),
        invoiced_by_currency=by_currency(invoices),
        total_vendor_pos_issued=sum((s.vendor_pos_issued for s in summaries), ZERO),
        total_vendor_invoices_received=sum((s.vendor_invoices_received for s in summaries), ZERO),
        vendor_pos_by_currency=by_currency(issued_pos),
        vendor_invoices_by_currency=by_currency(received_invoices),
    )


def filter_project_summaries(summaries: Iterable[S], status: str = "all", query: str = "") -> list[S]:
    """Status ``all`` or exact match, then a case-insensitive search on code, title and client.

    Works on anything with project_code/project_title/client_name/status,
    so the profitability rows filter the same way.
    """
    out = list(summaries)
    if status and status != "all":
        out = [s for s in out if s.status == status]
    q = (query or "").strip().lower()
    if q:
        out = [
            s for s in out
            if q in s.project_code.lower() or q in s.project_title.lower() or q in (s.client_name or "").lower()
        ]
    return out
