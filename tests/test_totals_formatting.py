from decimal import Decimal

from services.finance.aggregation import calculate_project_summaries
from services.finance.formatting import (
    format_currency_amount,
    format_finance_amount,
    format_myr,
    format_total_with_currency,
)
from services.finance.records import InvoiceRecord, OriginalCurrencyAmount, ProjectRecord, PurchaseOrderRecord
from services.finance.totals import by_currency, calculate_totals, filter_project_summaries

PROJECTS = [
    ProjectRecord(id="p1", project_code="J25001", title="Jetty upgrade", client_name="Acme Marine", status="ongoing"),
    ProjectRecord(id="p2", project_code="J25002", title="Tank farm", client_name="Borneo Oil", status="completed"),
]
POS = [
    PurchaseOrderRecord(id="a", po_number="PO-A", project_code="J25001", amount=Decimal("200"), currency="USD",
                        amount_myr=Decimal("900")),
    PurchaseOrderRecord(id="b", po_number="PO-B", project_code="J25002", amount=Decimal("500")),
    PurchaseOrderRecord(id="c", po_number="PO-C", project_code="J25002", amount=Decimal("700"), is_active=False),
]
INVOICES = [InvoiceRecord(id="i1", invoice_number="INV-1", project_code="J25002", amount=Decimal("800"))]


def test_currency_formats():
    assert format_myr(1000) == "RM 1,000.00"
    assert format_currency_amount(Decimal("1234.5"), "USD") == "US$ 1,234.50"
    assert format_currency_amount(Decimal("5"), "XYZ") == "XYZ 5.00"
    assert format_myr(Decimal("0.005")) == "RM 0.01"


def test_total_card_lists_each_original_currency():
    by_cur = {"USD": Decimal("200"), "MYR": Decimal("500")}
    assert format_total_with_currency(Decimal("1400"), by_cur, True) == "US$ 200.00\nRM 500.00"
    assert format_total_with_currency(Decimal("1400"), by_cur, False) == "RM 1,400.00"
    assert format_total_with_currency(Decimal("500"), {"MYR": Decimal("500")}, True) == "RM 500.00"
    assert format_total_with_currency(Decimal("0"), {}, True) == "RM 0.00"


def test_table_cell_formats():
    usd = OriginalCurrencyAmount(Decimal("100"), "USD", Decimal("450"))
    myr = OriginalCurrencyAmount(Decimal("500"), "MYR", Decimal("500"))
    assert format_finance_amount(Decimal("950"), [usd, myr], True) == "US$ 100.00 + RM 500.00"
    assert format_finance_amount(Decimal("900"), [usd, usd], True) == "US$ 200.00"
    assert format_finance_amount(Decimal("450"), [usd], True) == "US$ 100.00"
    assert format_finance_amount(Decimal("950"), [usd, myr], False) == "RM 950.00"
    assert format_finance_amount(Decimal("0"), [], True) == "RM 0.00"


def test_totals_agree_with_project_rows():
    summaries = calculate_project_summaries(PROJECTS, POS, INVOICES, [])
    totals = calculate_totals(summaries, POS, INVOICES)
    assert totals.total_po_received == Decimal("1400")
    assert totals.total_invoiced == Decimal("800")
    assert totals.total_outstanding == sum(s.outstanding for s in summaries) == Decimal("600")
    assert totals.po_received_by_currency == {"USD": Decimal("200"), "MYR": Decimal("500")}
    assert totals.invoiced_by_currency == {"MYR": Decimal("800")}


def test_by_currency_sums_original_amounts():
    assert by_currency(POS) == {"USD": Decimal("200"), "MYR": Decimal("1200")}


def test_filter_by_status_and_search():
    summaries = calculate_project_summaries(PROJECTS, POS, INVOICES, [])
    assert [s.project_code for s in filter_project_summaries(summaries, "completed")] == ["J25002"]
    assert [s.project_code for s in filter_project_summaries(summaries, "all", "acme")] == ["J25001"]
    assert [s.project_code for s in filter_project_summaries(summaries, "all", " tank ")] == ["J25002"]
    assert filter_project_summaries(summaries, "ongoing", "borneo") == []
    assert len(filter_project_summaries(summaries)) == 2
