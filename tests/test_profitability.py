from decimal import Decimal

from services.finance.profitability import (
    base_cost_breakdowns,
    calculate_project_finances,
    cost_breakdown,
    resolve_hourly_rate,
    summary_stats,
)
from services.finance.records import (
    InvoiceRecord,
    ProjectRecord,
    PurchaseOrderRecord,
    TeamMemberRecord,
    TimesheetRecord,
)

SENIOR = TeamMemberRecord(id="tm1", user_id="u1", name="Aina", role="lead", hourly_rate=Decimal("120"))
JUNIOR = TeamMemberRecord(id="tm2", user_id="u2", name="Hafiz")
MEMBERS = [SENIOR, JUNIOR]

JETTY = ProjectRecord(id="p1", project_code="J25001", title="Jetty upgrade", planned_hours=Decimal("40"))
SURVEY = ProjectRecord(id="p2", project_code="J25002", title="Survey")

TIMESHEETS = [
    TimesheetRecord(id="t1", engineer_id="u1", project_id="p1", hours=Decimal("10")),
    TimesheetRecord(id="t2", engineer_id="u2", project_id="p1", hours=Decimal("4")),
    TimesheetRecord(id="t3", engineer_id="u3", project_id="p1", hours=Decimal("2")),
]
RATES = {"p1": {"tm1": Decimal("150")}}


def test_rate_resolution_order():
    assert resolve_hourly_rate("u1", SENIOR, {"tm1": Decimal("150")}) == Decimal("150")
    assert resolve_hourly_rate("u2", JUNIOR, {"u2": Decimal("90")}) == Decimal("90")
    assert resolve_hourly_rate("u1", SENIOR, {}) == Decimal("120")
    assert resolve_hourly_rate("u2", JUNIOR, None) == Decimal("75")
    assert resolve_hourly_rate("u3", None, {}) == Decimal("75")


def test_breakdown_per_engineer():
    rows = base_cost_breakdowns([JETTY, SURVEY], TIMESHEETS, MEMBERS, RATES)
    assert rows["p2"] == []
    assert [(r.engineer_name, r.hourly_rate, r.total_cost) for r in rows["p1"]] == [
        ("Aina", Decimal("150"), Decimal("1500")),
        ("Hafiz", Decimal("75"), Decimal("300")),
        ("Unknown", Decimal("75"), Decimal("150")),
    ]


def test_project_profit_and_margin():
    pos = [
        PurchaseOrderRecord(id="a", po_number="PO-A", project_code="J25001", amount=Decimal("5000")),
        PurchaseOrderRecord(id="b", po_number="PO-B", project_code="J25001", amount=Decimal("9000"), is_active=False),
    ]
    invoices = [
        InvoiceRecord(id="i1", invoice_number="INV-1", project_code="J25001", amount=Decimal("2000"), status="paid"),
        InvoiceRecord(id="i2", invoice_number="INV-2", project_code="J25001", amount=Decimal("1000"), status="sent"),
    ]
    jetty, survey = calculate_project_finances([JETTY, SURVEY], TIMESHEETS, MEMBERS, RATES, pos, invoices)

    assert jetty.total_revenue == Decimal("5000")
    assert jetty.base_cost == jetty.total_cost == Decimal("1950")
    assert jetty.gross_profit == Decimal("3050")
    assert jetty.profit_margin == Decimal("61.00")
    assert jetty.average_hourly_rate == Decimal("121.88")
    assert (jetty.invoiced, jetty.paid) == (Decimal("3000"), Decimal("2000"))
    assert jetty.budgeted_hours == Decimal("40")
    assert jetty.client_name == "Unknown Client"

    assert survey.total_revenue == survey.profit_margin == survey.average_hourly_rate == 0

    stats = summary_stats([jetty, survey])
    assert stats.total_revenue == Decimal("5000")
    assert stats.total_profit == Decimal("3050")
    assert stats.avg_margin == Decimal("30.50")

    [category] = cost_breakdown([jetty, survey])
    assert (category.category, category.amount, category.percentage) == ("Base Cost", Decimal("1950"), Decimal("100"))


def test_no_cost_means_no_categories():
    assert cost_breakdown(calculate_project_finances([SURVEY], [], [], {})) == []
    assert summary_stats([]).avg_margin == 0
