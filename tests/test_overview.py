import asyncio
from datetime import date
from decimal import Decimal

from services.finance.overview import FinanceOverview
from services.finance.records import (
    FinanceTotals,
    InvoiceRecord,
    ProjectRecord,
    PurchaseOrderRecord,
    TeamMemberRecord,
    TimesheetRecord,
)
from services.finance.sources import FinanceDataSource


class FakeSource(FinanceDataSource):
    def __init__(self, fail=None, rate_failures=()):
        self.fail = fail or {}
        self.rate_failures = set(rate_failures)

    async def _give(self, name, value):
        await asyncio.sleep(0)
        if name in self.fail:
            raise self.fail[name]
        return value

    async def projects(self):
        return await self._give("projects", [
            ProjectRecord(id="p1", project_code="J25001", title="Jetty upgrade", client_name="Acme"),
            ProjectRecord(id="p2", project_code="J25002", title="Tank farm", client_name="Borneo Oil"),
        ])

    async def purchase_orders(self, include_inactive=False):
        return await self._give("purchase_orders", [
            PurchaseOrderRecord(id="a", po_number="PO-A", project_code="J25001", amount=Decimal("10000"),
                                received_date=date(2025, 1, 10)),
            PurchaseOrderRecord(id="b", po_number="PO-B", project_code="J25002", amount=Decimal("4000"),
                                received_date=date(2025, 2, 10)),
        ])

    async def invoices(self):
        return await self._give("invoices", [
            InvoiceRecord(id="i1", invoice_number="INV-1", project_code="J25001", amount=Decimal("3000"),
                          invoice_date=date(2025, 2, 20)),
        ])

    async def issued_pos(self):
        return await self._give("issued_pos", [])

    async def received_invoices(self):
        return await self._give("received_invoices", [])

    async def timesheets(self):
        return await self._give("timesheets", [
            TimesheetRecord(id="t1", engineer_id="u1", project_id="p1", hours=Decimal("8")),
        ])

    async def team_members(self):
        return await self._give("team_members", [TeamMemberRecord(id="tm1", user_id="u1", name="Aina")])

    async def project_hourly_rates(self, project_id):
        if project_id in self.rate_failures:
            raise RuntimeError("rates table locked")
        return {"tm1": Decimal("100")} if project_id == "p1" else {}


def _run(overview):
    asyncio.run(overview.refetch())
    return overview


def test_overview_computes_every_view():
    ov = _run(FinanceOverview(FakeSource()))
    assert ov.error is None
    assert not ov.loading
    jetty, tank = ov.project_summaries
    assert (jetty.po_received, jetty.invoiced, jetty.outstanding) == (Decimal("10000"), Decimal("3000"), Decimal("7000"))
    assert jetty.man_hour_cost == Decimal("3500.00")
    assert ov.totals.total_po_received == Decimal("14000")
    assert ov.project_rates == {"p1": {"tm1": Decimal("100")}, "p2": {}}
    assert ov.project_finances[0].base_cost == Decimal("800")
    assert ov.base_cost_breakdowns["p1"][0].hourly_rate == Decimal("100")
    assert ov.unmatched.count == 0


def test_any_collection_failure_leaves_nothing_but_the_error():
    ov = _run(FinanceOverview(FakeSource(fail={"invoices": RuntimeError("invoice service down")})))
    assert ov.error == "invoice service down"
    assert ov.project_summaries == []
    assert ov.project_finances == []
    assert ov.totals == FinanceTotals()
    assert not ov.loading


def test_blank_failure_gets_the_default_message():
    ov = _run(FinanceOverview(FakeSource(fail={"projects": RuntimeError()})))
    assert ov.error == "Failed to load finance data"


def test_failed_rate_lookup_uses_default_rates():
    ov = _run(FinanceOverview(FakeSource(rate_failures={"p1"})))
    assert ov.error is None
    assert "p1" not in ov.project_rates
    # falls through to the default rate, the member has no personal rate
    assert ov.project_finances[0].base_cost == Decimal("600")


def test_period_filter_applies_to_documents():
    ov = _run(FinanceOverview(FakeSource(), year=2025, month=2))
    jetty, tank = ov.project_summaries
    assert jetty.po_received == 0
    assert jetty.invoiced == Decimal("3000")
    assert tank.po_received == Decimal("4000")
    # labour is not period-filtered
    assert jetty.man_hour_cost == Decimal("3500.00")


def test_refetch_clears_a_previous_error():
    source = FakeSource(fail={"timesheets": RuntimeError("timeout")})
    ov = _run(FinanceOverview(source))
    assert ov.error == "timeout"
    source.fail = {}
    _run(ov)
    assert ov.error is None
    assert len(ov.project_summaries) == 2


class StalledSource(FakeSource):
    def __init__(self, **kw):
        super().__init__(**kw)
        self.team_cancelled = False

    async def team_members(self):
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            self.team_cancelled = True
            raise
        return []


def test_failure_cancels_the_other_fetches():
    source = StalledSource(fail={"invoices": RuntimeError("invoice service down")})
    ov = _run(FinanceOverview(source))
    assert ov.error == "invoice service down"
    assert source.team_cancelled


def test_second_failure_does_not_replace_the_first():
    source = FakeSource(fail={"projects": RuntimeError("projects down"), "timesheets": RuntimeError("timesheets down")})
    ov = _run(FinanceOverview(source))
    assert ov.error == "projects down"
