import asyncio
from datetime import date
from decimal import Decimal

import httpx
import pytest

import main
from app.db.models.finance import Invoice
from services.finance.overview import FinanceOverview
from services.finance.sources import ApiFinanceSource

BODIES = {
    "/projects": {"data": [{"id": "p1", "projectCode": "J25001", "title": "Jetty upgrade", "clientName": "Acme"}]},
    "/purchase-orders": [{"id": "a", "poNumber": "PO-A", "projectCode": "J25001", "amount": "1000", "currency": "usd",
                          "amountMyr": 4500, "receivedDate": "2025-03-01T00:00:00"}],
    "/invoices": [{"id": "i1", "invoice_number": "INV-1", "project_code": "J25001", "amount": 1500}],
    "/issued-pos": [],
    "/received-invoices": [],
    "/timesheets": [{"id": "t1", "engineerId": "u1", "projectId": "p1", "hours": "2.5", "date": "2025-03-03"}],
    "/team": [{"id": "tm1", "userId": "u1", "name": "Aina", "hourlyRate": None}],
    "/projects/p1/hourly-rates": [{"teamMemberId": "tm1", "hourlyRate": 120}],
}


def _source(bodies):
    def handler(request):
        if request.url.path not in bodies:
            return httpx.Response(404, json={"detail": "Not Found"})
        return httpx.Response(200, json=bodies[request.url.path])
    return ApiFinanceSource(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://erp.test"))


def test_api_source_reads_both_key_styles():
    async def run():
        source = _source(BODIES)
        try:
            return await source.purchase_orders(), await source.timesheets(), await source.project_hourly_rates("p1")
        finally:
            await source.client.aclose()

    [po], [ts], rates = asyncio.run(run())
    assert (po.currency, po.amount_myr, po.received_date.isoformat()) == ("USD", Decimal("4500"), "2025-03-01")
    assert ts.hours == Decimal("2.5")
    assert rates == {"tm1": Decimal("120")}


def test_overview_over_the_api():
    async def run():
        source = _source(BODIES)
        ov = FinanceOverview(source)
        await ov.refetch()
        await source.client.aclose()
        return ov

    ov = asyncio.run(run())
    assert ov.error is None
    [s] = ov.project_summaries
    assert (s.po_received, s.invoiced, s.outstanding) == (Decimal("4500"), Decimal("1500"), Decimal("3000"))
    assert ov.project_finances[0].base_cost == Decimal("300.0")


def test_unexpected_body_fails_the_overview():
    bodies = {**BODIES, "/invoices": {"items": []}}

    async def run():
        source = _source(bodies)
        ov = FinanceOverview(source)
        await ov.refetch()
        await source.client.aclose()
        return ov

    ov = asyncio.run(run())
    assert ov.error == "Unexpected response shape from finance API"
    assert ov.project_summaries == []


def test_http_errors_propagate():
    async def run():
        source = _source({})
        try:
            await source.projects()
        finally:
            await source.client.aclose()

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(run())


def test_api_source_reads_every_row(client, make_project, db):
    make_project()
    db.add_all(
        Invoice(tenant_id="default", invoice_number=f"INV-{n}", project_code="J25001", amount=Decimal("10"),
                amount_myr=Decimal("10"), invoice_date=date(2025, 4, 1))
        for n in range(501)
    )
    db.commit()

    async def run():
        source = ApiFinanceSource(httpx.AsyncClient(transport=httpx.ASGITransport(app=main.app), base_url="http://erp.test"))
        ov = FinanceOverview(source)
        await ov.refetch()
        await source.client.aclose()
        return ov

    ov = asyncio.run(run())
    assert ov.error is None
    assert ov.project_summaries[0].invoiced == Decimal("5010")
    assert ov.totals.total_invoiced == Decimal("5010")
