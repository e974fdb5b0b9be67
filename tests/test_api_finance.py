from datetime import date
from decimal import Decimal

import pytest

from app.db.models.finance import PurchaseOrder


@pytest.fixture
def jetty(client):
    company = client.post("/contacts/companies", json={"name": "Acme Engineering"}).json()
    project = client.post("/projects", json={"project_code": "J25001", "title": "Jetty upgrade", "company_id": company["id"]}).json()
    member = client.post("/team", json={"user_id": "u1", "name": "Aina", "hourly_rate": 100}).json()
    client.post("/timesheets", json={"project_id": project["id"], "engineer_id": "u1", "hours": 8, "date": "2025-03-03"})
    client.post("/purchase-orders", json={"po_number": "PO-100", "project_code": "J25001", "amount": 1000, "currency": "USD",
                                          "received_date": "2025-03-01", "custom_exchange_rate": 4.5})
    client.post("/invoices", json={"invoice_number": "INV-1", "project_code": "J25001", "amount": 2000,
                                   "invoice_date": "2025-03-15", "percentage_of_total": 40})
    return {"project": project, "member": member}


def test_overview_in_myr(client, jetty):
    body = client.get("/finance/overview").json()
    [row] = body["project_summaries"]
    assert row["client_name"] == "Acme Engineering"
    assert (row["po_received"], row["invoiced"], row["outstanding"]) == (4500.0, 2000.0, 2500.0)
    assert row["man_hour_cost"] == 3500.0
    assert row["engineer_breakdown"][0]["engineer_name"] == "Aina"
    assert row["display"]["po_received"] == "RM 4,500.00"
    assert body["totals"]["total_outstanding"] == 2500.0
    assert body["totals"]["display"]["po_received"] == "RM 4,500.00"
    assert body["unmatched_count"] == 0


def test_overview_with_original_currencies(client, jetty):
    body = client.get("/finance/overview", params={"show_original": "true"}).json()
    assert body["project_summaries"][0]["display"]["po_received"] == "US$ 1,000.00"
    assert body["totals"]["display"]["po_received"] == "US$ 1,000.00"
    assert body["totals"]["display"]["invoiced"] == "RM 2,000.00"


def test_overview_period_and_filters(client, jetty):
    [row] = client.get("/finance/overview", params={"year": 2024}).json()["project_summaries"]
    assert (row["po_received"], row["invoiced"]) == (0.0, 0.0)

    assert client.get("/finance/overview", params={"status": "completed"}).json()["project_summaries"] == []
    assert len(client.get("/finance/overview", params={"q": "acme"}).json()["project_summaries"]) == 1
    assert client.get("/finance/overview", params={"month": 13}).status_code == 422


def test_overview_is_tenant_scoped(client, jetty):
    body = client.get("/finance/overview", headers={"X-Tenant-Id": "other"}).json()
    assert body["project_summaries"] == []
    assert body["totals"]["total_po_received"] == 0


def test_profitability_uses_real_rates(client, jetty):
    body = client.get("/finance/profitability").json()
    [row] = body["projects"]
    assert row["base_cost"] == 800.0
    assert row["gross_profit"] == 3700.0
    assert row["profit_margin"] == 82.22
    assert body["summary"]["total_revenue"] == 4500.0
    assert body["cost_breakdown"] == [{"category": "Base Cost", "amount": 800.0, "percentage": 100.0}]

    project_id, member_id = jetty["project"]["id"], jetty["member"]["id"]
    client.put(f"/projects/{project_id}/hourly-rates", json={"rates": [{"team_member_id": member_id, "hourly_rate": 150}]})
    body = client.get("/finance/profitability").json()
    assert body["projects"][0]["base_cost"] == 1200.0
    assert body["base_cost_breakdowns"][project_id][0]["hourly_rate"] == 150.0


def test_unmatched_records_are_listed(client, jetty, db):
    db.add(PurchaseOrder(tenant_id="default", po_number="PO-X", po_number_base="PO-X", project_code=" j25001",
                         amount=Decimal("10"), received_date=date(2025, 3, 1)))
    db.commit()

    body = client.get("/finance/unmatched").json()
    assert body["count"] == 1
    [orphan] = body["orphans"]
    assert (orphan["kind"], orphan["near_match"]) == ("purchase_order", "J25001")
    assert client.get("/finance/overview").json()["unmatched_count"] == 1
