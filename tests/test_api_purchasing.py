import pytest


def _po(client, code="J25001", number="PO-100", **extra):
    body = {"po_number": number, "project_code": code, "amount": 1000, "currency": "USD", "received_date": "2025-03-01",
            "custom_exchange_rate": 4.5, **extra}
    return client.post("/purchase-orders", json=body)


@pytest.fixture
def order(client, make_project):
    make_project()
    resp = _po(client)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_po_is_converted_with_custom_rate(client, order):
    assert order["amount_myr"] == 4500.0
    assert order["exchange_rate"] == 4.5
    assert order["exchange_rate_source"] == "custom"
    assert order["effective_amount_myr"] == 4500.0


def test_receiving_a_po_starts_the_project(client, order):
    [project] = client.get("/projects").json()
    assert project["status"] == "ongoing"
    assert project["po_received_date"] == "2025-03-01"


def test_one_active_po_per_project(client, order):
    resp = _po(client, number="PO-101")
    assert resp.status_code == 409
    assert "already has PO-100" in resp.json()["detail"]


def test_unknown_project_is_404(client):
    assert _po(client, code="J29999").status_code == 404


def test_conversion_falls_back_when_no_rate_exists(client, make_project):
    make_project(code="J25002")
    resp = _po(client, code="J25002", number="PO-200", custom_exchange_rate=None)
    body = resp.json()
    assert (body["amount_myr"], body["exchange_rate"], body["exchange_rate_source"]) == (1000.0, 1.0, "fallback")


def test_stored_rate_is_used_when_no_custom_rate(client, make_project):
    make_project(code="J25003")
    client.post("/exchange-rates", json={"from_currency": "USD", "rate": 4.4, "effective_date": "2025-01-01"})
    body = _po(client, code="J25003", number="PO-300", custom_exchange_rate=None).json()
    assert (body["amount_myr"], body["exchange_rate_source"]) == (4400.0, "fetched")


def test_adjust_myr(client, order):
    resp = client.post(f"/purchase-orders/{order['id']}/adjust-myr",
                       json={"amount_myr_adjusted": 4700, "reason": "Bank charges deducted"},
                       headers={"X-Actor": "finance@acme"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["amount_myr"] == 4500.0
    assert body["amount_myr_adjusted"] == 4700.0
    assert body["effective_amount_myr"] == 4700.0
    assert body["adjusted_by"] == "finance@acme"


def test_adjustment_limits(client, order):
    url = f"/purchase-orders/{order['id']}/adjust-myr"
    too_big = client.post(url, json={"amount_myr_adjusted": 9000, "reason": "Bank charges deducted"})
    assert too_big.status_code == 400
    assert too_big.json()["detail"] == "Adjustment too large (100.0%). Please create a revision instead."

    short = client.post(url, json={"amount_myr_adjusted": 4600, "reason": "fees"})
    assert short.status_code == 400
    assert short.json()["detail"] == "Adjustment reason must be at least 10 characters"

    assert client.post(url, json={"amount_myr_adjusted": 0, "reason": "Bank charges deducted"}).status_code == 400
    assert client.post(url, json={"reason": "Bank charges deducted"}).status_code == 422


def test_revision_supersedes_the_active_po(client, order):
    resp = client.post(f"/purchase-orders/{order['id']}/revisions", json={
        "amount": 1200, "received_date": "2025-04-01", "revision_reason": "Scope increased",
        "custom_exchange_rate": 4.5,
    })
    assert resp.status_code == 201
    rev = resp.json()
    assert rev["po_number"] == "PO-100 Rev 2"
    assert rev["revision_number"] == 2
    assert rev["currency"] == "USD"
    assert rev["amount_myr"] == 5400.0
    assert rev["supersedes"] == order["id"]

    active = client.get("/purchase-orders").json()
    assert [p["po_number"] for p in active] == ["PO-100 Rev 2"]
    assert len(client.get("/purchase-orders", params={"include_inactive": "true"}).json()) == 2

    history = client.get(f"/purchase-orders/{rev['id']}/revisions").json()
    assert [p["revision_number"] for p in history] == [1, 2]
    assert history[0]["superseded_by"] == rev["id"]

    stale = client.post(f"/purchase-orders/{order['id']}/adjust-myr", json={"amount_myr_adjusted": 4600, "reason": "Bank charges deducted"})
    assert stale.status_code == 400
    assert stale.json()["detail"] == "Cannot adjust inactive PO"


def test_revision_needs_a_reason(client, order):
    resp = client.post(f"/purchase-orders/{order['id']}/revisions", json={"amount": 1200, "received_date": "2025-04-01"})
    assert resp.status_code == 400


def test_deleted_po_frees_the_project(client, order):
    assert client.delete(f"/purchase-orders/{order['id']}").json() == {"ok": True}
    assert client.get("/purchase-orders").json() == []
    assert _po(client, number="PO-101").status_code == 201


def test_vendor_po_and_invoice(client, make_project):
    make_project()
    issued = client.post("/issued-pos", json={"po_number": "V-1", "project_code": "J25001", "recipient": "Subsea Sdn Bhd",
                                               "amount": 2000, "issue_date": "2025-03-05"})
    assert issued.status_code == 201
    issued = issued.json()
    bill = client.post("/received-invoices", json={"invoice_number": "B-1", "issued_po_id": issued["id"], "amount": 800,
                                                    "invoice_date": "2025-03-20"})
    assert bill.status_code == 201
    assert bill.json()["vendor_name"] == "Subsea Sdn Bhd"
    assert bill.json()["currency"] == "MYR"

    orphan = client.post("/received-invoices", json={"invoice_number": "B-2", "issued_po_id": "nope", "amount": 1,
                                                      "invoice_date": "2025-03-20"})
    assert orphan.status_code == 404
