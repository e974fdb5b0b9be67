def _invoice(client, number, pct, code="J25001", amount=4000, **extra):
    body = {"invoice_number": number, "project_code": code, "amount": amount, "invoice_date": "2025-05-01",
            "percentage_of_total": pct, **extra}
    return client.post("/invoices", json=body)


def test_progress_billing_completes_the_project(client, make_project):
    p = make_project()
    first = _invoice(client, "INV-1", 40)
    assert first.status_code == 201
    assert (first.json()["invoice_sequence"], first.json()["cumulative_percentage"]) == (1, 40.0)
    assert first.json()["project_completed"] is False

    over = _invoice(client, "INV-2", 70)
    assert over.status_code == 400
    assert "would total 110" in over.json()["detail"]

    last = _invoice(client, "INV-3", 60, invoice_date="2025-06-30")
    assert last.status_code == 201
    body = last.json()
    assert (body["invoice_sequence"], body["cumulative_percentage"], body["project_completed"]) == (2, 100.0, True)

    project = client.get(f"/projects/{p['id']}").json()
    assert project["status"] == "completed"
    assert project["completion_date"] == "2025-06-30"


def test_lump_sum_projects_may_exceed_full_billing(client, make_project):
    make_project(billing_type="lump_sum")
    assert _invoice(client, "INV-1", 60).status_code == 201
    resp = _invoice(client, "INV-2", 60)
    assert resp.status_code == 201
    assert resp.json()["cumulative_percentage"] == 120.0


def test_invoice_number_is_unique(client, make_project):
    make_project()
    _invoice(client, "INV-1", 10)
    assert _invoice(client, "INV-1", 10).status_code == 409


def test_unknown_project(client):
    resp = _invoice(client, "INV-1", 10, code="J29999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Project J29999 not found"


def test_foreign_currency_invoice_is_converted(client, make_project):
    make_project()
    body = _invoice(client, "INV-1", 10, amount=100, currency="SGD", custom_exchange_rate=3.3).json()
    assert (body["currency"], body["amount_myr"], body["exchange_rate"]) == ("SGD", 330.0, 3.3)


def test_invoice_status(client, make_project):
    make_project()
    inv = _invoice(client, "INV-1", 10).json()
    paid = client.patch(f"/invoices/{inv['id']}/status", json={"status": "paid"})
    assert paid.json()["status"] == "paid"
    assert client.patch(f"/invoices/{inv['id']}/status", json={"status": "bogus"}).status_code == 400
    assert client.patch("/invoices/nope/status", json={"status": "paid"}).status_code == 404
    assert [i["invoice_number"] for i in client.get("/invoices", params={"status": "paid"}).json()] == ["INV-1"]


def test_fully_invoiced_structure_completes_its_container(client, make_project):
    container = make_project(code="J25010", title="Platform", project_type="structure_container")
    jacket = client.post(f"/projects/{container['id']}/structures", json={"title": "Jacket"}).json()
    client.post("/purchase-orders", json={"po_number": "PO-1", "project_code": jacket["project_code"], "amount": 5000,
                                          "received_date": "2025-04-01"})
    assert client.get(f"/projects/{container['id']}").json()["status"] == "ongoing"

    resp = _invoice(client, "INV-1", 100, code=jacket["project_code"])
    assert resp.json()["project_completed"] is True
    assert client.get(f"/projects/{jacket['id']}").json()["status"] == "completed"
    assert client.get(f"/projects/{container['id']}").json()["status"] == "completed"
