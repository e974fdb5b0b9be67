import httpx

from services.exchange_rates.api import get_rates_client


def _rates_client(handler):
    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://rates.test")


def test_manual_rates(client):
    resp = client.post("/exchange-rates", json={"from_currency": "usd", "rate": 4.45, "effective_date": "2025-03-01"})
    assert resp.status_code == 201
    assert (resp.json()["from_currency"], resp.json()["source"]) == ("USD", "manual")

    dup = client.post("/exchange-rates", json={"from_currency": "USD", "rate": 4.5, "effective_date": "2025-03-01"})
    assert dup.status_code == 409
    assert client.post("/exchange-rates", json={"from_currency": "USD", "rate": -1}).status_code == 400
    assert client.post("/exchange-rates", json={"from_currency": "US", "rate": 4.4}).status_code == 400

    assert client.get("/exchange-rates/single", params={"from_currency": "USD"}).json()["rate"] == 4.45
    assert client.get("/exchange-rates/single", params={"from_currency": "JPY"}).status_code == 404
    assert [r["from_currency"] for r in client.get("/exchange-rates").json()] == ["USD"]


def test_convert(client):
    client.post("/exchange-rates", json={"from_currency": "SGD", "rate": 3.3, "effective_date": "2025-01-01"})
    body = client.get("/exchange-rates/convert", params={"amount": "100", "currency": "sgd"}).json()
    assert body == {"amount": 100.0, "currency": "SGD", "rate": 3.3, "amount_myr": 330.0}
    assert client.get("/exchange-rates/convert", params={"amount": "1", "currency": "EUR"}).status_code == 404


def test_import_from_rate_api(client):
    client.app.dependency_overrides[get_rates_client] = _rates_client(
        lambda request: httpx.Response(200, json={"base": "MYR", "rates": {"USD": 0.25, "SGD": 0.3125}})
    )
    body = client.post("/exchange-rates/import").json()
    assert body == {"fetched": 2, "imported": 2, "rates": {"USD": 4.0, "SGD": 3.2}}
    assert client.post("/exchange-rates/import").json()["imported"] == 0
    assert client.get("/exchange-rates/single", params={"from_currency": "SGD"}).json()["rate"] == 3.2


def test_import_failure_is_bad_gateway(client):
    client.app.dependency_overrides[get_rates_client] = _rates_client(lambda request: httpx.Response(503))
    resp = client.post("/exchange-rates/import")
    assert resp.status_code == 502
    assert resp.json()["detail"].startswith("Failed to fetch exchange rates")
