import json

import httpx
import pytest
from fastapi.testclient import TestClient

from newhighs import main as main_module
from newhighs.config import settings
from newhighs.services.oauth import AccessCredentials


@pytest.fixture
def client(tmp_path, monkeypatch):
    tickers = tmp_path / "tickers.json"
    tickers.write_text(json.dumps({"sp500_tickers": ["AAA", "BBB", "CCC"]}), encoding="utf-8")
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setattr(settings, "tickers_path", str(tickers))
    monkeypatch.setattr(settings, "quote_batch_size", 2)

    with TestClient(main_module.app) as c:
        yield c


def _mock(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _quotes_handler(make_item):
    def handler(request):
        tail = request.url.path.rsplit("/", 1)[-1]
        syms = tail[: -len(".json")].split(",")
        items = [make_item(s, 100.0, 100.0 if s == "AAA" else 120.0, 50.0) for s in syms]
        return httpx.Response(200, json={"QuoteResponse": {"QuoteData": items}})

    return handler


def test_health_and_home(client):
    assert client.get("/").text == "Dashboard server is running."
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["authorized"] is False


def test_initiate_oauth(client):
    client.app.state.oauth.client = _mock(
        lambda request: httpx.Response(200, text="oauth_token=tmp&oauth_token_secret=tmpsec")
    )
    body = client.get("/api/initiate-oauth").json()
    assert body["oauth_token"] == "tmp"
    assert body["oauth_token_secret"] == "tmpsec"
    assert "token=tmp" in body["auth_url"]


def test_initiate_oauth_failure(client):
    client.app.state.oauth.client = _mock(lambda request: httpx.Response(401, text="oauth_problem=consumer_key_rejected"))
    resp = client.get("/api/initiate-oauth")
    assert resp.status_code == 500
    assert resp.json()["error"] == "OAuth request failed"


@pytest.mark.parametrize(
    "payload",
    [{}, {"oauth_token": "t", "oauth_token_secret": "s"}, {"oauth_token": "t", "oauth_token_secret": "s", "oauth_verifier": "  "}],
)
def test_execute_oauth_requires_all_fields(client, payload):
    resp = client.post("/api/execute-oauth", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {"authenticated": False, "error": "Missing required fields"}


def test_execute_oauth_stores_credentials(client):
    client.app.state.oauth.client = _mock(
        lambda request: httpx.Response(200, text="oauth_token=acc%3D&oauth_token_secret=accsec")
    )
    resp = client.post(
        "/api/execute-oauth",
        json={"oauth_token": "tmp", "oauth_token_secret": "tmpsec", "oauth_verifier": "V1"},
    )
    assert resp.json()["authenticated"] is True
    assert client.app.state.credentials.current() == AccessCredentials(token="acc=", secret="accsec")
    assert client.get("/health").json()["authorized"] is True


def test_execute_oauth_failure(client):
    client.app.state.oauth.client = _mock(lambda request: httpx.Response(400, text="oauth_problem=verifier_invalid"))
    resp = client.post(
        "/api/execute-oauth",
        json={"oauth_token": "tmp", "oauth_token_secret": "tmpsec", "oauth_verifier": "bad"},
    )
    assert resp.status_code == 500
    assert resp.json() == {"authenticated": False, "error": "Failed to get access token"}
    assert client.app.state.credentials.current() is None


def test_fetch_quotes_returns_history(client, make_item):
    client.app.state.quote_fetcher.client = _mock(_quotes_handler(make_item))
    client.app.state.credentials.set(AccessCredentials(token="acc", secret="accsec"))

    resp = client.get("/api/fetch-sp500-quotes")
    assert resp.status_code == 200
    highs = resp.json()["highs"]
    assert sorted(h["symbol"] for h in highs) == ["AAA", "BBB", "CCC"]
    by_symbol = {h["symbol"]: h for h in highs}
    assert by_symbol["AAA"]["isNewHigh"] is True
    assert by_symbol["BBB"]["isNewHigh"] is False
    assert by_symbol["AAA"]["growthPercent"] == 100.0

    assert len(client.get("/api/get-historical-data").json()["highs"]) == 3
    assert client.post("/api/set-pull-time").json()["formatted"].endswith(" EST")


def test_fetch_quotes_without_token_returns_null(client, make_item):
    client.app.state.quote_fetcher.client = _mock(_quotes_handler(make_item))

    resp = client.get("/api/fetch-sp500-quotes")
    assert resp.status_code == 200
    assert resp.json() is None
    assert client.get("/api/get-historical-data").json() == {"highs": []}
    # the pull is still recorded
    assert client.post("/api/set-pull-time").status_code == 200


def test_fetch_quotes_universe_failure(client, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "tickers_path", str(tmp_path / "missing.json"))
    resp = client.get("/api/fetch-sp500-quotes")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to fetch quotes"}


def test_add_todays_highs(client):
    assert client.post("/api/add-todays-highs", json={"highs": []}).status_code == 400
    assert client.post("/api/add-todays-highs", json={}).status_code == 400
    assert client.post("/api/add-todays-highs", json={"highs": [{"symbol": "X"}]}).status_code == 400

    resp = client.post(
        "/api/add-todays-highs",
        json={"highs": [{"symbol": "X", "price": 10, "high52": 9, "isNewHigh": True, "companyName": "X Co"}]},
    )
    assert resp.json()["message"] == "Inserted successfully"
    (row,) = client.get("/api/get-historical-data").json()["highs"]
    assert row["symbol"] == "X"
    assert row["companyName"] == "X Co"
    assert row["isNewHigh"] is True


def test_pull_times(client):
    assert client.post("/api/set-pull-time").status_code == 404
    assert client.post("/api/pull-times", json={}).status_code == 400
    assert client.post("/api/pull-times", json={"timestamp": "06/03/25, 10:05 EST"}).json() == {"success": True}
    assert client.post("/api/set-pull-time").json() == {"formatted": "06/03/25, 10:05 EST"}


@pytest.mark.parametrize("kwargs", [{}, {"json": {"highs": "AAPL"}}, {"json": ["AAPL"]}, {"json": {"highs": [1, 2]}}])
def test_add_todays_highs_rejects_bad_bodies_with_400(client, kwargs):
    resp = client.post("/api/add-todays-highs", **kwargs)
    assert resp.status_code == 400
    assert resp.json() == {"error": "No valid highs provided"}


@pytest.mark.parametrize("kwargs", [{}, {"json": {"oauth_token": 12, "oauth_token_secret": "s", "oauth_verifier": "v"}}])
def test_execute_oauth_rejects_bad_bodies_with_400(client, kwargs):
    resp = client.post("/api/execute-oauth", **kwargs)
    assert resp.status_code == 400
    assert resp.json() == {"authenticated": False, "error": "Missing required fields"}


@pytest.mark.parametrize("kwargs", [{}, {"json": {"timestamp": 5}}, {"json": {"timestamp": "   "}}])
def test_pull_times_rejects_bad_bodies_with_400(client, kwargs):
    resp = client.post("/api/pull-times", **kwargs)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing timestamp"}


def test_malformed_json_is_a_400(client):
    resp = client.post(
        "/api/pull-times",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request body"}
