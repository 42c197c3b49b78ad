"""
SellerFlow — API Layer Tests
Covers sellerflow/api/v1/: projections, payout_forecasts
and sellerflow/main.py health/exception handlers.
"""

from __future__ import annotations

PROJECTION_PAYLOAD = {
    "current_balance": "1000",
    "as_of": "2024-06-01",
    "horizon_days": 7,
    "reserve_amount": "100",
    "income": [{"id": "i1", "amount": "500", "payment_date": "2024-06-04"}],
    "vendor_transactions": [{"id": "v1", "amount": "200", "due_date": "2024-06-06"}],
}


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH
# ═══════════════════════════════════════════════════════════════════════════════


class TestHealth:
    def test_health_returns_200(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200

    def test_health_has_status_field(self, client):
        body = client.get("/health").json()
        assert body["status"] in {"healthy", "degraded"}
        assert "version" in body


# ═══════════════════════════════════════════════════════════════════════════════
# PROJECTIONS
# ═══════════════════════════════════════════════════════════════════════════════


class TestProjectionEndpoint:
    def test_daily_balances(self, client):
        resp = client.post("/api/v1/projections/daily-balances", json=PROJECTION_PAYLOAD)
        assert resp.status_code == 200
        body = resp.json()
        assert [p["balance"] for p in body["daily_balances"]] == [
            "1000", "1000", "1000", "1500", "1500", "1300", "1300", "1300"
        ]
        assert body["event_count"] == 2
        assert body["safe_spending_limit"] == "900"
        assert body["lowest_balance"] == "1000"
        assert body["lowest_balance_date"] == "2024-06-01"
        assert len(body["buying_opportunities"]) == 8
        assert [o["date"] for o in body["distinct_opportunities"]] == ["2024-06-01", "2024-06-04"]

    def test_missing_balance_is_422(self, client):
        payload = dict(PROJECTION_PAYLOAD, current_balance=None)
        resp = client.post("/api/v1/projections/daily-balances", json=payload)
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "MISSING_CURRENT_BALANCE"

    def test_horizon_too_long(self, client):
        payload = dict(PROJECTION_PAYLOAD, horizon_days=500)
        resp = client.post("/api/v1/projections/daily-balances", json=payload)
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "INVALID_HORIZON"

    def test_bad_reserve(self, client):
        payload = dict(PROJECTION_PAYLOAD, reserve_amount="lots")
        resp = client.post("/api/v1/projections/daily-balances", json=payload)
        assert resp.status_code == 422

    def test_non_finite_amounts(self, client):
        payload = dict(
            PROJECTION_PAYLOAD,
            vendor_transactions=[
                {"id": "bad", "amount": "NaN", "due_date": "2024-06-06"},
                {"id": "v1", "amount": "200", "due_date": "2024-06-06"},
            ],
        )
        resp = client.post("/api/v1/projections/daily-balances", json=payload)
        assert resp.status_code == 200
        assert resp.json()["event_count"] == 2

        payload = dict(PROJECTION_PAYLOAD, current_balance="NaN")
        resp = client.post("/api/v1/projections/daily-balances", json=payload)
        assert resp.status_code == 422


# ═══════════════════════════════════════════════════════════════════════════════
# PAYOUT FORECASTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestPayoutForecastEndpoints:
    def test_regenerate_and_list(self, client, seller_account, confirmed_history):
        url = f"/api/v1/accounts/{seller_account.id}/payout-forecasts"
        resp = client.post(f"{url}/regenerate", json={"as_of": "2024-06-14"})
        assert resp.status_code == 201
        body = resp.json()
        assert len(body) == 6
        assert body[0]["payout_date"] == "2024-06-21"
        assert body[0]["amount"] == "10400.00"
        assert body[0]["method"] == "seasonal-biweekly"

        listed = client.get(url).json()
        assert [f["payout_date"] for f in listed] == [f["payout_date"] for f in body]

        confirmed = client.get(url, params={"status": "confirmed"}).json()
        assert len(confirmed) == 3

    def test_regenerate_unknown_account(self, client):
        resp = client.post("/api/v1/accounts/missing/payout-forecasts/regenerate", json={})
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "ACCOUNT_NOT_FOUND"

    def test_regenerate_without_history(self, client, seller_account):
        resp = client.post(
            f"/api/v1/accounts/{seller_account.id}/payout-forecasts/regenerate",
            json={"as_of": "2024-06-14"},
        )
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "INSUFFICIENT_HISTORY"

    def test_settlement_then_accuracy(self, client, seller_account, confirmed_history):
        base = f"/api/v1/accounts/{seller_account.id}"
        client.post(f"{base}/payout-forecasts/regenerate", json={"as_of": "2024-06-14"})

        resp = client.post(
            f"{base}/settlements",
            json={"settlement_id": "S-REAL", "payout_date": "2024-06-21", "total_amount": "10000.00"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "confirmed"
        assert body["original_forecast_amount"] == "10400.00"
        assert body["forecast_accuracy_percentage"] == "96.00"

        accuracy = client.get(f"{base}/forecast-accuracy").json()
        assert accuracy["total_comparisons"] == 1
        assert accuracy["mape"] == "4.00"
        assert accuracy["recent_comparisons"][0]["forecast_amount"] == "10400.00"

    def test_accuracy_without_comparisons(self, client, seller_account):
        body = client.get(f"/api/v1/accounts/{seller_account.id}/forecast-accuracy").json()
        assert body["total_comparisons"] == 0
        assert body["insights"] == ["No forecast comparisons available yet."]

    def test_settlement_bad_amount(self, client, seller_account):
        resp = client.post(
            f"/api/v1/accounts/{seller_account.id}/settlements",
            json={"settlement_id": "S", "payout_date": "2024-06-21", "total_amount": "ten"},
        )
        assert resp.status_code == 422

    def test_rollover_without_past_forecasts(self, client, seller_account):
        resp = client.post(
            f"/api/v1/accounts/{seller_account.id}/payout-forecasts/rollover",
            json={"as_of": "2024-06-14"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["rolled_over"] is False
        assert body["cleaned_count"] == 0
