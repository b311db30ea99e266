import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from wallet_connector_base import RebalancePlan, SwapAction, TxConfirmationStatus
from rebalance_service.api import create_app
from rebalance_service.container import ServiceContainer
from fakes import OWNER, OTHER_OWNER, SOL, USDC, FakeStatusChecker, make_config


@pytest.fixture
def container(store, balance_source, price_oracle, swap_quoter, status_checker, config):
    container = ServiceContainer()
    container.app_config.override(providers.Object(config))
    container.store.override(providers.Object(store))
    container.balance_source.override(providers.Object(balance_source))
    container.price_oracle.override(providers.Object(price_oracle))
    container.swap_quoter.override(providers.Object(swap_quoter))
    container.tx_status_checker.override(providers.Object(status_checker))
    yield container
    container.reset_override()


@pytest.fixture
def client(container):
    return TestClient(create_app(container), raise_server_exceptions=False)


def _set_targets(client, *rows):
    return client.post("/portfolio/target", json={
        "ownerId": OWNER,
        "targets": [{"tokenId": token_id, "symbol": symbol, "targetPercentage": target}
                    for token_id, symbol, target in rows]
    })


def _save_stale_plan(store):
    now = datetime.now(timezone.utc)
    plan = RebalancePlan(
        plan_id="stale-quote-plan",
        owner_id=OWNER,
        total_value_usd=1000.0,
        swaps=[SwapAction(from_token_id=SOL, from_symbol="SOL", to_token_id=USDC, to_symbol="USDC",
                          from_amount=1.0, to_amount=100.0, quote_payload="{}",
                          quote_expires_at=now - timedelta(seconds=1))],
        created_at=now,
        expires_at=now + timedelta(hours=1)
    )
    asyncio.run(store.save_plan(plan))
    return plan


class TestHealthAndContext:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Request-ID"]

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"


class TestPortfolioEndpoints:
    def test_connect_returns_first_snapshot(self, client, store):
        response = client.post("/portfolio/connect", json={"publicKey": OWNER})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["publicKey"] == OWNER
        portfolio = body["data"]["portfolio"]
        assert portfolio["totalValueUsd"] == pytest.approx(1000.0)
        assert {e["tokenId"]: e["percentage"] for e in portfolio["entries"]} == {
            SOL: pytest.approx(60.0), USDC: pytest.approx(40.0)
        }
        assert asyncio.run(store.get_owner(OWNER)) is not None

    def test_connect_rejects_malformed_key(self, client):
        response = client.post("/portfolio/connect", json={"publicKey": "not-base58!"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid public key format",
                                   "code": "INVALID_INPUT"}

    def test_missing_field_is_invalid_input(self, client):
        response = client.post("/portfolio/connect", json={})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_targets_must_sum_to_100(self, client, store):
        response = _set_targets(client, (SOL, "SOL", 50), (USDC, "USDC", 49.5))

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"
        assert asyncio.run(store.get_targets(OWNER)) == []

    def test_targets_round_trip_with_default_threshold(self, client):
        assert _set_targets(client, (SOL, "SOL", 60), (USDC, "USDC", 40)).status_code == 200

        data = client.get(f"/portfolio/target/{OWNER}").json()["data"]

        assert [(t["tokenId"], t["targetPercentage"], t["thresholdPercentage"]) for t in data] == [
            (SOL, 60.0, 5.0), (USDC, 40.0, 5.0)
        ]

    def test_target_lookup_rejects_malformed_key(self, client):
        response = client.get("/portfolio/target/not-a-key!")

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_check_without_targets(self, client):
        data = client.get(f"/rebalance/check/{OWNER}").json()["data"]

        assert data["needsRebalance"] is False
        assert data["message"] == "No target allocation set"
        assert data["totalValue"] == pytest.approx(1000.0)

    def test_balance_failure_hides_detail_in_production(self, client):
        response = client.get(f"/portfolio/{OTHER_OWNER}")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Failed to fetch portfolio",
                                   "code": "UPSTREAM_UNAVAILABLE"}

    def test_development_mode_includes_error_detail(self, container):
        container.app_config.override(providers.Object(make_config(api={"environment": "development"})))
        client = TestClient(create_app(container), raise_server_exceptions=False)

        body = client.get(f"/portfolio/{OTHER_OWNER}").json()

        assert body["message"] == "Failed to fetch portfolio"
        assert OTHER_OWNER in body["error"]


class TestRebalanceFlow:
    def test_plan_execute_confirm(self, client, swap_quoter):
        _set_targets(client, (SOL, "SOL", 50), (USDC, "USDC", 50))

        plan_data = client.post("/rebalance/plan", json={"ownerId": OWNER}).json()["data"]
        assert plan_data["needsRebalance"] is True
        plan = plan_data["plan"]
        assert plan["status"] == "pending"
        assert [(s["fromSymbol"], s["toSymbol"]) for s in plan["swaps"]] == [("SOL", "USDC")]
        assert plan["swaps"][0]["fromAmount"] == pytest.approx(1.0)

        fetched = client.get(f"/rebalance/plan/{plan['planId']}", params={"ownerId": OWNER}).json()["data"]
        assert fetched["planId"] == plan["planId"]

        execute = client.post("/rebalance/execute", json={"ownerId": OWNER, "planId": plan["planId"]})
        assert execute.status_code == 200
        instructions = execute.json()["data"]["instructions"]
        assert [i["swapIndex"] for i in instructions] == [0]
        assert instructions[0]["payload"]["userPublicKey"] == OWNER

        confirm_body = {"ownerId": OWNER, "planId": plan["planId"], "txSignature": "5sig"}
        confirmed = client.post("/rebalance/confirm", json=confirm_body).json()["data"]
        assert (confirmed["outcome"], confirmed["planStatus"]) == ("confirmed", "executed")

        repeated = client.post("/rebalance/confirm", json=confirm_body).json()["data"]
        assert repeated["outcome"] == "already_confirmed"

        history = client.get(f"/portfolio/transactions/{OWNER}").json()["data"]
        assert [(h["txSignature"], h["status"], h["type"]) for h in history] == [("5sig", "success", "rebalance")]

    def test_balanced_portfolio_has_no_plan(self, client):
        _set_targets(client, (SOL, "SOL", 60), (USDC, "USDC", 40))

        data = client.post("/rebalance/plan", json={"ownerId": OWNER}).json()["data"]

        assert data["needsRebalance"] is False
        assert data["plan"] is None
        assert data["message"] == "Portfolio is already balanced"

    def test_unknown_plan_is_404(self, client):
        response = client.get("/rebalance/plan/does-not-exist", params={"ownerId": OWNER})

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_plan_lookup_is_scoped_to_owner(self, client, store):
        plan = _save_stale_plan(store)

        other = client.get(f"/rebalance/plan/{plan.plan_id}", params={"ownerId": OTHER_OWNER})
        assert other.status_code == 404
        assert other.json()["code"] == "NOT_FOUND"

        missing = client.get(f"/rebalance/plan/{plan.plan_id}")
        assert missing.status_code == 400
        assert missing.json()["code"] == "INVALID_INPUT"

    def test_plan_rejects_malformed_owner(self, client, balance_source):
        response = client.post("/rebalance/plan", json={"ownerId": "not-a-key!"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid public key format",
                                   "code": "INVALID_INPUT"}
        assert balance_source.calls == []

    def test_expired_quote(self, client, store):
        plan = _save_stale_plan(store)

        response = client.post("/rebalance/execute", json={"ownerId": OWNER, "planId": plan.plan_id})

        assert response.status_code == 400
        assert response.json()["code"] == "QUOTE_EXPIRED"

    def test_unconfirmed_signature_is_reported(self, container, store):
        container.tx_status_checker.override(
            providers.Object(FakeStatusChecker(default=TxConfirmationStatus.PENDING))
        )
        client = TestClient(create_app(container), raise_server_exceptions=False)
        plan = _save_stale_plan(store)

        response = client.post("/rebalance/confirm", json={
            "ownerId": OWNER, "planId": plan.plan_id, "txSignature": "5sig"
        })

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "CONFIRMATION_FAILED"
        assert body["data"]["outcome"] == "timeout"
        assert body["data"]["planStatus"] == "pending"

    def test_abort_then_finalize(self, client, store):
        plan = _save_stale_plan(store)
        request = {"ownerId": OWNER, "planId": plan.plan_id}

        assert client.post("/rebalance/abort", json=request).json()["data"]["status"] == "failed"

        again = client.post("/rebalance/abort", json=request)
        assert again.status_code == 400
        assert again.json()["code"] == "PLAN_FINALIZED"

        assert client.post("/rebalance/finalize", json=request).json()["data"]["status"] == "failed"
