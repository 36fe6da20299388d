"""
Tests for the read-only HTTP API
"""

import pytest
from fastapi.testclient import TestClient

from bot import PreLiquidationBot
from conftest import BORROWER, POOL, PRE_LIQUIDATION, PRICE_1300
from main import app, get_bot


@pytest.fixture
def api():
    def use(scenario):
        bot = PreLiquidationBot(
            scenario.ledger, evaluator=scenario.evaluator, pre_liquidation=PRE_LIQUIDATION,
            flash_loan_pool=POOL, min_profit=0, dry_run=True,
        )
        app.dependency_overrides[get_bot] = lambda: bot
        return TestClient(app)

    yield use
    app.dependency_overrides.clear()


def test_health_check():
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_uninitialized_bot():
    response = TestClient(app).get(f"/api/markets/0x{'12' * 32}")
    assert response.status_code == 500


def test_market(api, scenario):
    response = api(scenario).get(f"/api/markets/{scenario.market_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["params"]["lltv"] == 915 * 10**15
    assert data["market"]["total_borrow_assets"] == 10_000 * 10**6


def test_check_position(api, scenario):
    response = api(scenario).get(f"/api/positions/{scenario.market_id}/{BORROWER}")

    assert response.status_code == 200
    data = response.json()
    assert data["is_liquidatable"] is True
    assert data["suggested_repay_amount"] == 192_700_000
    assert data["ltv"] == 909090909090909091


def test_profitability(api, scenario):
    response = api(scenario).get(f"/api/positions/{scenario.market_id}/{BORROWER}/profitability")

    assert response.status_code == 200
    data = response.json()
    assert data["repay_amount"] == 192_700_000
    assert data["flash_loan_fee"] == 173_430
    assert data["net_profit"] == data["seized_amount"] - 192_700_000 - 173_430


def test_dry_run(api, scenario):
    response = api(scenario).get(f"/api/positions/{scenario.market_id}/{BORROWER}/dry-run")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["state"] == "settled"
    assert data["profit"] > 0


def test_dry_run_healthy_position(api, make_scenario):
    scenario = make_scenario(price=PRICE_1300)
    response = api(scenario).get(f"/api/positions/{scenario.market_id}/{BORROWER}/dry-run")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert "not liquidatable" in data["reason"]


def test_invalid_inputs(api, scenario):
    client = api(scenario)

    assert client.get("/api/markets/0x1234").status_code == 400
    assert client.get(f"/api/positions/{scenario.market_id}/not-an-address").status_code == 400


def test_unknown_market(api, scenario):
    response = api(scenario).get(f"/api/positions/0x{'ab' * 32}/{BORROWER}")
    assert response.status_code == 502
