"""
HTTP API Tests
Full request path: gateway headers -> routes -> services -> SQLite
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.responses import ORJSONResponse
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

import gunicorn_conf
from api_server import LedgerJSONResponse, create_app, status_for
from config import Config
from database import verify_connection
from services.market_data_service import MarketDataService
from utils.exception_handler import ConflictError, NotFoundError, PersistenceError
from utils.ledger_state_validator import StateTransitionError

from conftest import ADMIN_ID, USER_ID

LISTING = {
    "data": [
        {"name": "Bitcoin", "symbol": "BTC", "quote": {"USD": {
            "price": 6000000, "percent_change_24h": 1.5, "percent_change_7d": 3.1,
            "market_cap": 1200000000000, "volume_24h": 30000000000,
        }}},
    ]
}


def headers(user_id, email=None):
    result = {"X-Auth-User-Id": user_id}
    if email:
        result["X-Auth-Email"] = email
    return result


USER = headers(USER_ID, "trader@example.com")
ADMIN = headers(ADMIN_ID, "admin@example.com")


@pytest.fixture
def market_data():
    service = MarketDataService(url="http://market.test/listings", api_key="")
    service._fetch_listing = AsyncMock(return_value=LISTING)
    return service


@pytest.fixture
def client(session_factory, market_data, admin_ctx, user_ctx):
    app = create_app(session_factory=session_factory, market_data=market_data, init_database=False)
    return TestClient(app)


def dec(value) -> Decimal:
    return Decimal(str(value))


class TestErrorMapping:

    def test_status_codes(self):
        assert status_for(ConflictError("x")) == 409
        assert status_for(PersistenceError("x")) == 503
        assert status_for(StateTransitionError("x")) == 404
        assert status_for(NotFoundError("x")) == 404

    def test_missing_identity_is_401(self, client):
        response = client.get("/positions")

        assert response.status_code == 401
        assert response.json() == {
            "success": False, "error_code": "NOT_AUTHENTICATED", "error": "User not authenticated",
        }

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_response_class_renders_decimals_as_strings(self):
        response = LedgerJSONResponse(content={"balance": Decimal("1500.50"), "count": 2})

        assert isinstance(response, ORJSONResponse)
        assert response.body == b'{"balance":"1500.50","count":2}'


class TestAccountRoutes:

    def test_me_provisions_new_user(self, client):
        new_user = headers("fresh-user", "fresh@example.com")

        profile = client.get("/me", headers=new_user)
        wallet = client.get("/wallet", headers=new_user)

        assert profile.status_code == 200
        assert profile.json()["role"] == "user"
        assert wallet.status_code == 200
        assert dec(wallet.json()["balance"]) == Decimal("100000")

    def test_update_profile(self, client):
        response = client.patch("/me", json={"display_name": "Trader Joe"}, headers=USER)
        assert response.status_code == 200
        assert response.json()["display_name"] == "Trader Joe"

    def test_bank_account_lifecycle(self, client):
        created = client.post("/bank-accounts", headers=USER, json={
            "account_holder_name": "Trader", "account_number": "123456789",
            "ifsc_code": "icic0001234", "bank_name": "ICICI Bank",
        })
        assert created.status_code == 201
        assert created.json()["ifsc_code"] == "ICIC0001234"
        assert created.json()["is_primary"] is True

        deleted = client.delete(f"/bank-accounts/{created.json()['id']}", headers=USER)
        assert deleted.status_code == 204
        assert client.get("/bank-accounts", headers=USER).json() == []

    def test_invalid_ifsc_is_422(self, client):
        response = client.post("/bank-accounts", headers=USER, json={
            "account_holder_name": "Trader", "account_number": "123456789",
            "ifsc_code": "BAD", "bank_name": "ICICI Bank",
        })
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_INPUT"


class TestPositionRoutes:

    def test_first_request_from_new_user_provisions_before_writing(self, client):
        newcomer = headers("first-timer", "first@example.com")

        opened = client.post("/positions", headers=newcomer, json={
            "symbol": "ETH", "coin_name": "Ethereum", "amount": "1", "buy_price": "250000",
        })
        deposit = client.post("/fund-requests/deposit", headers=newcomer, json={
            "amount": "100", "payment_method": "upi",
        })

        assert opened.status_code == 201
        assert deposit.status_code == 201
        assert client.get("/me", headers=newcomer).json()["id"] == "first-timer"
        assert dec(client.get("/wallet", headers=newcomer).json()["balance"]) == Decimal("100000")

    def test_open_close_and_summary(self, client):
        opened = client.post("/positions", headers=USER, json={
            "symbol": "BTC", "coin_name": "Bitcoin", "amount": "0.01", "buy_price": "5000000",
        })
        assert opened.status_code == 201
        body = opened.json()
        assert body["status"] == "open"
        assert dec(body["current_price"]) == dec(body["buy_price"])

        summary = client.get("/portfolio/summary", headers=USER).json()
        assert dec(summary["total_value"]) == Decimal("50000")
        assert dec(summary["total_pnl"]) == Decimal("0")

        live = client.get("/portfolio/summary?live=true", headers=USER).json()
        assert dec(live["total_pnl"]) == Decimal("10000")

        closed = client.post(f"/positions/{body['id']}/close", headers=USER, json={"current_price": "5500000"})
        assert closed.status_code == 200
        assert closed.json()["status"] == "closed"

        again = client.post(f"/positions/{body['id']}/close", headers=USER, json={"current_price": "1"})
        assert again.status_code == 404

        listed = client.get("/positions", headers=USER).json()
        assert dec(listed[0]["current_price"]) == Decimal("5500000")

    def test_invalid_amount_is_422(self, client):
        response = client.post("/positions", headers=USER, json={
            "symbol": "BTC", "coin_name": "Bitcoin", "amount": "-1", "buy_price": "100",
        })
        assert response.status_code == 422


class TestFundRoutes:

    def test_deposit_approval_flow(self, client):
        submitted = client.post("/fund-requests/deposit", headers=USER, json={
            "amount": "500", "payment_method": "upi", "transaction_reference": "UTR1",
        })
        assert submitted.status_code == 201
        request_id = submitted.json()["id"]

        forbidden = client.post(f"/admin/deposit-requests/{request_id}/approve", headers=USER)
        assert forbidden.status_code == 403
        assert forbidden.json()["error_code"] == "NOT_AUTHORIZED"

        approved = client.post(f"/admin/deposit-requests/{request_id}/approve", headers=ADMIN,
                               json={"notes": "Payment seen"})
        assert approved.status_code == 200
        assert dec(approved.json()["new_balance"]) == Decimal("1500")

        repeat = client.post(f"/admin/deposit-requests/{request_id}/approve", headers=ADMIN)
        assert repeat.status_code == 404

        wallet = client.get("/wallet", headers=USER).json()
        assert dec(wallet["balance"]) == Decimal("1500")

    def test_withdrawal_over_balance_is_409(self, client):
        first = client.post("/fund-requests/withdrawal", headers=USER, json={"amount": "400"}).json()
        assert client.post(f"/admin/withdrawal-requests/{first['id']}/approve", headers=ADMIN).status_code == 200

        second = client.post("/fund-requests/withdrawal", headers=USER, json={"amount": "700"}).json()
        response = client.post(f"/admin/withdrawal-requests/{second['id']}/approve", headers=ADMIN)

        assert response.status_code == 409
        mine = client.get("/fund-requests", headers=USER).json()
        statuses = {r["id"]: r["status"] for r in mine["withdrawal"]}
        assert statuses == {first["id"]: "approved", second["id"]: "pending"}
        assert dec(client.get("/wallet", headers=USER).json()["balance"]) == Decimal("600")

    def test_reject_and_admin_listing(self, client):
        submitted = client.post("/fund-requests/withdrawal", headers=USER, json={"amount": "50"}).json()

        rejected = client.post(f"/admin/withdrawal-requests/{submitted['id']}/reject", headers=ADMIN,
                               json={"notes": "Incomplete KYC"})
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"

        listed = client.get("/admin/withdrawal-requests?status=rejected", headers=ADMIN).json()
        assert [r["id"] for r in listed] == [submitted["id"]]
        assert listed[0]["admin_notes"] == "Incomplete KYC"


class TestAdminRoutes:

    def test_add_funds_and_transactions_view(self, client):
        response = client.post(f"/admin/users/{USER_ID}/funds", headers=ADMIN,
                               json={"amount": "250", "notes": "Goodwill"})
        assert response.status_code == 200
        assert dec(response.json()["new_balance"]) == Decimal("1250")

        transactions = client.get(f"/admin/transactions?user_id={USER_ID}", headers=ADMIN).json()
        assert [t["transaction_type"] for t in transactions] == ["admin_credit"]

    def test_read_views_forbidden_for_users(self, client):
        for path in ("/admin/users", "/admin/wallets", "/admin/positions", "/admin/transactions"):
            assert client.get(path, headers=USER).status_code == 403

    def test_payment_settings_round_trip(self, client):
        updated = client.put("/admin/payment-settings", headers=ADMIN, json={"upi_id": "pay@upi"})
        assert updated.status_code == 200

        seen_by_user = client.get("/payment-settings", headers=USER).json()
        assert seen_by_user["upi_id"] == "pay@upi"


class TestMarketRoutes:

    def test_quotes_include_display_strings(self, client):
        response = client.get("/market/quotes?limit=5")

        assert response.status_code == 200
        [quote] = response.json()
        assert quote["symbol"] == "BTC"
        assert quote["display_price"] == "$6,000,000.00"
        assert quote["display_market_cap"] == "$1.20T"


class TestStartup:

    def test_startup_verifies_database_and_seeds_admins(self, session_factory, market_data, monkeypatch):
        monkeypatch.setattr(Config, "ADMIN_EMAILS", ["boss@example.com"])
        app = create_app(session_factory=session_factory, market_data=market_data, init_database=True)

        with TestClient(app) as started:
            profile = started.get("/me", headers=headers("boss-1", "boss@example.com"))

        assert profile.status_code == 200
        assert profile.json()["role"] == "admin"

    def test_verify_connection(self, test_engine, tmp_path):
        assert verify_connection(test_engine) is True

        unreachable = create_engine(f"sqlite:///{tmp_path / 'missing-dir' / 'ledger.db'}")
        assert verify_connection(unreachable) is False

    def test_gunicorn_binds_configured_port(self):
        assert gunicorn_conf.bind == f"0.0.0.0:{Config.PORT}"
        assert gunicorn_conf.worker_class == "uvicorn.workers.UvicornWorker"
