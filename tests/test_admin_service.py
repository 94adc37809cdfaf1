"""
Admin Service Tests
Direct credits, admin read views and payment settings
"""

from decimal import Decimal

import pytest

from models import TransactionType
from services.admin_service import AdminService
from services.position_service import PositionManager
from utils.exception_handler import AuthorizationError, NotFoundError, ValidationError

from conftest import ADMIN_ID, USER_ID


@pytest.fixture
def admin_service(store):
    return AdminService(store)


class TestAddFundsToUser:

    def test_admin_credit(self, admin_service, admin_ctx, user_ctx, balance_of):
        result = admin_service.add_funds_to_user(admin_ctx, USER_ID, "2500", "Contest prize")

        assert result.new_balance == Decimal("3500")
        assert balance_of(USER_ID) == Decimal("3500")

        [record] = admin_service.fetch_transactions(admin_ctx, user_id=USER_ID)
        assert record.transaction_type == TransactionType.ADMIN_CREDIT.value
        assert record.description == "Contest prize"
        assert record.performed_by == ADMIN_ID

    def test_regular_user_cannot_credit(self, admin_service, user_ctx, other_ctx, balance_of):
        with pytest.raises(AuthorizationError):
            admin_service.add_funds_to_user(user_ctx, "user-0002", "100")
        assert balance_of("user-0002") == Decimal("500")

    def test_unknown_target(self, admin_service, admin_ctx):
        with pytest.raises(NotFoundError):
            admin_service.add_funds_to_user(admin_ctx, "nobody", "100")

    def test_missing_target(self, admin_service, admin_ctx):
        with pytest.raises(ValidationError):
            admin_service.add_funds_to_user(admin_ctx, "", "100")


class TestReadViews:

    def test_views_are_admin_only(self, admin_service, user_ctx):
        for view in (admin_service.fetch_users, admin_service.fetch_wallets,
                     admin_service.fetch_positions, admin_service.fetch_transactions):
            with pytest.raises(AuthorizationError):
                view(user_ctx)

    def test_users_and_wallets(self, admin_service, admin_ctx, user_ctx, other_ctx):
        users = admin_service.fetch_users(admin_ctx)
        wallets = admin_service.fetch_wallets(admin_ctx)

        assert {u.id for u in users} == {ADMIN_ID, USER_ID, "user-0002"}
        assert len(wallets) == 3

    def test_positions_newest_first_with_user_filter(self, admin_service, session_factory, admin_ctx,
                                                     user_ctx, other_ctx):
        manager = PositionManager(session_factory)
        first = manager.open_position(user_ctx, "BTC", "Bitcoin", "1", "100")
        other = manager.open_position(other_ctx, "ETH", "Ethereum", "1", "100")
        last = manager.open_position(user_ctx, "SOL", "Solana", "1", "100")

        everything = admin_service.fetch_positions(admin_ctx)
        mine = admin_service.fetch_positions(admin_ctx, user_id=USER_ID)

        assert [p.id for p in everything] == [last.id, other.id, first.id]
        assert [p.id for p in mine] == [last.id, first.id]


class TestPaymentSettings:

    def test_empty_settings_before_first_update(self, admin_service, user_ctx):
        settings = admin_service.get_payment_settings(user_ctx)
        assert settings["upi_id"] is None
        assert settings["updated_at"] is None

    def test_update_is_an_upsert_of_one_row(self, admin_service, admin_ctx, user_ctx):
        admin_service.update_payment_settings(admin_ctx, upi_id="ledger@upi", ifsc_code="hdfc0000123")
        admin_service.update_payment_settings(admin_ctx, bank_name="HDFC Bank")

        settings = admin_service.get_payment_settings(user_ctx)

        assert settings["upi_id"] == "ledger@upi"
        assert settings["ifsc_code"] == "HDFC0000123"
        assert settings["bank_name"] == "HDFC Bank"

    def test_update_requires_admin(self, admin_service, user_ctx):
        with pytest.raises(AuthorizationError):
            admin_service.update_payment_settings(user_ctx, upi_id="mine@upi")

    def test_unknown_field_rejected(self, admin_service, admin_ctx):
        with pytest.raises(ValidationError):
            admin_service.update_payment_settings(admin_ctx, swift_code="ABC")
