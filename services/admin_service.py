"""
Admin Service - direct wallet credits, admin read views and payment settings

Every method here is admin-only. The admin check runs inside the same
database session that reads or writes the data.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from database import managed_session
from models import PaymentSettings, Position, Profile, Transaction, Wallet
from services.ledger_store import LedgerStore, LedgerOperationResult
from utils.exception_handler import ValidationError, translate_store_errors
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

PAYMENT_SETTING_FIELDS = (
    "upi_id",
    "qr_code_url",
    "bank_name",
    "account_holder_name",
    "account_number",
    "ifsc_code",
)


class AdminService:
    """Admin operations over users, wallets and the ledger"""

    def __init__(self, store: Optional[LedgerStore] = None):
        self.store = store or LedgerStore()

    @property
    def session_factory(self) -> sessionmaker:
        return self.store.session_factory

    def add_funds_to_user(self, ctx: SessionContext, user_id: str, amount,
                          notes: Optional[str] = None) -> LedgerOperationResult:
        """Credit a user's wallet directly; recorded as an admin_credit transaction"""
        admin_id = ctx.require_user()
        if not user_id:
            raise ValidationError("Target user id is required")
        logger.info(f"💰 ADMIN_ADD_FUNDS: {amount} to {user_id} by {admin_id}")
        return self.store.admin_add_funds(user_id, amount, admin_id, notes)

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    def _fetch_all(self, ctx: SessionContext, model, user_id: Optional[str] = None) -> List:
        admin_id = ctx.require_user()
        with managed_session(self.session_factory) as session:
            self.store.require_admin(session, admin_id)
            query = session.query(model)
            if user_id:
                query = query.filter(model.user_id == user_id)
            return query.order_by(model.created_at.desc()).all()

    @translate_store_errors("fetch_users")
    def fetch_users(self, ctx: SessionContext) -> List[Profile]:
        return self._fetch_all(ctx, Profile)

    @translate_store_errors("fetch_wallets")
    def fetch_wallets(self, ctx: SessionContext) -> List[Wallet]:
        return self._fetch_all(ctx, Wallet)

    @translate_store_errors("fetch_positions")
    def fetch_positions(self, ctx: SessionContext, user_id: Optional[str] = None) -> List[Position]:
        return self._fetch_all(ctx, Position, user_id)

    @translate_store_errors("fetch_transactions")
    def fetch_transactions(self, ctx: SessionContext, user_id: Optional[str] = None) -> List[Transaction]:
        return self._fetch_all(ctx, Transaction, user_id)

    # ------------------------------------------------------------------
    # Payment settings
    # ------------------------------------------------------------------

    @translate_store_errors("get_payment_settings")
    def get_payment_settings(self, ctx: SessionContext) -> Dict[str, Any]:
        """Current deposit payment details; empty values when none are stored"""
        ctx.require_user()
        with managed_session(self.session_factory) as session:
            settings = session.query(PaymentSettings).order_by(PaymentSettings.created_at.asc()).first()
            return self._settings_to_dict(settings)

    @translate_store_errors("update_payment_settings")
    def update_payment_settings(self, ctx: SessionContext, **fields) -> Dict[str, Any]:
        """Upsert the single payment settings row. Unknown field names are rejected."""
        admin_id = ctx.require_user()

        unknown = set(fields) - set(PAYMENT_SETTING_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown payment settings: {', '.join(sorted(unknown))}")

        cleaned = {}
        for name, value in fields.items():
            value = (value or "").strip() if isinstance(value, str) or value is None else str(value)
            cleaned[name] = value or None
        if cleaned.get("ifsc_code"):
            cleaned["ifsc_code"] = cleaned["ifsc_code"].upper()

        with managed_session(self.session_factory) as session:
            self.store.require_admin(session, admin_id)
            settings = session.query(PaymentSettings).order_by(PaymentSettings.created_at.asc()).first()
            if settings is None:
                settings = PaymentSettings()
                session.add(settings)

            for name, value in cleaned.items():
                setattr(settings, name, value)
            settings.updated_by = admin_id
            session.flush()
            result = self._settings_to_dict(settings)

        logger.info(f"⚙️ PAYMENT_SETTINGS_UPDATED: {sorted(cleaned)} by {admin_id}")
        return result

    @staticmethod
    def _settings_to_dict(settings: Optional[PaymentSettings]) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: getattr(settings, name, None) for name in PAYMENT_SETTING_FIELDS}
        data["updated_at"] = settings.updated_at if settings else None
        return data
