"""
Fund Request Workflow

Users submit deposit and withdrawal requests; they sit in 'pending' until an
admin approves or rejects them. Approval and rejection are delegated to the
ledger store so the status change and the wallet change commit together.
"""

import logging
from typing import List, Optional, Dict

from sqlalchemy.orm import sessionmaker

from config import Config
from database import managed_session
from models import (
    BankAccount, DepositRequest, WithdrawalRequest,
    FundRequestStatus, FundRequestType, PaymentMethod,
)
from services.ledger_store import LedgerStore, LedgerOperationResult, resolve_request_model
from services.profile_service import require_profile
from utils.decimal_precision import FinancialValidation
from utils.exception_handler import NotFoundError, ValidationError, translate_store_errors
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

VALID_PAYMENT_METHODS = {m.value for m in PaymentMethod}
VALID_STATUSES = {s.value for s in FundRequestStatus}


def _normalize_status(status: Optional[str]) -> Optional[str]:
    if status is None or status == "":
        return None
    status = status.lower()
    if status not in VALID_STATUSES:
        raise ValidationError(f"Status must be one of {sorted(VALID_STATUSES)}")
    return status


class FundRequestWorkflow:
    """Submit, approve and reject deposit / withdrawal requests"""

    def __init__(self, store: Optional[LedgerStore] = None):
        self.store = store or LedgerStore()

    @property
    def session_factory(self) -> sessionmaker:
        return self.store.session_factory

    # ------------------------------------------------------------------
    # User side
    # ------------------------------------------------------------------

    @translate_store_errors("submit_deposit_request")
    def submit_deposit_request(self, ctx: SessionContext, amount, payment_method: str,
                               transaction_reference: Optional[str] = None) -> DepositRequest:
        user_id = ctx.require_user()
        value = FinancialValidation.validate_transaction_amount(amount, min_amount=Config.MIN_FUND_REQUEST_AMOUNT)

        payment_method = (payment_method or "").strip().lower()
        if payment_method not in VALID_PAYMENT_METHODS:
            raise ValidationError(f"Payment method must be one of {sorted(VALID_PAYMENT_METHODS)}")

        reference = (transaction_reference or "").strip() or None

        request = DepositRequest(
            user_id=user_id,
            amount=value,
            payment_method=payment_method,
            transaction_reference=reference,
            status=FundRequestStatus.PENDING.value,
        )
        with managed_session(self.session_factory) as session:
            require_profile(session, user_id)
            session.add(request)
            session.flush()

        logger.info(f"📥 DEPOSIT_REQUESTED: {request.id} user {user_id} {value} via {payment_method}")
        return request

    @translate_store_errors("submit_withdrawal_request")
    def submit_withdrawal_request(self, ctx: SessionContext, amount,
                                  bank_account_id: Optional[str] = None) -> WithdrawalRequest:
        """
        Create a pending withdrawal.

        The balance is not checked here; it is checked when an admin approves.
        """
        user_id = ctx.require_user()
        value = FinancialValidation.validate_transaction_amount(amount, min_amount=Config.MIN_FUND_REQUEST_AMOUNT)

        with managed_session(self.session_factory) as session:
            require_profile(session, user_id)
            if bank_account_id:
                account = session.get(BankAccount, bank_account_id)
                if account is None or account.user_id != user_id:
                    raise NotFoundError("Bank account not found")

            request = WithdrawalRequest(
                user_id=user_id,
                amount=value,
                bank_account_id=bank_account_id or None,
                status=FundRequestStatus.PENDING.value,
            )
            session.add(request)
            session.flush()

        logger.info(f"📤 WITHDRAWAL_REQUESTED: {request.id} user {user_id} {value}")
        return request

    @translate_store_errors("list_my_requests")
    def list_my_requests(self, ctx: SessionContext) -> Dict[str, list]:
        """Caller's deposit and withdrawal requests, newest first"""
        user_id = ctx.require_user()
        with managed_session(self.session_factory) as session:
            deposits = (
                session.query(DepositRequest)
                .filter(DepositRequest.user_id == user_id)
                .order_by(DepositRequest.created_at.desc())
                .all()
            )
            withdrawals = (
                session.query(WithdrawalRequest)
                .filter(WithdrawalRequest.user_id == user_id)
                .order_by(WithdrawalRequest.created_at.desc())
                .all()
            )
        return {FundRequestType.DEPOSIT.value: deposits, FundRequestType.WITHDRAWAL.value: withdrawals}

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    def approve_deposit(self, ctx: SessionContext, request_id: str,
                        notes: Optional[str] = None) -> LedgerOperationResult:
        admin_id = ctx.require_user()
        logger.info(f"🔍 APPROVE_DEPOSIT: {request_id} by {admin_id}")
        return self.store.approve_deposit_request(request_id, admin_id, notes)

    def approve_withdrawal(self, ctx: SessionContext, request_id: str,
                           notes: Optional[str] = None) -> LedgerOperationResult:
        admin_id = ctx.require_user()
        logger.info(f"🔍 APPROVE_WITHDRAWAL: {request_id} by {admin_id}")
        return self.store.approve_withdrawal_request(request_id, admin_id, notes)

    def reject_request(self, ctx: SessionContext, request_id: str, request_type: str,
                       notes: Optional[str] = None) -> LedgerOperationResult:
        admin_id = ctx.require_user()
        logger.info(f"🔍 REJECT_REQUEST: {request_type} {request_id} by {admin_id}")
        return self.store.reject_request(request_id, request_type, admin_id, notes)

    @translate_store_errors("fetch_requests")
    def fetch_requests(self, ctx: SessionContext, request_type: str,
                       status: Optional[str] = None) -> List:
        """All deposit or withdrawal requests (admin only), newest first, optionally by status"""
        admin_id = ctx.require_user()
        model = resolve_request_model(request_type)
        status = _normalize_status(status)

        with managed_session(self.session_factory) as session:
            self.store.require_admin(session, admin_id)
            query = session.query(model)
            if status:
                query = query.filter(model.status == status)
            return query.order_by(model.created_at.desc()).all()

    def fetch_deposit_requests(self, ctx: SessionContext, status: Optional[str] = None) -> List[DepositRequest]:
        return self.fetch_requests(ctx, FundRequestType.DEPOSIT.value, status)

    def fetch_withdrawal_requests(self, ctx: SessionContext, status: Optional[str] = None) -> List[WithdrawalRequest]:
        return self.fetch_requests(ctx, FundRequestType.WITHDRAWAL.value, status)
