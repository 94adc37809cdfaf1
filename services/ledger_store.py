"""
Ledger Store - named atomic operations over the wallet and fund request tables

Every balance change in the system goes through this module. Each operation:
1. Opens one database transaction
2. Checks the caller is an admin inside that transaction
3. Locks the fund request row, then the wallet row (fixed order)
4. Applies conditional updates (status still pending, balance still sufficient)
5. Appends the audit Transaction before commit

Either everything is applied or nothing is.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any, Type, Union

from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from database import SessionLocal
from models import (
    Profile, Wallet, DepositRequest, WithdrawalRequest, Transaction,
    FundRequestStatus, FundRequestType, TransactionType, TransactionStatus,
)
from utils.decimal_precision import MonetaryDecimal
from utils.exception_handler import (
    AuthenticationError, AuthorizationError, ConflictError, NotFoundError,
    ValidationError, translate_store_errors,
)
from utils.financial_operation_locker import SimpleFinancialLocker
from utils.ledger_state_validator import FundRequestStateValidator, StateTransitionError

logger = logging.getLogger(__name__)

REQUEST_MODELS: Dict[str, Union[Type[DepositRequest], Type[WithdrawalRequest]]] = {
    FundRequestType.DEPOSIT.value: DepositRequest,
    FundRequestType.WITHDRAWAL.value: WithdrawalRequest,
}


@dataclass
class LedgerOperationResult:
    """Outcome of a committed ledger operation"""
    operation: str
    user_id: str
    amount: Decimal
    new_balance: Optional[Decimal] = None
    request_id: Optional[str] = None
    status: Optional[str] = None
    transaction_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "operation": self.operation,
            "user_id": self.user_id,
            "amount": self.amount,
            "new_balance": self.new_balance,
            "request_id": self.request_id,
            "status": self.status,
            "transaction_id": self.transaction_id,
        }


def resolve_request_model(request_type) -> Union[Type[DepositRequest], Type[WithdrawalRequest]]:
    """Map 'deposit' / 'withdrawal' (or the enum) to its table"""
    key = request_type.value if isinstance(request_type, FundRequestType) else str(request_type or "").lower()
    model = REQUEST_MODELS.get(key)
    if model is None:
        raise ValidationError(f"Unknown request type '{request_type}'")
    return model


class LedgerStore:
    """Atomic ledger operations backed by a SQLAlchemy session factory"""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal
        self.locker = SimpleFinancialLocker(self.session_factory)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    @translate_store_errors("is_admin")
    def is_admin(self, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        session = self.session_factory()
        try:
            profile = session.get(Profile, user_id)
            return bool(profile and profile.is_admin)
        finally:
            session.close()

    @staticmethod
    def require_admin(session: Session, admin_id: Optional[str]) -> Profile:
        """Raise unless admin_id names an admin profile; runs inside the caller's transaction"""
        if not admin_id:
            raise AuthenticationError("User not authenticated")
        profile = session.get(Profile, admin_id)
        if not profile or not profile.is_admin:
            logger.warning(f"🚫 ADMIN_CHECK_FAILED: {admin_id}")
            raise AuthorizationError("Only admins can perform this action")
        return profile

    # ------------------------------------------------------------------
    # Internal building blocks (all run inside an open transaction)
    # ------------------------------------------------------------------

    @staticmethod
    def _claim_request(session: Session, model, request_id: str, new_status: FundRequestStatus,
                       admin_id: str, notes: Optional[str]) -> None:
        """Move a pending request to new_status; zero rows means someone else got there first"""
        result = session.execute(
            update(model)
            .where(model.id == request_id, model.status == FundRequestStatus.PENDING.value)
            .values(status=new_status.value, approved_by=admin_id, admin_notes=notes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise StateTransitionError(f"Fund request {request_id} is no longer pending")

    @staticmethod
    def _credit_wallet(session: Session, user_id: str, amount: Decimal) -> Decimal:
        session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(balance=Wallet.balance + amount)
            .execution_options(synchronize_session=False)
        )
        return LedgerStore._read_balance(session, user_id)

    @staticmethod
    def _debit_wallet(session: Session, user_id: str, amount: Decimal) -> Decimal:
        result = session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError("Insufficient balance for this withdrawal")
        return LedgerStore._read_balance(session, user_id)

    @staticmethod
    def _read_balance(session: Session, user_id: str) -> Decimal:
        wallet = session.query(Wallet).filter(Wallet.user_id == user_id).populate_existing().one()
        return MonetaryDecimal.to_decimal(wallet.balance, "balance")

    @staticmethod
    def _append_transaction(session: Session, user_id: str, transaction_type: TransactionType,
                            amount: Decimal, reference_id: Optional[str], performed_by: Optional[str],
                            description: Optional[str]) -> Transaction:
        record = Transaction(
            user_id=user_id,
            transaction_type=transaction_type.value,
            amount=amount,
            total_value=amount,
            status=TransactionStatus.COMPLETED.value,
            reference_id=reference_id,
            performed_by=performed_by,
            description=description,
        )
        session.add(record)
        session.flush()
        return record

    def _load_pending_request(self, session: Session, model, request_id: str):
        request = self.locker.lock_fund_request(session, model, request_id)
        if request is None:
            raise NotFoundError("Request not found or already processed")
        FundRequestStateValidator.ensure_transition(request.status, FundRequestStatus.APPROVED, request_id)
        return request

    def _lock_wallet_or_fail(self, session: Session, user_id: str) -> Wallet:
        wallet = self.locker.lock_wallet(session, user_id)
        if wallet is None:
            raise NotFoundError(f"Wallet not found for user {user_id}")
        return wallet

    # ------------------------------------------------------------------
    # Named atomic operations
    # ------------------------------------------------------------------

    @translate_store_errors("approve_deposit_request")
    def approve_deposit_request(self, request_id: str, admin_id: str,
                                notes: Optional[str] = None) -> LedgerOperationResult:
        """Approve a pending deposit and credit the requester's wallet"""
        with self.locker.transaction(f"approve_deposit_request:{request_id}") as session:
            self.require_admin(session, admin_id)
            request = self._load_pending_request(session, DepositRequest, request_id)
            self._lock_wallet_or_fail(session, request.user_id)

            amount = MonetaryDecimal.to_decimal(request.amount, "deposit amount")
            self._claim_request(session, DepositRequest, request_id, FundRequestStatus.APPROVED, admin_id, notes)
            new_balance = self._credit_wallet(session, request.user_id, amount)
            record = self._append_transaction(
                session, request.user_id, TransactionType.DEPOSIT, amount,
                reference_id=request_id, performed_by=admin_id,
                description=notes or f"Deposit via {request.payment_method}",
            )
            user_id = request.user_id

        logger.info(f"✅ DEPOSIT_APPROVED: {request_id} user {user_id} +{amount} (balance {new_balance}) by {admin_id}")
        return LedgerOperationResult(
            operation="approve_deposit_request", user_id=user_id, amount=amount,
            new_balance=new_balance, request_id=request_id,
            status=FundRequestStatus.APPROVED.value, transaction_id=record.id,
        )

    @translate_store_errors("approve_withdrawal_request")
    def approve_withdrawal_request(self, request_id: str, admin_id: str,
                                   notes: Optional[str] = None) -> LedgerOperationResult:
        """Approve a pending withdrawal; the balance is checked here, at approval time"""
        with self.locker.transaction(f"approve_withdrawal_request:{request_id}") as session:
            self.require_admin(session, admin_id)
            request = self._load_pending_request(session, WithdrawalRequest, request_id)
            wallet = self._lock_wallet_or_fail(session, request.user_id)

            amount = MonetaryDecimal.to_decimal(request.amount, "withdrawal amount")
            current_balance = MonetaryDecimal.to_decimal(wallet.balance, "balance")
            if current_balance < amount:
                logger.warning(
                    f"🚫 WITHDRAWAL_INSUFFICIENT_BALANCE: {request_id} needs {amount}, wallet has {current_balance}"
                )
                raise ConflictError("Insufficient balance for this withdrawal")

            self._claim_request(session, WithdrawalRequest, request_id, FundRequestStatus.APPROVED, admin_id, notes)
            new_balance = self._debit_wallet(session, request.user_id, amount)
            record = self._append_transaction(
                session, request.user_id, TransactionType.WITHDRAWAL, amount,
                reference_id=request_id, performed_by=admin_id,
                description=notes or "Withdrawal approved",
            )
            user_id = request.user_id

        logger.info(f"✅ WITHDRAWAL_APPROVED: {request_id} user {user_id} -{amount} (balance {new_balance}) by {admin_id}")
        return LedgerOperationResult(
            operation="approve_withdrawal_request", user_id=user_id, amount=amount,
            new_balance=new_balance, request_id=request_id,
            status=FundRequestStatus.APPROVED.value, transaction_id=record.id,
        )

    @translate_store_errors("reject_request")
    def reject_request(self, request_id: str, request_type, admin_id: str,
                       notes: Optional[str] = None) -> LedgerOperationResult:
        """Reject a pending deposit or withdrawal; balances are untouched"""
        model = resolve_request_model(request_type)
        with self.locker.transaction(f"reject_request:{request_id}") as session:
            self.require_admin(session, admin_id)
            request = self.locker.lock_fund_request(session, model, request_id)
            if request is None:
                raise NotFoundError("Request not found or already processed")
            FundRequestStateValidator.ensure_transition(request.status, FundRequestStatus.REJECTED, request_id)

            self._claim_request(session, model, request_id, FundRequestStatus.REJECTED, admin_id, notes)
            user_id = request.user_id
            amount = MonetaryDecimal.to_decimal(request.amount, "request amount")

        logger.info(f"🚫 REQUEST_REJECTED: {model.__tablename__} {request_id} by {admin_id}")
        return LedgerOperationResult(
            operation="reject_request", user_id=user_id, amount=amount,
            request_id=request_id, status=FundRequestStatus.REJECTED.value,
        )

    @translate_store_errors("admin_add_funds")
    def admin_add_funds(self, target_user_id: str, fund_amount, admin_id: str,
                        admin_notes: Optional[str] = None) -> LedgerOperationResult:
        """Credit a user's wallet directly and record the admin credit"""
        amount = MonetaryDecimal.validate_positive(fund_amount, "Amount")
        with self.locker.transaction(f"admin_add_funds:{target_user_id}") as session:
            self.require_admin(session, admin_id)
            self._lock_wallet_or_fail(session, target_user_id)

            new_balance = self._credit_wallet(session, target_user_id, amount)
            record = self._append_transaction(
                session, target_user_id, TransactionType.ADMIN_CREDIT, amount,
                reference_id=None, performed_by=admin_id,
                description=admin_notes or "Admin credit",
            )

        logger.info(f"💰 ADMIN_CREDIT: user {target_user_id} +{amount} (balance {new_balance}) by {admin_id}")
        return LedgerOperationResult(
            operation="admin_add_funds", user_id=target_user_id, amount=amount,
            new_balance=new_balance, transaction_id=record.id,
            metadata={"admin_notes": admin_notes},
        )
