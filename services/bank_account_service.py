"""
Bank Account Service - saved payout accounts for withdrawals

The first account a user adds is primary. Removing the primary account
promotes the most recently added remaining account.
"""

import logging
import re
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from database import SessionLocal, managed_session
from models import BankAccount, BankAccountType, FundRequestStatus, WithdrawalRequest
from services.profile_service import require_profile
from utils.exception_handler import ConflictError, NotFoundError, ValidationError, translate_store_errors
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

# Indian Financial System Code: 4 letters, a zero, 6 alphanumerics
IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{6,20}$")
VALID_ACCOUNT_TYPES = {t.value for t in BankAccountType}


def mask_account_number(account_number: str) -> str:
    return f"****{(account_number or '')[-4:]}"


class BankAccountService:
    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory or SessionLocal

    @staticmethod
    def _required(value: Optional[str], field_name: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValidationError(f"{field_name} is required")
        return cleaned

    @translate_store_errors("add_bank_account")
    def add_bank_account(self, ctx: SessionContext, account_holder_name: str, account_number: str,
                         ifsc_code: str, bank_name: str,
                         account_type: str = BankAccountType.SAVINGS.value) -> BankAccount:
        user_id = ctx.require_user()

        holder = self._required(account_holder_name, "Account holder name")
        number = self._required(account_number, "Account number")
        ifsc = self._required(ifsc_code, "IFSC code").upper()
        bank = self._required(bank_name, "Bank name")
        account_type = (account_type or BankAccountType.SAVINGS.value).strip().lower()

        if not ACCOUNT_NUMBER_PATTERN.match(number):
            raise ValidationError("Account number must be 6 to 20 digits")
        if not IFSC_PATTERN.match(ifsc):
            raise ValidationError("Invalid IFSC code format")
        if account_type not in VALID_ACCOUNT_TYPES:
            raise ValidationError(f"Account type must be one of {sorted(VALID_ACCOUNT_TYPES)}")

        with managed_session(self.session_factory) as session:
            require_profile(session, user_id)
            existing = session.query(BankAccount).filter(BankAccount.user_id == user_id).all()
            if any(a.account_number == number for a in existing):
                raise ConflictError("This bank account is already saved")

            account = BankAccount(
                user_id=user_id,
                account_holder_name=holder,
                account_number=number,
                ifsc_code=ifsc,
                bank_name=bank,
                account_type=account_type,
                is_primary=not existing,
            )
            session.add(account)
            session.flush()

        logger.info(f"🏦 BANK_ACCOUNT_ADDED: {account.id} {bank} {mask_account_number(number)} for {user_id}")
        return account

    @translate_store_errors("list_bank_accounts")
    def list_bank_accounts(self, ctx: SessionContext) -> List[BankAccount]:
        user_id = ctx.require_user()
        with managed_session(self.session_factory) as session:
            return (
                session.query(BankAccount)
                .filter(BankAccount.user_id == user_id)
                .order_by(BankAccount.created_at.desc())
                .all()
            )

    @translate_store_errors("remove_bank_account")
    def remove_bank_account(self, ctx: SessionContext, account_id: str) -> None:
        """
        Delete one of the caller's accounts.

        Refused while a pending withdrawal pays out to it; processed withdrawals
        keep their history with the account reference cleared.
        """
        user_id = ctx.require_user()

        with managed_session(self.session_factory) as session:
            account = (
                session.query(BankAccount)
                .filter(BankAccount.id == account_id, BankAccount.user_id == user_id)
                .first()
            )
            if account is None:
                raise NotFoundError("Bank account not found")

            pending = (
                session.query(WithdrawalRequest)
                .filter(
                    WithdrawalRequest.bank_account_id == account_id,
                    WithdrawalRequest.status == FundRequestStatus.PENDING.value,
                )
                .count()
            )
            if pending:
                raise ConflictError("Bank account has a pending withdrawal")

            session.execute(
                update(WithdrawalRequest)
                .where(WithdrawalRequest.bank_account_id == account_id)
                .values(bank_account_id=None)
                .execution_options(synchronize_session=False)
            )

            was_primary = account.is_primary
            session.delete(account)
            session.flush()

            if was_primary:
                successor = (
                    session.query(BankAccount)
                    .filter(BankAccount.user_id == user_id)
                    .order_by(BankAccount.created_at.desc())
                    .first()
                )
                if successor is not None:
                    successor.is_primary = True
                    logger.info(f"⭐ PRIMARY_BANK_ACCOUNT_CHANGED: {successor.id} for {user_id}")

        logger.info(f"🗑️ BANK_ACCOUNT_REMOVED: {account_id} for {user_id}")
