"""
Financial Operation Locker
Row locking for balance-affecting operations using standard database SELECT FOR UPDATE.

Lock order is always fund request first, wallet second, so two approvals touching
the same wallet serialize instead of deadlocking.
"""

import logging
from contextlib import contextmanager
from typing import Optional, Type, Union

from sqlalchemy.orm import Session, sessionmaker

from models import Wallet, DepositRequest, WithdrawalRequest

logger = logging.getLogger(__name__)

FundRequestModel = Union[Type[DepositRequest], Type[WithdrawalRequest]]


class SimpleFinancialLocker:
    """
    Database-level locking for ledger operations.
    No in-process or distributed locks - the database row lock is the single source of truth.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def transaction(self, operation: str):
        """
        Open a session with an active transaction; commit on success, rollback on any error.
        Every lock taken inside is released at commit/rollback.
        """
        session = self.session_factory()
        try:
            # Start transaction first, then lock
            session.begin()
            yield session
            session.commit()
            logger.debug(f"LEDGER_OPERATION_COMMITTED: {operation}")
        except Exception as e:
            session.rollback()
            logger.warning(f"LEDGER_OPERATION_ROLLED_BACK: {operation} - {type(e).__name__}: {e}")
            raise
        finally:
            session.close()

    @staticmethod
    def lock_wallet(session: Session, user_id: str) -> Optional[Wallet]:
        """Lock the user's wallet row for the rest of the transaction"""
        wallet = (
            session.query(Wallet)
            .filter(Wallet.user_id == user_id)
            .with_for_update()  # This requires an active transaction
            .first()
        )
        if wallet:
            logger.debug(f"WALLET_LOCKED: User {user_id}")
        return wallet

    @staticmethod
    def lock_fund_request(session: Session, model: FundRequestModel, request_id: str):
        """Lock a deposit or withdrawal request row for the rest of the transaction"""
        request = (
            session.query(model)
            .filter(model.id == request_id)
            .with_for_update()
            .first()
        )
        if request:
            logger.debug(f"FUND_REQUEST_LOCKED: {model.__tablename__} {request_id}")
        return request
