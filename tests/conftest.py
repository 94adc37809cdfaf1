"""
Shared test fixtures for the TradeLedger service

Every test gets its own SQLite database file so store operations run against a
real schema (including the conditional UPDATEs) and threads can share it.
"""

import logging
import threading
from decimal import Decimal
from typing import Callable, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import enforce_sqlite_foreign_keys
from models import Base, Profile, Wallet, UserRole
from services.ledger_store import LedgerStore
from utils.exception_handler import LedgerError, PersistenceError
from utils.session_context import SessionContext

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ADMIN_ID = "admin-0001"
USER_ID = "user-0001"
OTHER_USER_ID = "user-0002"


@pytest.fixture
def test_engine(tmp_path):
    """File-backed SQLite engine with the full schema and foreign keys enforced"""
    db_path = tmp_path / "ledger_test.db"
    engine = enforce_sqlite_foreign_keys(create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    ))
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return LedgerStore(session_factory)


def create_user(session_factory, user_id: str, email: Optional[str] = None,
                role: str = UserRole.USER.value, balance="1000.00",
                with_wallet: bool = True) -> Profile:
    """Insert a profile (and wallet) directly, bypassing the profile service"""
    session = session_factory()
    try:
        profile = Profile(id=user_id, email=email or f"{user_id}@example.com",
                          display_name=user_id, role=role)
        session.add(profile)
        if with_wallet:
            session.add(Wallet(user_id=user_id, balance=Decimal(str(balance)), currency="INR"))
        session.commit()
        return profile
    finally:
        session.close()


def wallet_balance(session_factory, user_id: str) -> Decimal:
    session = session_factory()
    try:
        wallet = session.query(Wallet).filter(Wallet.user_id == user_id).one()
        return Decimal(str(wallet.balance))
    finally:
        session.close()


@pytest.fixture
def admin_ctx(session_factory):
    create_user(session_factory, ADMIN_ID, email="admin@example.com", role=UserRole.ADMIN.value, balance="0")
    return SessionContext(user_id=ADMIN_ID, email="admin@example.com")


@pytest.fixture
def user_ctx(session_factory):
    create_user(session_factory, USER_ID, email="trader@example.com", balance="1000.00")
    return SessionContext(user_id=USER_ID, email="trader@example.com")


@pytest.fixture
def other_ctx(session_factory):
    create_user(session_factory, OTHER_USER_ID, email="other@example.com", balance="500.00")
    return SessionContext(user_id=OTHER_USER_ID, email="other@example.com")


@pytest.fixture
def anonymous_ctx():
    return SessionContext(user_id=None)


@pytest.fixture
def make_user(session_factory):
    def _make(user_id: str, **kwargs) -> Profile:
        return create_user(session_factory, user_id, **kwargs)
    return _make


@pytest.fixture
def balance_of(session_factory):
    def _balance(user_id: str) -> Decimal:
        return wallet_balance(session_factory, user_id)
    return _balance


def run_concurrently(*calls: Callable, attempts: int = 3) -> List:
    """
    Release every call at the same moment, each on its own thread.

    Returns one outcome per call: its return value or the LedgerError it raised.
    PersistenceError means SQLite gave up waiting for the write lock and the
    operation rolled back, so that call is tried again, up to `attempts` times.
    """
    barrier = threading.Barrier(len(calls))
    outcomes: List = [None] * len(calls)

    def worker(index: int, call: Callable):
        barrier.wait()
        for attempt in range(1, attempts + 1):
            try:
                outcomes[index] = call()
                return
            except PersistenceError as e:
                outcomes[index] = e
                logger.warning(f"Lock timeout on attempt {attempt}/{attempts}: {e}")
            except LedgerError as e:
                outcomes[index] = e
                return

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=120)
    return outcomes
