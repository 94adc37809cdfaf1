"""
Database Configuration and Session Management
============================================

This module provides the main database engine, session factory, and table creation
functionality for the TradeLedger service.
"""

import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool
from config import Config
from models import Base

logger = logging.getLogger(__name__)

if not Config.DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")


def enforce_sqlite_foreign_keys(target_engine):
    """SQLite ignores FOREIGN KEY clauses unless every connection turns them on"""

    @event.listens_for(target_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return target_engine


def build_engine(database_url: str, echo: bool = False):
    """Create an engine with settings matching the target backend"""
    if database_url.startswith("sqlite"):
        # SQLite: single file, no server-side pool tuning
        return enforce_sqlite_foreign_keys(create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        ))

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=Config.DB_POOL_SIZE,
        max_overflow=Config.DB_MAX_OVERFLOW,
        pool_pre_ping=True,    # Validate connections before use
        pool_recycle=3600,     # Recycle connections every hour
        pool_timeout=Config.DB_POOL_TIMEOUT,
        echo=echo,
        connect_args={
            "connect_timeout": 10,  # Fail fast on slow connections
            "application_name": "tradeledger_api",  # For monitoring in pg_stat_activity
        }
    )


engine = build_engine(Config.DATABASE_URL, echo=Config.DB_ECHO)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine
)


def create_tables(bind=None):
    """Create all database tables if they don't exist"""
    target = bind or engine
    try:
        logger.info("🏗️ Creating database tables (if they don't exist)...")

        # Import all models to register them with Base.metadata
        from models import (  # noqa: F401
            Profile, RoleAssignment, Wallet, Position, DepositRequest,
            WithdrawalRequest, Transaction, BankAccount, PaymentSettings
        )

        logger.info(f"📊 Found {len(Base.metadata.tables)} table models to create")
        Base.metadata.create_all(bind=target, checkfirst=True)
        logger.info("✅ Database schema verified")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to create database tables: {e}")
        return False


@contextmanager
def managed_session(session_factory=None):
    """Sync context manager for database sessions"""
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        session.close()


def verify_connection(bind=None):
    """Run SELECT 1 against the database, logging the outcome"""
    try:
        with (bind or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
            logger.info("✅ Database connection test successful")
            return True
    except Exception as e:
        logger.error(f"❌ Database connection test failed: {e}")
        return False

