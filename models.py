"""
TradeLedger Portfolio Service - Database Schema
===============================================

Schema for the simulated trading portfolio and its fund ledger:
- Profiles, role assignments and per-user wallets
- Open/closed trading positions with entry and last known price
- Admin-approved deposit and withdrawal requests
- Append-only transaction audit trail
- Bank accounts and the global payment settings row
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import (
    String, Numeric, DateTime, Boolean, Text,
    ForeignKey, UniqueConstraint, Index, CheckConstraint, func
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def generate_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS - Business Logic Constants
# ============================================================================

class UserRole(Enum):
    USER = "user"
    ADMIN = "admin"


class PositionType(Enum):
    LONG = "long"
    SHORT = "short"


class PositionStatus(Enum):
    """Position lifecycle: open -> closed (terminal)"""
    OPEN = "open"
    CLOSED = "closed"


class FundRequestType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class FundRequestStatus(Enum):
    """Fund request lifecycle: pending -> approved | rejected (both terminal)"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(Enum):
    UPI = "upi"
    BANK = "bank"


class BankAccountType(Enum):
    SAVINGS = "savings"
    CURRENT = "current"


class TransactionType(Enum):
    """Types of ledger audit records"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ADMIN_CREDIT = "admin_credit"
    POSITION_OPEN = "position_open"
    POSITION_CLOSE = "position_close"


class TransactionStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"


# Money and coin quantities share one precision
MONEY = Numeric(20, 8)
# Products of amount and price can exceed a single input amount
TOTAL = Numeric(38, 8)


# ============================================================================
# USERS AND WALLETS
# ============================================================================

class Profile(Base):
    """User profile - id is the auth provider's user id"""
    __tablename__ = 'profiles'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(10), default=UserRole.USER.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now, nullable=False)

    wallet: Mapped[Optional["Wallet"]] = relationship("Wallet", back_populates="profile", uselist=False)

    __table_args__ = (
        CheckConstraint(f"role IN ('{UserRole.USER.value}', '{UserRole.ADMIN.value}')", name='ck_profile_role_valid'),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email}, role={self.role})>"


class RoleAssignment(Base):
    """Seeded role for an email address, applied when the profile is provisioned"""
    __tablename__ = 'role_assignments'

    email: Mapped[str] = mapped_column(String(255), primary_key=True)
    role: Mapped[str] = mapped_column(String(10), default=UserRole.ADMIN.value, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)


class Wallet(Base):
    """Per-user balance - the sole store of spendable funds"""
    __tablename__ = 'wallets'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'), nullable=False, unique=True)
    balance: Mapped[Decimal] = mapped_column(MONEY, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now, nullable=False)

    profile: Mapped["Profile"] = relationship("Profile", back_populates="wallet")

    def __repr__(self):
        return f"<Wallet(user_id={self.user_id}, balance={self.balance} {self.currency})>"


# ============================================================================
# TRADING
# ============================================================================

class Position(Base):
    """Simulated trading position"""
    __tablename__ = 'portfolio_positions'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'), nullable=False)
    symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    coin_name: Mapped[str] = mapped_column(String(100), nullable=False)

    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    buy_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    current_price: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)

    position_type: Mapped[str] = mapped_column(String(10), default=PositionType.LONG.value, nullable=False)
    status: Mapped[str] = mapped_column(String(10), default=PositionStatus.OPEN.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_position_amount_positive'),
        CheckConstraint('buy_price > 0', name='ck_position_buy_price_positive'),
        CheckConstraint(f"position_type IN ('{PositionType.LONG.value}', '{PositionType.SHORT.value}')", name='ck_position_type_valid'),
        CheckConstraint(f"status IN ('{PositionStatus.OPEN.value}', '{PositionStatus.CLOSED.value}')", name='ck_position_status_valid'),
        Index('ix_positions_user_created', 'user_id', 'created_at'),
        Index('ix_positions_user_status', 'user_id', 'status'),
    )

    def __repr__(self):
        return f"<Position({self.symbol} {self.position_type} {self.amount} @ {self.buy_price}, {self.status})>"


# ============================================================================
# FUND REQUESTS
# ============================================================================

_REQUEST_STATUS_CHECK = (
    f"status IN ('{FundRequestStatus.PENDING.value}', '{FundRequestStatus.APPROVED.value}', "
    f"'{FundRequestStatus.REJECTED.value}')"
)


class DepositRequest(Base):
    """User deposit awaiting admin approval"""
    __tablename__ = 'deposit_requests'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(String(10), default=FundRequestStatus.PENDING.value, nullable=False)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_deposit_amount_positive'),
        CheckConstraint(_REQUEST_STATUS_CHECK, name='ck_deposit_status_valid'),
        Index('ix_deposit_requests_status_created', 'status', 'created_at'),
    )


class WithdrawalRequest(Base):
    """User withdrawal awaiting admin approval"""
    __tablename__ = 'withdrawal_requests'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bank_account_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey('bank_accounts.id'), nullable=True)

    status: Mapped[str] = mapped_column(String(10), default=FundRequestStatus.PENDING.value, nullable=False)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now, nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_withdrawal_amount_positive'),
        CheckConstraint(_REQUEST_STATUS_CHECK, name='ck_withdrawal_status_valid'),
        Index('ix_withdrawal_requests_status_created', 'status', 'created_at'),
    )


# ============================================================================
# AUDIT TRAIL
# ============================================================================

class Transaction(Base):
    """Append-only ledger audit record"""
    __tablename__ = 'transactions'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'), nullable=False, index=True)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)

    symbol: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    total_value: Mapped[Decimal] = mapped_column(TOTAL, nullable=False)

    status: Mapped[str] = mapped_column(String(20), default=TransactionStatus.COMPLETED.value, nullable=False)
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)  # Request or position id
    performed_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)  # Admin id for admin actions
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_transaction_amount_positive'),
        Index('ix_transactions_user_type', 'user_id', 'transaction_type'),
        Index('ix_transactions_created', 'created_at'),
    )


# ============================================================================
# ACCOUNT SETTINGS
# ============================================================================

class BankAccount(Base):
    """Saved bank account for withdrawals"""
    __tablename__ = "bank_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False)
    account_holder_name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_number: Mapped[str] = mapped_column(String(20), nullable=False)
    ifsc_code: Mapped[str] = mapped_column(String(11), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[str] = mapped_column(String(10), default=BankAccountType.SAVINGS.value, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "account_number", name="uq_user_account"),
        Index("idx_bank_accounts_user", "user_id"),
    )

    def __repr__(self):
        return f"<BankAccount(user_id={self.user_id}, bank={self.bank_name}, account={self.account_number})>"


class PaymentSettings(Base):
    """Single global row with the details users pay deposits into"""
    __tablename__ = 'payment_settings'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    upi_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    qr_code_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    account_holder_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    account_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    ifsc_code: Mapped[Optional[str]] = mapped_column(String(11), nullable=True)

    updated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, server_default=func.now(), onupdate=utc_now, nullable=False)
