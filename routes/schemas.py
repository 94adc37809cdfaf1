"""Request and response models for the HTTP API"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------

class ProfileOut(_ORMModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WalletOut(_ORMModel):
    id: str
    user_id: str
    balance: Decimal
    currency: str
    updated_at: Optional[datetime] = None


class PositionOut(_ORMModel):
    id: str
    user_id: str
    symbol: str
    coin_name: str
    amount: Decimal
    buy_price: Decimal
    current_price: Optional[Decimal] = None
    position_type: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DepositRequestOut(_ORMModel):
    id: str
    user_id: str
    amount: Decimal
    payment_method: str
    transaction_reference: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    approved_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WithdrawalRequestOut(_ORMModel):
    id: str
    user_id: str
    amount: Decimal
    bank_account_id: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    approved_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MyRequestsOut(BaseModel):
    deposit: List[DepositRequestOut]
    withdrawal: List[WithdrawalRequestOut]


class TransactionOut(_ORMModel):
    id: str
    user_id: str
    transaction_type: str
    symbol: Optional[str] = None
    amount: Decimal
    price: Optional[Decimal] = None
    total_value: Decimal
    status: str
    reference_id: Optional[str] = None
    performed_by: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class BankAccountOut(_ORMModel):
    id: str
    account_holder_name: str
    account_number: str
    ifsc_code: str
    bank_name: str
    account_type: str
    is_primary: bool
    created_at: Optional[datetime] = None


class PaymentSettingsOut(BaseModel):
    upi_id: Optional[str] = None
    qr_code_url: Optional[str] = None
    bank_name: Optional[str] = None
    account_holder_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    updated_at: Optional[datetime] = None


class LedgerResultOut(BaseModel):
    success: bool = True
    operation: str
    user_id: str
    amount: Decimal
    new_balance: Optional[Decimal] = None
    request_id: Optional[str] = None
    status: Optional[str] = None
    transaction_id: Optional[str] = None


class PositionValuationOut(BaseModel):
    position_id: str
    symbol: str
    coin_name: str
    position_type: str
    amount: Decimal
    buy_price: Decimal
    price: Decimal
    value: Decimal
    pnl: Decimal
    pnl_percent: Decimal


class PortfolioSummaryOut(BaseModel):
    total_value: Decimal
    total_pnl: Decimal
    pnl_percent: Decimal
    open_positions: int
    positions: List[PositionValuationOut]


class MarketQuoteOut(BaseModel):
    symbol: str
    name: str
    price: Decimal
    percent_change_24h: Decimal
    percent_change_7d: Decimal
    market_cap: Decimal
    volume_24h: Decimal
    display_price: str
    display_market_cap: str


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------

class OpenPositionIn(BaseModel):
    symbol: str
    coin_name: str
    amount: Decimal
    buy_price: Decimal
    position_type: str = "long"


class ClosePositionIn(BaseModel):
    current_price: Optional[Decimal] = None


class DepositRequestIn(BaseModel):
    amount: Decimal
    payment_method: str
    transaction_reference: Optional[str] = None


class WithdrawalRequestIn(BaseModel):
    amount: Decimal
    bank_account_id: Optional[str] = None


class AdminDecisionIn(BaseModel):
    notes: Optional[str] = None


class AddFundsIn(BaseModel):
    amount: Decimal
    notes: Optional[str] = None


class ProfileUpdateIn(BaseModel):
    display_name: str


class BankAccountIn(BaseModel):
    account_holder_name: str
    account_number: str
    ifsc_code: str
    bank_name: str
    account_type: str = "savings"


class PaymentSettingsIn(BaseModel):
    upi_id: Optional[str] = Field(default=None, max_length=100)
    qr_code_url: Optional[str] = Field(default=None, max_length=500)
    bank_name: Optional[str] = Field(default=None, max_length=100)
    account_holder_name: Optional[str] = Field(default=None, max_length=200)
    account_number: Optional[str] = Field(default=None, max_length=20)
    ifsc_code: Optional[str] = Field(default=None, max_length=11)
