"""
Admin routes - fund request decisions, direct credits, read views, payment settings

Authorization is enforced by the services inside each database transaction;
these handlers only forward the caller's identity.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from models import FundRequestType
from routes.dependencies import ServiceContainer, get_services, get_session_context
from routes.schemas import (
    AddFundsIn, AdminDecisionIn, DepositRequestOut, LedgerResultOut,
    PaymentSettingsIn, PaymentSettingsOut, PositionOut, ProfileOut,
    TransactionOut, WalletOut, WithdrawalRequestOut,
)
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _notes(body: Optional[AdminDecisionIn]) -> Optional[str]:
    return body.notes if body else None


# ----------------------------------------------------------------------
# Fund requests
# ----------------------------------------------------------------------

@router.get("/deposit-requests", response_model=List[DepositRequestOut])
def fetch_deposit_requests(
    status: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.fetch_deposit_requests(ctx, status)


@router.get("/withdrawal-requests", response_model=List[WithdrawalRequestOut])
def fetch_withdrawal_requests(
    status: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.fetch_withdrawal_requests(ctx, status)


@router.post("/deposit-requests/{request_id}/approve", response_model=LedgerResultOut)
def approve_deposit(
    request_id: str,
    body: Optional[AdminDecisionIn] = None,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.approve_deposit(ctx, request_id, _notes(body)).to_dict()


@router.post("/withdrawal-requests/{request_id}/approve", response_model=LedgerResultOut)
def approve_withdrawal(
    request_id: str,
    body: Optional[AdminDecisionIn] = None,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.approve_withdrawal(ctx, request_id, _notes(body)).to_dict()


@router.post("/deposit-requests/{request_id}/reject", response_model=LedgerResultOut)
def reject_deposit(
    request_id: str,
    body: Optional[AdminDecisionIn] = None,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.reject_request(ctx, request_id, FundRequestType.DEPOSIT.value, _notes(body)).to_dict()


@router.post("/withdrawal-requests/{request_id}/reject", response_model=LedgerResultOut)
def reject_withdrawal(
    request_id: str,
    body: Optional[AdminDecisionIn] = None,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.reject_request(ctx, request_id, FundRequestType.WITHDRAWAL.value, _notes(body)).to_dict()


# ----------------------------------------------------------------------
# Direct credit
# ----------------------------------------------------------------------

@router.post("/users/{user_id}/funds", response_model=LedgerResultOut)
def add_funds(
    user_id: str,
    body: AddFundsIn,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.admin.add_funds_to_user(ctx, user_id, body.amount, body.notes).to_dict()


# ----------------------------------------------------------------------
# Read views
# ----------------------------------------------------------------------

@router.get("/users", response_model=List[ProfileOut])
def fetch_users(
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.admin.fetch_users(ctx)


@router.get("/wallets", response_model=List[WalletOut])
def fetch_wallets(
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.admin.fetch_wallets(ctx)


@router.get("/positions", response_model=List[PositionOut])
def fetch_positions(
    user_id: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.admin.fetch_positions(ctx, user_id)


@router.get("/transactions", response_model=List[TransactionOut])
def fetch_transactions(
    user_id: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.admin.fetch_transactions(ctx, user_id)


# ----------------------------------------------------------------------
# Payment settings
# ----------------------------------------------------------------------

@router.put("/payment-settings", response_model=PaymentSettingsOut)
def update_payment_settings(
    body: PaymentSettingsIn,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.admin.update_payment_settings(ctx, **body.model_dump(exclude_unset=True))
