"""
User-side fund request routes
"""

import logging

from fastapi import APIRouter, Depends

from routes.dependencies import ServiceContainer, get_services, get_session_context
from routes.schemas import (
    DepositRequestIn, DepositRequestOut, MyRequestsOut,
    WithdrawalRequestIn, WithdrawalRequestOut,
)
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fund-requests", tags=["funds"])


@router.post("/deposit", response_model=DepositRequestOut, status_code=201)
def submit_deposit(
    body: DepositRequestIn,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.submit_deposit_request(
        ctx, body.amount, body.payment_method, body.transaction_reference
    )


@router.post("/withdrawal", response_model=WithdrawalRequestOut, status_code=201)
def submit_withdrawal(
    body: WithdrawalRequestIn,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.submit_withdrawal_request(ctx, body.amount, body.bank_account_id)


@router.get("", response_model=MyRequestsOut)
def my_requests(
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.funds.list_my_requests(ctx)
