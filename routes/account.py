"""
Account routes: profile, wallet, bank accounts and deposit payment details
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response

from routes.dependencies import ServiceContainer, get_services, get_session_context
from routes.schemas import (
    BankAccountIn, BankAccountOut, PaymentSettingsOut,
    ProfileOut, ProfileUpdateIn, WalletOut,
)
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["account"])


@router.get("/me", response_model=ProfileOut)
def get_me(
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    """Current profile; provisions profile and wallet on first call"""
    return services.profiles.ensure_profile(ctx)


@router.patch("/me", response_model=ProfileOut)
def update_me(
    body: ProfileUpdateIn,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.profiles.update_profile(ctx, body.display_name)


@router.get("/wallet", response_model=WalletOut)
def get_wallet(
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.profiles.get_wallet(ctx)


@router.get("/bank-accounts", response_model=List[BankAccountOut])
def list_bank_accounts(
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.bank_accounts.list_bank_accounts(ctx)


@router.post("/bank-accounts", response_model=BankAccountOut, status_code=201)
def add_bank_account(
    body: BankAccountIn,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.bank_accounts.add_bank_account(
        ctx,
        account_holder_name=body.account_holder_name,
        account_number=body.account_number,
        ifsc_code=body.ifsc_code,
        bank_name=body.bank_name,
        account_type=body.account_type,
    )


@router.delete("/bank-accounts/{account_id}", status_code=204)
def remove_bank_account(
    account_id: str,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    services.bank_accounts.remove_bank_account(ctx, account_id)
    return Response(status_code=204)


@router.get("/payment-settings", response_model=PaymentSettingsOut)
def get_payment_settings(
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.admin.get_payment_settings(ctx)
