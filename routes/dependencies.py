"""
Shared FastAPI dependencies: caller identity and the service container

The auth gateway in front of this API verifies the user's token and forwards
the identity in X-Auth-User-Id / X-Auth-Email. Nothing here trusts a body field
for identity.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from services.admin_service import AdminService
from services.bank_account_service import BankAccountService
from services.fund_request_service import FundRequestWorkflow
from services.ledger_store import LedgerStore
from services.market_data_service import MarketDataService
from services.portfolio_service import PortfolioAggregator
from services.position_service import PositionManager
from services.profile_service import ProfileService
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """One instance per application, built in create_app()"""
    store: LedgerStore
    positions: PositionManager
    funds: FundRequestWorkflow
    admin: AdminService
    profiles: ProfileService
    bank_accounts: BankAccountService
    portfolio: PortfolioAggregator
    market_data: MarketDataService

    @classmethod
    def build(cls, session_factory=None, market_data: Optional[MarketDataService] = None,
              pnl_convention: Optional[str] = None) -> "ServiceContainer":
        store = LedgerStore(session_factory)
        factory = store.session_factory
        return cls(
            store=store,
            positions=PositionManager(factory),
            funds=FundRequestWorkflow(store),
            admin=AdminService(store),
            profiles=ProfileService(factory),
            bank_accounts=BankAccountService(factory),
            portfolio=PortfolioAggregator(pnl_convention),
            market_data=market_data or MarketDataService(),
        )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_session_context(
    request: Request,
    x_auth_user_id: Optional[str] = Header(None),
    x_auth_email: Optional[str] = Header(None),
) -> SessionContext:
    """
    Caller identity from the gateway headers; anonymous when absent.

    An authenticated caller seen for the first time gets a profile and wallet
    here, before any route writes rows that reference them.
    """
    user_id = (x_auth_user_id or "").strip() or None
    email = (x_auth_email or "").strip() or None
    ctx = SessionContext(user_id=user_id, email=email)
    if ctx.is_authenticated:
        get_services(request).profiles.ensure_profile(ctx)
    return ctx
