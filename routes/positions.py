"""
Position and portfolio routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from starlette.concurrency import run_in_threadpool

from routes.dependencies import ServiceContainer, get_services, get_session_context
from routes.schemas import ClosePositionIn, OpenPositionIn, PortfolioSummaryOut, PositionOut
from services.market_data_service import price_map
from utils.session_context import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["positions"])


@router.get("/positions", response_model=List[PositionOut])
def list_positions(
    status: Optional[str] = Query(None),
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.positions.list_positions(ctx, status=status)


@router.post("/positions", response_model=PositionOut, status_code=201)
def open_position(
    body: OpenPositionIn,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    return services.positions.open_position(
        ctx,
        symbol=body.symbol,
        coin_name=body.coin_name,
        amount=body.amount,
        buy_price=body.buy_price,
        position_type=body.position_type,
    )


@router.post("/positions/{position_id}/close", response_model=PositionOut)
def close_position(
    position_id: str,
    body: Optional[ClosePositionIn] = None,
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    current_price = body.current_price if body else None
    return services.positions.close_position(ctx, position_id, current_price=current_price)


@router.get("/portfolio/summary", response_model=PortfolioSummaryOut)
async def portfolio_summary(
    live: bool = Query(False, description="Value positions at live market prices"),
    ctx: SessionContext = Depends(get_session_context),
    services: ServiceContainer = Depends(get_services),
):
    """Open-position valuation; stored prices unless live=true"""
    positions = await run_in_threadpool(services.positions.list_positions, ctx)
    live_prices = None
    if live:
        live_prices = price_map(await services.market_data.fetch_quotes())
    return services.portfolio.summarize(positions, live_prices).to_dict()
