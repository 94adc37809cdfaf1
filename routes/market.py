"""
Market data routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from routes.dependencies import ServiceContainer, get_services
from routes.schemas import MarketQuoteOut
from services.market_data_service import format_market_cap, format_price

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/market", tags=["market"])


@router.get("/quotes", response_model=List[MarketQuoteOut])
async def list_quotes(
    limit: Optional[int] = Query(None, ge=1, le=100),
    services: ServiceContainer = Depends(get_services),
):
    quotes = await services.market_data.fetch_quotes(limit)
    return [
        {
            **quote.to_dict(),
            "display_price": format_price(quote.price),
            "display_market_cap": format_market_cap(quote.market_cap),
        }
        for quote in quotes
    ]
