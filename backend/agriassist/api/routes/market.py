"""
Market outlook API routes
"""
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from agriassist.services.advisory_service import (AdvisoryService,
                                                  get_advisory_service)

router = APIRouter(prefix="/api/market", tags=["market"])


class MarketOutlookResponse(BaseModel):
    commodity: str
    outlook: str


@router.get("/outlook", response_model=MarketOutlookResponse)
async def market_outlook(
    commodity: str = Query(..., min_length=1, description="Commodity name, e.g. Rice"),
    service: AdvisoryService = Depends(get_advisory_service)
):
    """Short AI market outlook for a commodity"""
    outlook = await service.market_outlook(commodity)
    return MarketOutlookResponse(commodity=commodity, outlook=outlook)
