"""
Government analytics API routes
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from agriassist.models.agriculture import GovAlert, GovStats
from agriassist.services.advisory_service import (AdvisoryService,
                                                  get_advisory_service)

router = APIRouter(prefix="/api/government", tags=["government"])


class PolicySummaryRequest(BaseModel):
    alerts: List[GovAlert] = Field(default_factory=list)
    stats: GovStats = Field(default_factory=GovStats)


class PolicySummaryResponse(BaseModel):
    summary: str


@router.post("/summary", response_model=PolicySummaryResponse)
async def policy_summary(
    request: PolicySummaryRequest,
    service: AdvisoryService = Depends(get_advisory_service)
):
    """Executive AI summary of regional alerts and statistics"""
    summary = await service.summarize_policy(request.alerts, request.stats)
    return PolicySummaryResponse(summary=summary)
