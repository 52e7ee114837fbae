"""
Crop recommendation and regional analysis API routes
"""
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from agriassist.core.logging_config import LoggingConfig
from agriassist.core.service_errors import (AIServiceError,
                                            QuotaExceededError,
                                            ResponseParseError)
from agriassist.models.agriculture import CropRecommendation, SoilSample
from agriassist.services.advisory_service import (AdvisoryService,
                                                  get_advisory_service)

router = APIRouter(prefix="/api/crops", tags=["crops"])
logger = LoggingConfig.get_logger(__name__)


class LocationAnalysisRequest(BaseModel):
    """Regional analysis request"""
    location: str = Field(..., description="Place name or 'lat, lon' coordinates")

    @field_validator("location")
    @classmethod
    def location_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("location must not be blank")
        return v.strip()


class LocationAnalysisResponse(BaseModel):
    """Regional analysis response"""
    location: str
    analysis: str


@router.post("/recommend", response_model=CropRecommendation)
async def recommend_crop(
    sample: SoilSample,
    service: AdvisoryService = Depends(get_advisory_service)
):
    """
    Recommend the best crop for soil and weather conditions

    Returns:
        CropRecommendation
    """
    try:
        return await service.recommend_crop(sample)
    except QuotaExceededError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": e.message,
                "kind": e.kind.value,
                "retry_after_seconds": e.retry_after_seconds,
            },
            headers={"Retry-After": str(e.retry_after_seconds)},
        )
    except ResponseParseError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": e.message, "kind": "parse_error"},
        )
    except AIServiceError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": e.message, "kind": e.kind.value},
        )


@router.post("/location-analysis", response_model=LocationAnalysisResponse)
async def analyze_location(
    request: LocationAnalysisRequest,
    service: AdvisoryService = Depends(get_advisory_service)
):
    """Location-based decision support report"""
    analysis = await service.analyze_location(request.location)
    return LocationAnalysisResponse(location=request.location, analysis=analysis)
