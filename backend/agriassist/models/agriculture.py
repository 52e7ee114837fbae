"""
Agriculture domain records exchanged with the dashboard and the AI service
"""
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class SoilSample(BaseModel):
    """Soil nutrients and weather conditions for a field"""
    model_config = ConfigDict(frozen=True)

    nitrogen: float = Field(..., description="Nitrogen index")
    phosphorus: float = Field(..., description="Phosphorus index")
    potassium: float = Field(..., description="Potassium index")
    temperature: float = Field(..., description="Temperature (°C)")
    humidity: float = Field(..., description="Relative humidity (%)")
    ph: float = Field(..., description="Soil pH")
    rainfall: float = Field(..., description="Rainfall (mm)")

    def prompt_values(self) -> Dict[str, str]:
        """Readings as exact text: whole numbers without a trailing .0, others as repr"""
        return {
            field: str(int(value)) if value.is_integer() else repr(value)
            for field, value in self.model_dump().items()
        }


class CropRecommendation(BaseModel):
    """Crop recommendation parsed from a structured AI response"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    crop: str
    confidence: float
    reasoning: str
    required_fertilizer: str = Field(..., alias="requiredFertilizer")
    estimated_yield: str = Field(..., alias="estimatedYield")


class ConversationRole(str, Enum):
    """Speaker of a conversation turn"""
    USER = "user"
    MODEL = "model"


class ConversationTurn(BaseModel):
    """One message of the advisory chat history"""
    model_config = ConfigDict(frozen=True)

    role: ConversationRole
    text: str


class CommodityPricePoint(BaseModel):
    """Point on a commodity price chart"""
    date: str
    price: float
    predicted: bool = False


class AlertSeverity(str, Enum):
    """Government alert severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class GovAlert(BaseModel):
    """Regional alert shown on the government dashboard"""
    id: str
    severity: AlertSeverity
    region: str
    message: str
    date: str


class CropShare(BaseModel):
    """Share of planted area for one crop"""
    name: str
    value: float


class RegionalYield(BaseModel):
    """Average yield for a region"""
    model_config = ConfigDict(populate_by_name=True)

    region: str
    yield_amount: float = Field(..., alias="yield")


class GovStats(BaseModel):
    """Aggregate statistics summarised for policy makers"""
    distribution: List[CropShare] = Field(default_factory=list)
    yields: List[RegionalYield] = Field(default_factory=list)
