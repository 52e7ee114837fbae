"""
Domain models
"""
from agriassist.models.agriculture import (AlertSeverity, CommodityPricePoint,
                                           ConversationRole, ConversationTurn,
                                           CropRecommendation, CropShare,
                                           GovAlert, GovStats, RegionalYield,
                                           SoilSample)

__all__ = [
    "AlertSeverity",
    "CommodityPricePoint",
    "ConversationRole",
    "ConversationTurn",
    "CropRecommendation",
    "CropShare",
    "GovAlert",
    "GovStats",
    "RegionalYield",
    "SoilSample",
]
