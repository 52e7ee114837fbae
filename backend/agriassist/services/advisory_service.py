"""
Advisory Service: AI-backed features of the agriculture dashboard

Each feature renders its prompt template, runs one logical Gemini call
through the retry wrapper and maps the outcome. Crop recommendation
propagates failures to the caller; the free-text features convert them
into fixed user-facing messages.
"""
import asyncio
import json
from typing import Awaitable, Callable, List, Optional

from pydantic import ValidationError

from agriassist.core.gemini_client import GeminiClient
from agriassist.core.logging_config import LoggingConfig
from agriassist.core.metrics import ai_fallbacks_total
from agriassist.core.retry import RetryPolicy, execute_with_retry
from agriassist.core.service_errors import (QuotaExceededError,
                                            ResponseParseError)
from agriassist.models.agriculture import (ConversationTurn,
                                           CropRecommendation, GovAlert,
                                           GovStats, SoilSample)
from agriassist.services.prompt_repository import (PromptRepository,
                                                   get_prompt_repository)

logger = LoggingConfig.get_logger(__name__)


CROP_RECOMMENDATION_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "crop": {"type": "STRING"},
        "confidence": {"type": "NUMBER"},
        "reasoning": {"type": "STRING"},
        "requiredFertilizer": {"type": "STRING"},
        "estimatedYield": {"type": "STRING"},
    },
    "required": ["crop", "confidence", "reasoning", "requiredFertilizer", "estimatedYield"],
}

LOCATION_QUOTA_MESSAGE = (
    "**SERVICE ERROR:**\n\n### Quota Exceeded\n"
    "The AI decision support engine has reached its request limit. "
    "Please wait approximately 1 minute for the quota to reset before generating a new report."
)
LOCATION_ERROR_MESSAGE = "Unable to analyze the location. Please ensure the location is correct and try again."
LOCATION_EMPTY_MESSAGE = "No analysis available."

MARKET_QUOTA_MESSAGE = "Market data temporarily throttled. Quota exceeded."
MARKET_ERROR_MESSAGE = "Market analysis temporarily unavailable."

CHAT_QUOTA_MESSAGE = (
    "### Service Notice\n"
    "My advanced reasoning engine has reached its limit. "
    "Please wait a moment before sending another message."
)
CHAT_ERROR_MESSAGE = "I am currently having trouble connecting. Please try again later."
CHAT_EMPTY_MESSAGE = "I encountered a minor issue. Please rephrase your query."

POLICY_UNAVAILABLE_MESSAGE = "Analysis unavailable due to service quota."


def parse_crop_recommendation(payload: Optional[str]) -> CropRecommendation:
    """
    Parse a structured crop recommendation

    Raises:
        ResponseParseError: If the payload is empty, not JSON, or misses a required field
    """
    if not payload or not payload.strip():
        raise ResponseParseError("Empty response from AI", payload=payload)
    try:
        return CropRecommendation.model_validate_json(payload)
    except ValidationError as e:
        raise ResponseParseError(
            f"Malformed crop recommendation: {e.error_count()} validation error(s)",
            payload=payload,
        ) from e


class AdvisoryService:
    """
    Service for the dashboard's AI features.

    Handles:
    - Crop recommendation from a soil sample (structured)
    - Regional analysis for a free-text location
    - Commodity market outlook
    - Advisory chat with conversation history
    - Policy summary of government alerts and statistics
    """

    def __init__(
        self,
        client_factory: Callable[[], GeminiClient] = GeminiClient,
        retry_policy: Optional[RetryPolicy] = None,
        prompts: Optional[PromptRepository] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client_factory = client_factory
        self.retry_policy = retry_policy
        self.prompts = prompts or get_prompt_repository()
        self._sleep = sleep

    async def _run(self, operation_name: str, call: Callable[[GeminiClient], Awaitable[str]]) -> str:
        # A fresh client per logical call, shared only by that call's attempts
        client = self.client_factory()
        return await execute_with_retry(
            lambda: call(client),
            self.retry_policy,
            operation_name=operation_name,
            sleep=self._sleep,
        )

    def _fallback(self, feature: str, error: Exception, quota_message: str, error_message: str) -> str:
        if isinstance(error, QuotaExceededError):
            reason, message = "quota", quota_message
        else:
            reason, message = "error", error_message
        logger.error(
            f"{feature} failed, returning fallback: {error}",
            exc_info=error,
            extra={"feature": feature, "reason": reason, "error_type": type(error).__name__}
        )
        ai_fallbacks_total.labels(feature=feature, reason=reason).inc()
        return message

    async def recommend_crop(self, sample: SoilSample) -> CropRecommendation:
        """
        Recommend the best crop for a soil sample

        Raises:
            QuotaExceededError: Rate limit persisted past the retry budget
            AIServiceError: Any other service failure
            ResponseParseError: Response is not a complete recommendation
        """
        prompt = self.prompts.render("crop_recommendation", **sample.prompt_values())
        try:
            response_text = await self._run(
                "crop_recommendation",
                lambda client: client.generate_json(prompt, CROP_RECOMMENDATION_SCHEMA),
            )
            recommendation = parse_crop_recommendation(response_text)
        except Exception as e:
            logger.error(f"Crop recommendation error: {e}", exc_info=True)
            raise

        logger.info(
            f"Recommended crop: {recommendation.crop}",
            extra={"crop": recommendation.crop, "confidence": recommendation.confidence}
        )
        return recommendation

    async def analyze_location(self, location: str) -> str:
        """Multi-section regional decision-support report for a location"""
        prompt = self.prompts.render("location_analysis", location=location.strip())
        try:
            text = await self._run("location_analysis", lambda client: client.generate_text(prompt))
        except Exception as e:
            return self._fallback("location_analysis", e, LOCATION_QUOTA_MESSAGE, LOCATION_ERROR_MESSAGE)

        if not text.strip():
            ai_fallbacks_total.labels(feature="location_analysis", reason="empty").inc()
            return LOCATION_EMPTY_MESSAGE
        return text

    async def market_outlook(self, commodity: str) -> str:
        """Three-sentence market outlook for a commodity"""
        prompt = self.prompts.render("market_outlook", commodity=commodity.strip())
        try:
            return await self._run("market_outlook", lambda client: client.generate_text(prompt))
        except Exception as e:
            return self._fallback("market_outlook", e, MARKET_QUOTA_MESSAGE, MARKET_ERROR_MESSAGE)

    async def chat_reply(self, history: List[ConversationTurn], message: str) -> str:
        """Reply of the advisory bot to a new user message"""
        system_instruction = self.prompts.get_system_prompt("advisory_chat")
        turns = list(history)
        try:
            text = await self._run(
                "advisory_chat",
                lambda client: client.chat(message, history=turns, system_instruction=system_instruction),
            )
        except Exception as e:
            return self._fallback("advisory_chat", e, CHAT_QUOTA_MESSAGE, CHAT_ERROR_MESSAGE)

        if not text.strip():
            ai_fallbacks_total.labels(feature="advisory_chat", reason="empty").inc()
            return CHAT_EMPTY_MESSAGE
        return text

    async def summarize_policy(self, alerts: List[GovAlert], stats: GovStats) -> str:
        """Three-bullet policy brief for alerts and aggregate statistics"""
        prompt = self.prompts.render(
            "policy_summary",
            alerts=json.dumps([alert.model_dump(mode="json") for alert in alerts]),
            stats=json.dumps(stats.model_dump(mode="json", by_alias=True)),
        )
        try:
            return await self._run("policy_summary", lambda client: client.generate_text(prompt))
        except Exception as e:
            return self._fallback("policy_summary", e, POLICY_UNAVAILABLE_MESSAGE, POLICY_UNAVAILABLE_MESSAGE)


_advisory_service: Optional[AdvisoryService] = None


def get_advisory_service() -> AdvisoryService:
    """Get global advisory service instance"""
    global _advisory_service
    if _advisory_service is None:
        _advisory_service = AdvisoryService()
    return _advisory_service
