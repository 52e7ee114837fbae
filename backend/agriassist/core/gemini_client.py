"""
Gemini generateContent API client

Each call opens its own short-lived HTTP client; no connection state is
shared between calls.
"""
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from agriassist.core.config import Settings, get_settings
from agriassist.core.logging_config import LoggingConfig
from agriassist.core.metrics import (ai_errors_total,
                                     ai_request_duration_seconds,
                                     ai_requests_total)
from agriassist.core.service_errors import (AIServiceError, ServiceErrorKind,
                                            build_service_error,
                                            kind_for_status)
from agriassist.models.agriculture import ConversationTurn

logger = LoggingConfig.get_logger(__name__)


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class GeminiResponse(BaseModel):
    """Text extracted from a generateContent response"""
    model: str
    text: str
    finish_reason: Optional[str] = None


class GeminiClient:
    """
    Client for the Gemini generateContent REST endpoint

    Supports one-shot prompts, schema-constrained JSON output and multi-turn
    chat with a system instruction.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.model = self.settings.gemini_model
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"/v1beta/models/{self.model}:generateContent"

    async def generate_text(self, prompt: str) -> str:
        """One-shot prompt in, text out"""
        payload = {"contents": [self._content("user", prompt)]}
        response = await self._generate(payload, call_type="text")
        return response.text

    async def generate_json(self, prompt: str, response_schema: Dict[str, Any]) -> str:
        """
        Prompt in, JSON text out, constrained by a response schema

        Args:
            prompt: Input prompt
            response_schema: OpenAPI-style schema for the response object

        Returns:
            Raw JSON text as returned by the model
        """
        payload = {
            "contents": [self._content("user", prompt)],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": response_schema,
            },
        }
        response = await self._generate(payload, call_type="json")
        return response.text

    async def chat(
        self,
        message: str,
        history: Optional[List[ConversationTurn]] = None,
        system_instruction: Optional[str] = None
    ) -> str:
        """
        Multi-turn chat

        Args:
            message: New user message
            history: Prior turns in chronological order
            system_instruction: Fixed instruction for the model

        Returns:
            Model reply text
        """
        contents = [self._content(turn.role.value, turn.text) for turn in history or []]
        contents.append(self._content("user", message))
        payload: Dict[str, Any] = {"contents": contents}
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        response = await self._generate(payload, call_type="chat")
        return response.text

    @staticmethod
    def _content(role: str, text: str) -> Dict[str, Any]:
        return {"role": role, "parts": [{"text": text}]}

    async def _generate(self, payload: Dict[str, Any], call_type: str) -> GeminiResponse:
        if not self.settings.gemini_api_key:
            raise build_service_error(
                "GEMINI_API_KEY is not configured",
                ServiceErrorKind.INVALID_REQUEST,
            )

        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.gemini_base_url,
                timeout=self.settings.gemini_timeout_seconds,
                headers={"x-goog-api-key": self.settings.gemini_api_key},
                transport=self._transport,
            ) as client:
                try:
                    response = await client.post(self.endpoint, json=payload)
                except httpx.TransportError as e:
                    raise build_service_error(
                        f"Error calling Gemini: {type(e).__name__}: {e}",
                        ServiceErrorKind.NETWORK,
                    ) from e

                if response.is_error:
                    raise self._error_from_response(response)

                try:
                    data = response.json()
                except ValueError as e:
                    raise build_service_error(
                        "Gemini returned a non-JSON response body",
                        ServiceErrorKind.UNKNOWN,
                        status_code=response.status_code,
                    ) from e
                result = self._parse_response(data, response.status_code)
        except AIServiceError as e:
            ai_requests_total.labels(call_type=call_type, status="error").inc()
            ai_errors_total.labels(kind=e.kind.value).inc()
            logger.debug(
                f"Gemini {call_type} request failed: {e.message}",
                extra={"error_kind": e.kind.value, "status_code": e.status_code}
            )
            raise
        finally:
            ai_request_duration_seconds.labels(call_type=call_type).observe(time.time() - start_time)

        ai_requests_total.labels(call_type=call_type, status="success").inc()
        logger.debug(
            f"Gemini {call_type} response from {result.model}",
            extra={"finish_reason": result.finish_reason, "response_length": len(result.text)}
        )
        return result

    def _error_from_response(self, response: httpx.Response) -> AIServiceError:
        """Build a tagged error from an error response"""
        status = None
        detail = response.text
        try:
            body = response.json()
            error = body.get("error") if isinstance(body, dict) else None
            if not isinstance(error, dict):
                error = {}
            status = error.get("status")
            detail = error.get("message") or detail
        except ValueError:
            pass

        kind = kind_for_status(response.status_code, status)
        code_label = f"{response.status_code} {status}" if status else str(response.status_code)
        return build_service_error(
            f"Gemini API error {code_label}: {detail}",
            kind,
            status_code=response.status_code,
            metadata={"status": status} if status else None,
        )

    def _parse_response(self, data: Any, status_code: int) -> GeminiResponse:
        """
        Join the text parts of the first candidate

        Raises:
            GenericServiceError: If the body does not have the generateContent shape
        """
        if not isinstance(data, dict):
            raise self._malformed(f"expected a JSON object, got {type(data).__name__}", status_code)

        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise self._malformed("'candidates' is not a list", status_code)
        if not candidates:
            return GeminiResponse(model=self.model, text="")

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise self._malformed("candidate is not an object", status_code)
        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise self._malformed("'content' is not an object", status_code)
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise self._malformed("'parts' is not a list", status_code)

        text = "".join(
            part["text"] for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        return GeminiResponse(
            model=_string_or_none(data.get("modelVersion")) or self.model,
            text=text,
            finish_reason=_string_or_none(candidate.get("finishReason")),
        )

    @staticmethod
    def _malformed(reason: str, status_code: int) -> AIServiceError:
        return build_service_error(
            f"Malformed Gemini response: {reason}",
            ServiceErrorKind.UNKNOWN,
            status_code=status_code,
        )
