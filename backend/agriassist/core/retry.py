"""
Retry wrapper for generative AI calls with exponential backoff
"""
import asyncio
from typing import Awaitable, Callable, FrozenSet, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from agriassist.core.config import get_settings
from agriassist.core.logging_config import LoggingConfig
from agriassist.core.metrics import ai_retries_total
from agriassist.core.service_errors import (TRANSIENT_KINDS,
                                            QuotaExceededError,
                                            ServiceErrorKind, classify_error)

logger = LoggingConfig.get_logger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Retry budget and backoff schedule for one logical AI call"""
    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=2, ge=0, description="Retries after the first attempt")
    initial_delay: float = Field(default=2.0, ge=0, description="Delay before the first retry (seconds)")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, description="Delay multiplier per retry")
    retryable_kinds: FrozenSet[ServiceErrorKind] = Field(default=TRANSIENT_KINDS)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            max_retries=settings.ai_max_retries,
            initial_delay=settings.ai_initial_retry_delay_seconds,
            backoff_multiplier=settings.ai_backoff_multiplier,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def is_retryable(self, kind: ServiceErrorKind) -> bool:
        return kind in self.retryable_kinds


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    operation_name: str = "ai_call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run a single logical AI call, retrying transient failures with backoff

    Args:
        operation: Zero-argument coroutine function performing exactly one external call
        policy: Retry policy (defaults to the configured policy)
        operation_name: Name used in log records
        sleep: Coroutine used to wait between attempts

    Returns:
        Result of the first successful attempt

    Raises:
        QuotaExceededError: If the last failure was rate-limit shaped
        Exception: The last error otherwise, unchanged

    Cancelling the awaiting task stops the loop at the current await; no
    further attempt is made.
    """
    policy = policy or RetryPolicy.from_settings()
    delay = policy.initial_delay
    last_error: Optional[Exception] = None
    last_kind = ServiceErrorKind.UNKNOWN

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            last_kind = classify_error(e)

            if policy.is_retryable(last_kind) and attempt < policy.max_attempts:
                logger.warning(
                    f"AI call '{operation_name}' failed (attempt {attempt}/{policy.max_attempts}). "
                    f"Retrying in {int(delay * 1000)}ms...",
                    extra={
                        "operation": operation_name,
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "delay_ms": int(delay * 1000),
                        "error_kind": last_kind.value,
                        "error": str(e),
                    }
                )
                ai_retries_total.labels(kind=last_kind.value).inc()
                await sleep(delay)
                delay *= policy.backoff_multiplier
                continue
            break

    if last_kind == ServiceErrorKind.RATE_LIMITED:
        raise QuotaExceededError(last_error=last_error) from last_error
    raise last_error
