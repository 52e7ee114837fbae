"""
Tests for the AI call retry wrapper
"""
import asyncio
import logging

import pytest

from agriassist.core.retry import RetryPolicy, execute_with_retry
from agriassist.core.service_errors import (GenericServiceError,
                                            QuotaExceededError,
                                            ServiceErrorKind,
                                            TransientServiceError)

RETRY_LOGGER = "agriassist.core.retry"


def rate_limited():
    return TransientServiceError("Resource exhausted", kind=ServiceErrorKind.RATE_LIMITED, status_code=429)


def unavailable():
    return TransientServiceError("Service unavailable", kind=ServiceErrorKind.SERVER_UNAVAILABLE, status_code=503)


def server_error():
    return TransientServiceError("Internal error", kind=ServiceErrorKind.SERVER_ERROR, status_code=500)


def invalid_request():
    return GenericServiceError("Malformed request", kind=ServiceErrorKind.INVALID_REQUEST, status_code=400)


class ScriptedOperation:
    """Operation returning or raising the given outcomes in order"""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def retry_records(caplog):
    return [r for r in caplog.records if r.name == RETRY_LOGGER and r.levelno == logging.WARNING]


@pytest.fixture(autouse=True)
def capture_retry_logs(caplog):
    caplog.set_level(logging.WARNING, logger=RETRY_LOGGER)


def test_default_policy():
    """Default policy: 2 retries, 2s initial delay, doubling"""
    policy = RetryPolicy()

    assert policy.max_retries == 2
    assert policy.max_attempts == 3
    assert policy.initial_delay == 2.0
    assert policy.backoff_multiplier == 2.0
    assert policy.is_retryable(ServiceErrorKind.RATE_LIMITED)
    assert policy.is_retryable(ServiceErrorKind.SERVER_ERROR)
    assert policy.is_retryable(ServiceErrorKind.SERVER_UNAVAILABLE)
    assert not policy.is_retryable(ServiceErrorKind.INVALID_REQUEST)
    assert not policy.is_retryable(ServiceErrorKind.NETWORK)


@pytest.mark.asyncio
async def test_first_attempt_success(fake_sleep, sleep_calls, caplog):
    """Success on the first attempt returns immediately without retries"""
    operation = ScriptedOperation("ok")

    result = await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)

    assert result == "ok"
    assert operation.calls == 1
    assert sleep_calls == []
    assert retry_records(caplog) == []


@pytest.mark.asyncio
async def test_recovers_after_transient_failures(fake_sleep, sleep_calls, caplog):
    """Two transient failures then success: delays D then 2D"""
    operation = ScriptedOperation(rate_limited(), unavailable(), "recovered")

    result = await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)

    assert result == "recovered"
    assert operation.calls == 3
    assert sleep_calls == [2.0, 4.0]

    records = retry_records(caplog)
    assert [r.attempt for r in records] == [1, 2]
    assert [r.delay_ms for r in records] == [2000, 4000]
    assert "Retrying in 2000ms" in records[0].getMessage()


@pytest.mark.asyncio
async def test_single_retry_consumes_single_delay(fake_sleep, sleep_calls):
    operation = ScriptedOperation(server_error(), "ok")

    assert await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep) == "ok"
    assert sleep_calls == [2.0]


@pytest.mark.asyncio
async def test_exhausted_rate_limit_raises_quota_exceeded(fake_sleep, sleep_calls):
    """Rate limiting past the budget becomes QuotaExceededError"""
    last = rate_limited()
    operation = ScriptedOperation(rate_limited(), rate_limited(), last)

    with pytest.raises(QuotaExceededError) as exc_info:
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)

    assert operation.calls == 3
    assert sleep_calls == [2.0, 4.0]
    assert exc_info.value.last_error is last
    assert exc_info.value.__cause__ is last
    assert "wait 60 seconds" in str(exc_info.value)


@pytest.mark.asyncio
async def test_exhausted_server_errors_raise_original(fake_sleep):
    """Non-quota transient failures past the budget surface unchanged"""
    last = unavailable()
    operation = ScriptedOperation(unavailable(), unavailable(), last)

    with pytest.raises(TransientServiceError) as exc_info:
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)

    assert exc_info.value is last
    assert operation.calls == 3


@pytest.mark.asyncio
async def test_terminal_translation_uses_last_error(fake_sleep):
    """Only the final error decides between quota and original error"""
    operation = ScriptedOperation(rate_limited(), rate_limited(), server_error())
    with pytest.raises(TransientServiceError):
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)

    operation = ScriptedOperation(server_error(), unavailable(), rate_limited())
    with pytest.raises(QuotaExceededError):
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)


@pytest.mark.asyncio
async def test_non_retryable_error_fails_immediately(fake_sleep, sleep_calls, caplog):
    error = invalid_request()
    operation = ScriptedOperation(error, "never reached")

    with pytest.raises(GenericServiceError) as exc_info:
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)

    assert exc_info.value is error
    assert operation.calls == 1
    assert sleep_calls == []
    assert retry_records(caplog) == []


@pytest.mark.asyncio
async def test_non_retryable_error_after_retry_stops(fake_sleep, sleep_calls):
    operation = ScriptedOperation(unavailable(), invalid_request(), "never reached")

    with pytest.raises(GenericServiceError):
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)

    assert operation.calls == 2
    assert sleep_calls == [2.0]


@pytest.mark.asyncio
async def test_untagged_errors_use_message_heuristics(fake_sleep):
    """Exceptions without a kind are classified from their message"""
    operation = ScriptedOperation(
        RuntimeError("HTTP 429 Too Many Requests"),
        RuntimeError("HTTP 429 Too Many Requests"),
        RuntimeError("HTTP 429 Too Many Requests"),
    )
    with pytest.raises(QuotaExceededError):
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)
    assert operation.calls == 3

    operation = ScriptedOperation(RuntimeError("boom"), "never reached")
    with pytest.raises(RuntimeError, match="boom"):
        await execute_with_retry(operation, RetryPolicy(), sleep=fake_sleep)
    assert operation.calls == 1


@pytest.mark.asyncio
async def test_custom_policy(fake_sleep, sleep_calls):
    policy = RetryPolicy(max_retries=3, initial_delay=0.5, backoff_multiplier=3.0)
    operation = ScriptedOperation(server_error(), server_error(), server_error(), "ok")

    assert await execute_with_retry(operation, policy, sleep=fake_sleep) == "ok"
    assert sleep_calls == [0.5, 1.5, 4.5]


@pytest.mark.asyncio
async def test_zero_retries_makes_single_attempt(fake_sleep, sleep_calls):
    operation = ScriptedOperation(rate_limited(), "never reached")

    with pytest.raises(QuotaExceededError):
        await execute_with_retry(operation, RetryPolicy(max_retries=0), sleep=fake_sleep)

    assert operation.calls == 1
    assert sleep_calls == []


@pytest.mark.asyncio
async def test_policy_defaults_from_settings(monkeypatch, fake_sleep, sleep_calls):
    """Without an explicit policy the configured one is used"""
    from agriassist.core import retry as retry_module
    from agriassist.core.config import Settings

    settings = Settings(ai_max_retries=1, ai_initial_retry_delay_seconds=0.25, ai_backoff_multiplier=2.0)
    monkeypatch.setattr(retry_module, "get_settings", lambda: settings)
    operation = ScriptedOperation(unavailable(), unavailable(), "never reached")

    with pytest.raises(TransientServiceError):
        await execute_with_retry(operation, sleep=fake_sleep)

    assert operation.calls == 2
    assert sleep_calls == [0.25]


@pytest.mark.asyncio
async def test_cancellation_during_backoff_stops_retrying():
    """Cancelling the caller abandons the pending retry without another attempt"""
    started = asyncio.Event()
    operation_calls = []

    async def operation():
        operation_calls.append(1)
        started.set()
        raise unavailable()

    task = asyncio.create_task(
        execute_with_retry(operation, RetryPolicy(initial_delay=30.0))
    )
    await started.wait()
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(operation_calls) == 1


@pytest.mark.asyncio
async def test_concurrent_calls_are_independent(fake_sleep, sleep_calls):
    flaky = ScriptedOperation(unavailable(), "flaky-ok")
    steady = ScriptedOperation("steady-ok")

    results = await asyncio.gather(
        execute_with_retry(flaky, RetryPolicy(), sleep=fake_sleep),
        execute_with_retry(steady, RetryPolicy(), sleep=fake_sleep),
    )

    assert results == ["flaky-ok", "steady-ok"]
    assert flaky.calls == 2
    assert steady.calls == 1
    assert sleep_calls == [2.0]


@pytest.mark.asyncio
async def test_nested_wrapper_does_not_retry_exhausted_quota(fake_sleep, sleep_calls):
    """A QuotaExceededError from an inner call is final for the outer call"""
    inner = ScriptedOperation(rate_limited(), rate_limited(), rate_limited())

    async def outer_operation():
        return await execute_with_retry(inner, RetryPolicy(), sleep=fake_sleep)

    with pytest.raises(QuotaExceededError) as exc_info:
        await execute_with_retry(outer_operation, RetryPolicy(), sleep=fake_sleep)

    assert inner.calls == 3
    assert sleep_calls == [2.0, 4.0]
    assert exc_info.value.kind == ServiceErrorKind.QUOTA_EXCEEDED
    assert isinstance(exc_info.value.last_error, TransientServiceError)
