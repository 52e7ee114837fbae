"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))
# Test helpers (gemini_fakes) live next to this file
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

# Plain text logs and no log files during tests
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
# Ensure default: do not run real LLM tests unless explicitly enabled
os.environ.setdefault("RUN_REAL_LLM_TESTS", "0")

from agriassist.core.config import Settings
from agriassist.core.gemini_client import GeminiClient
from agriassist.core.retry import RetryPolicy
from agriassist.services.advisory_service import AdvisoryService
from gemini_fakes import GeminiStub


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a fake API key and model"""
    return Settings(gemini_api_key="test-key", gemini_model="gemini-test")


@pytest.fixture
def sleep_calls() -> List[float]:
    """Delays requested by the retry wrapper"""
    return []


@pytest.fixture
def fake_sleep(sleep_calls):
    """Sleep replacement that records delays without waiting"""
    async def _sleep(delay: float) -> None:
        sleep_calls.append(delay)
    return _sleep


@pytest.fixture
def make_service(test_settings, fake_sleep):
    """Build an AdvisoryService talking to a GeminiStub"""
    def _make(stub: GeminiStub, policy: Optional[RetryPolicy] = None) -> AdvisoryService:
        return AdvisoryService(
            client_factory=lambda: GeminiClient(test_settings, transport=stub.transport),
            retry_policy=policy or RetryPolicy(),
            sleep=fake_sleep,
        )
    return _make


@pytest.fixture
def api_client():
    """Test client for the FastAPI app; dependency overrides are cleared afterwards"""
    from fastapi.testclient import TestClient

    from agriassist.main import app

    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Test-run safety: skip `real_llm` marked tests by default unless explicit flag
# ---------------------------------------------------------------------------
def pytest_collection_modifyitems(config, items):
    """Skip real-LLM tests unless RUN_REAL_LLM_TESTS=1 is set in env."""
    if os.environ.get("RUN_REAL_LLM_TESTS", "0") == "1":
        return
    skip_marker = pytest.mark.skip(reason="Real LLM tests disabled. Set RUN_REAL_LLM_TESTS=1 to enable.")
    for item in items:
        if "real_llm" in getattr(item, "keywords", {}):
            item.add_marker(skip_marker)
