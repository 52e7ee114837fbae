"""
Prometheus metrics configuration
"""
import os

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry,
                               Counter, Histogram, Info, generate_latest)
from prometheus_client.multiprocess import MultiProcessCollector
from prometheus_client.registry import REGISTRY

from agriassist import __version__
from agriassist.core.config import get_settings


def _exposition_registry() -> CollectorRegistry:
    """Registry served at /metrics (aggregated across workers in multiprocess mode)"""
    if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
        registry = CollectorRegistry()
        MultiProcessCollector(registry)
        return registry
    return REGISTRY


# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
)

http_errors_total = Counter(
    'http_errors_total',
    'Total number of HTTP errors',
    ['method', 'endpoint', 'status_code', 'error_type']
)

# ============================================================================
# AI Request Metrics
# ============================================================================

ai_requests_total = Counter(
    'ai_requests_total',
    'Total number of Gemini requests (single attempts)',
    ['call_type', 'status']  # call_type: text/json/chat; status: success/error
)

ai_request_duration_seconds = Histogram(
    'ai_request_duration_seconds',
    'Gemini request duration in seconds',
    ['call_type'],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0)
)

ai_errors_total = Counter(
    'ai_errors_total',
    'Total number of failed Gemini requests by error kind',
    ['kind']
)

ai_retries_total = Counter(
    'ai_retries_total',
    'Total number of retries scheduled after transient AI failures',
    ['kind']
)

ai_fallbacks_total = Counter(
    'ai_fallbacks_total',
    'Total number of fixed fallback messages returned to callers',
    ['feature', 'reason']  # reason: quota/error/empty
)

# ============================================================================
# Logging
# ============================================================================

log_messages_total = Counter(
    'log_messages_total',
    'Total number of log records emitted by level',
    ['level']
)

# ============================================================================
# System Info
# ============================================================================

app_info = Info(
    'app',
    'Application information'
)

_settings = get_settings()
app_info.info({
    'app_name': _settings.app_name,
    'app_env': _settings.app_env,
    'version': __version__,
    'gemini_model': _settings.gemini_model,
})

# ============================================================================
# Helper Functions
# ============================================================================

def get_metrics():
    """
    Get Prometheus metrics in text format

    Returns:
        bytes: Metrics in Prometheus text format
    """
    return generate_latest(_exposition_registry())


def get_metrics_content_type():
    return CONTENT_TYPE_LATEST
