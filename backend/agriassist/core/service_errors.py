"""
Generative AI service error taxonomy and classification
"""
import re
from enum import Enum
from typing import Any, Dict, Optional


QUOTA_EXCEEDED_MESSAGE = (
    "You have exceeded the AI request limit. Please wait 60 seconds and try again."
)
QUOTA_RETRY_AFTER_SECONDS = 60


class ServiceErrorKind(str, Enum):
    """Failure kinds produced by the AI transport layer"""
    RATE_LIMITED = "rate_limited"  # HTTP 429 / RESOURCE_EXHAUSTED
    SERVER_ERROR = "server_error"  # HTTP 500
    SERVER_UNAVAILABLE = "server_unavailable"  # HTTP 503
    INVALID_REQUEST = "invalid_request"  # Other 4xx, missing credentials
    NETWORK = "network"  # Connection failures and timeouts
    QUOTA_EXCEEDED = "quota_exceeded"  # Rate limiting that outlasted the retry budget
    UNKNOWN = "unknown"


TRANSIENT_KINDS = frozenset([
    ServiceErrorKind.RATE_LIMITED,
    ServiceErrorKind.SERVER_ERROR,
    ServiceErrorKind.SERVER_UNAVAILABLE,
])


class AIServiceError(Exception):
    """Base class for failures of the generative AI service"""

    def __init__(
        self,
        message: str,
        kind: ServiceErrorKind = ServiceErrorKind.UNKNOWN,
        status_code: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.metadata = metadata or {}

    @property
    def is_transient(self) -> bool:
        return self.kind in TRANSIENT_KINDS

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "message": self.message,
            "kind": self.kind.value,
            "status_code": self.status_code,
            "metadata": self.metadata,
        }


class TransientServiceError(AIServiceError):
    """Failure expected to resolve on retry (rate limiting, server unavailability)"""
    pass


class GenericServiceError(AIServiceError):
    """Any service failure that retrying will not fix"""
    pass


class QuotaExceededError(AIServiceError):
    """Rate-limit failure that persisted past the retry budget"""

    def __init__(
        self,
        message: str = QUOTA_EXCEEDED_MESSAGE,
        last_error: Optional[BaseException] = None,
        retry_after_seconds: int = QUOTA_RETRY_AFTER_SECONDS
    ):
        super().__init__(
            message,
            kind=ServiceErrorKind.QUOTA_EXCEEDED,
            status_code=429,
            metadata={"retry_after_seconds": retry_after_seconds},
        )
        self.last_error = last_error
        self.retry_after_seconds = retry_after_seconds


class ResponseParseError(ValueError):
    """Structured response from the AI service is malformed or incomplete"""

    def __init__(self, message: str, payload: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload


def kind_for_status(status_code: Optional[int], status: Optional[str] = None) -> ServiceErrorKind:
    """
    Map an HTTP status code and Google API error status to an error kind

    Args:
        status_code: HTTP status code of the response
        status: Google RPC status string from the error body (e.g. RESOURCE_EXHAUSTED)

    Returns:
        ServiceErrorKind
    """
    if status_code == 429 or (status or "").upper() == "RESOURCE_EXHAUSTED":
        return ServiceErrorKind.RATE_LIMITED
    if status_code == 500:
        return ServiceErrorKind.SERVER_ERROR
    if status_code == 503:
        return ServiceErrorKind.SERVER_UNAVAILABLE
    if status_code is not None and 400 <= status_code < 500:
        return ServiceErrorKind.INVALID_REQUEST
    return ServiceErrorKind.UNKNOWN


def build_service_error(
    message: str,
    kind: ServiceErrorKind,
    status_code: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AIServiceError:
    """Create the transient or generic error class matching the kind"""
    error_cls = TransientServiceError if kind in TRANSIENT_KINDS else GenericServiceError
    return error_cls(message, kind=kind, status_code=status_code, metadata=metadata)


class ServiceErrorClassifier:
    """Classifies exceptions raised by AI operations into error kinds"""

    # Message heuristics for exceptions that carry no explicit kind
    MESSAGE_PATTERNS = [
        (r"\b429\b", ServiceErrorKind.RATE_LIMITED),
        (r"\bRESOURCE_EXHAUSTED\b", ServiceErrorKind.RATE_LIMITED),
        (r"\b503\b", ServiceErrorKind.SERVER_UNAVAILABLE),
        (r"\b500\b", ServiceErrorKind.SERVER_ERROR),
    ]

    @classmethod
    def classify_message(cls, error_message: str) -> ServiceErrorKind:
        for pattern, kind in cls.MESSAGE_PATTERNS:
            if re.search(pattern, error_message):
                return kind
        return ServiceErrorKind.UNKNOWN

    @classmethod
    def classify(cls, error: BaseException) -> ServiceErrorKind:
        """
        Classify an exception

        Tagged AIServiceError instances are classified by their kind only;
        anything else falls back to message heuristics.
        """
        if isinstance(error, AIServiceError):
            return error.kind
        return cls.classify_message(str(error))


def classify_error(error: BaseException) -> ServiceErrorKind:
    """Convenience function to classify an exception"""
    return ServiceErrorClassifier.classify(error)
