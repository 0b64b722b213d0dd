"""LLM error classification and normalization.

- Classifies transport failures into normalized error classes
- Called by the completion client after catching adapter exceptions
- Carries status code and raw response body for display/logging by callers

Error classes:
- E_LLM_INVALID_KEY: Authentication failure (401/403)
- E_LLM_RATE_LIMIT: Rate limit exceeded (429)
- E_LLM_CONTEXT_TOO_LARGE: Prompt exceeds the model context
- E_LLM_TIMEOUT: Request timed out
- E_LLM_PROVIDER_DOWN: Provider unavailable (5xx, network error, stream error event)
- E_MODEL_NOT_AVAILABLE: Model not found or disabled
- E_LLM_CANCELLED: Caller cancelled the call cooperatively
"""

from enum import Enum

from deckflow.logging import get_logger

logger = get_logger(__name__)

# Upper bound on response body text kept on LLMError
MAX_ERROR_BODY_CHARS = 4000


class LLMErrorClass(str, Enum):
    """Normalized LLM error classifications."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"
    CANCELLED = "E_LLM_CANCELLED"


class LLMError(Exception):
    """Exception for LLM-related transport failures.

    Attributes:
        error_class: The normalized error classification
        message: Human-readable error message
        provider: The provider that returned the error (if known)
        status_code: HTTP status code (None for timeouts / network errors)
        body: Response body text returned with a non-success status
    """

    def __init__(
        self,
        error_class: LLMErrorClass,
        message: str,
        provider: str | None = None,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.error_class = error_class
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.body = body[:MAX_ERROR_BODY_CHARS] if body else body
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether a caller may reasonably retry the same request."""
        if self.error_class in (LLMErrorClass.TIMEOUT, LLMErrorClass.RATE_LIMIT):
            return True
        if self.error_class == LLMErrorClass.PROVIDER_DOWN:
            return self.status_code is None or self.status_code >= 500
        return False


class LLMCancelledError(LLMError):
    """Raised when a call is cancelled through its cancel event.

    Distinct from transport failures: no status code, never retryable.
    """

    def __init__(self, message: str = "Call cancelled", provider: str | None = None):
        super().__init__(LLMErrorClass.CANCELLED, message, provider=provider)

    @property
    def retryable(self) -> bool:
        return False


def classify_provider_error(
    status_code: int | None,
    json_body: dict | None,
    exception: Exception | None,
) -> LLMErrorClass:
    """Classify a provider failure into a normalized error class.

    Args:
        status_code: HTTP status code (if available)
        json_body: Parsed JSON error response (if available)
        exception: The exception that was raised (if any)

    Returns:
        The appropriate LLMErrorClass for this error.

    Mapping:
    - Timeout exceptions → TIMEOUT
    - Network / connection exceptions → PROVIDER_DOWN
    - 401 or 403 → INVALID_KEY
    - 429 → RATE_LIMIT
    - 404 → MODEL_NOT_AVAILABLE
    - 400 + error.type == "invalid_request_error" + "too long" → CONTEXT_TOO_LARGE
    - 5xx and anything else → PROVIDER_DOWN
    """
    if exception is not None:
        exception_type = type(exception).__name__
        if "Timeout" in exception_type or "timeout" in str(exception).lower():
            return LLMErrorClass.TIMEOUT
        if "Network" in exception_type or "Connect" in exception_type:
            return LLMErrorClass.PROVIDER_DOWN

    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT

    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code == 400 and isinstance(json_body, dict):
        error = json_body.get("error")
        if isinstance(error, dict):
            error_type = str(error.get("type", ""))
            error_message = str(error.get("message", "")).lower()
            if error_type == "invalid_request_error" and "too long" in error_message:
                return LLMErrorClass.CONTEXT_TOO_LARGE

    if 400 <= status_code < 500:
        logger.debug("llm.error.unclassified_client_error", status_code=status_code)

    return LLMErrorClass.PROVIDER_DOWN
