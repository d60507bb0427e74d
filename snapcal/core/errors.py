"""Error taxonomy for the analysis pipeline.

Every failure the pipeline surfaces is an OperationError subclass carrying a
single ErrorKind. The fallback controller branches only on FAILURE_POLICIES,
which maps every kind to what happens next: retry the same model, advance to
the next model, or abort the whole operation.

Examples:
    >>> from snapcal.core.errors import AuthError, policy_for
    >>> error = AuthError(status_code=403)
    >>> error.kind
    <ErrorKind.AUTH: 'auth'>
    >>> policy_for(error)
    <FailurePolicy.ABORT: 'abort'>

Tests:
    - tests/unit/test_errors.py::TestFailurePolicies
    - tests/unit/test_errors.py::TestOperationErrors
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

__all__ = [
    "AuthError",
    "BadRequestError",
    "CanceledError",
    "ConfigurationError",
    "ErrorKind",
    "FAILURE_POLICIES",
    "FailurePolicy",
    "ModelsExhaustedError",
    "NoFoodRecognizedError",
    "OperationError",
    "ParseError",
    "PayloadValidationError",
    "RateLimitError",
    "RequestTimeoutError",
    "ServerError",
    "TransportError",
    "policy_for",
]


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    VALIDATION = "validation"
    CONFIG = "config"
    AUTH = "auth"
    BAD_REQUEST = "bad_request"
    RATE_LIMIT = "rate_limit"
    NO_FOOD = "no_food"
    PARSE = "parse"
    SERVER = "server"
    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    CANCELED = "canceled"
    EXHAUSTED = "exhausted"


class FailurePolicy(str, Enum):
    """What the fallback controller does after a failed attempt."""

    RETRY = "retry"  # wait the next backoff delay, try the same model again
    NEXT_MODEL = "next_model"  # record the failure, advance to the next model
    ABORT = "abort"  # propagate immediately, skip remaining models


FAILURE_POLICIES: Mapping[ErrorKind, FailurePolicy] = {
    ErrorKind.VALIDATION: FailurePolicy.ABORT,
    ErrorKind.CONFIG: FailurePolicy.ABORT,
    ErrorKind.AUTH: FailurePolicy.ABORT,
    ErrorKind.BAD_REQUEST: FailurePolicy.NEXT_MODEL,
    ErrorKind.RATE_LIMIT: FailurePolicy.NEXT_MODEL,
    ErrorKind.NO_FOOD: FailurePolicy.ABORT,
    ErrorKind.PARSE: FailurePolicy.NEXT_MODEL,
    ErrorKind.SERVER: FailurePolicy.RETRY,
    ErrorKind.TRANSPORT: FailurePolicy.RETRY,
    ErrorKind.TIMEOUT: FailurePolicy.RETRY,
    ErrorKind.CANCELED: FailurePolicy.ABORT,
    ErrorKind.EXHAUSTED: FailurePolicy.ABORT,
}


class OperationError(Exception):
    """Base exception for every pipeline failure.

    Attributes:
        kind: The error kind (fixed per subclass)
        message: Human-readable message
        status_code: HTTP-equivalent status code (if applicable)
        code: Machine-readable code (e.g. "canceled")
    """

    kind: ErrorKind
    default_message: str = "Analysis failed. Please try again."
    default_status: int | None = None

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        """Initialize operation error.

        Args:
            message: Error message (defaults to the subclass message).
            status_code: HTTP status code (defaults to the subclass status).
            code: Optional machine-readable code.
        """
        message = message or self.default_message
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        self.code = code

    @property
    def is_silent(self) -> bool:
        """Whether user-facing error surfaces should suppress this error."""
        return self.kind == ErrorKind.CANCELED

    def to_dict(self) -> dict[str, Any]:
        """Outward error payload consumed by UI and API layers."""
        payload: dict[str, Any] = {
            "type": "api",
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.status_code is not None:
            payload["statusCode"] = self.status_code
        if self.code is not None:
            payload["code"] = self.code
        return payload

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, status_code={self.status_code!r}, message={self.message!r})"


class PayloadValidationError(OperationError):
    """Malformed caller input, rejected before any network call."""

    kind = ErrorKind.VALIDATION
    default_message = "Invalid image data provided"
    default_status = 400


class ConfigurationError(OperationError):
    """No usable credential could be resolved."""

    kind = ErrorKind.CONFIG
    default_message = "No API key available. Please provide your Gemini API key in settings."


class AuthError(OperationError):
    """Credential rejected (401/403 or failed validation)."""

    kind = ErrorKind.AUTH
    default_message = "Invalid API key. Please check your Gemini API key in settings."
    default_status = 401


class BadRequestError(OperationError):
    """Model refused the request (400 or another unexpected 4xx)."""

    kind = ErrorKind.BAD_REQUEST
    default_message = "Invalid request. Please try with a different image."
    default_status = 400


class RateLimitError(OperationError):
    """Local budget exhausted or 429 from a model."""

    kind = ErrorKind.RATE_LIMIT
    default_message = "Rate limit exceeded. Please wait a moment and try again."
    default_status = 429

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        retry_after: int | None = None,
        failures: list[tuple[str, OperationError]] | None = None,
    ) -> None:
        """Initialize rate limit error.

        Args:
            message: Error message.
            status_code: HTTP status code.
            code: Optional machine-readable code.
            retry_after: Seconds to wait before retrying (optional).
            failures: Per-model failures when every model was rate limited.
        """
        super().__init__(message, status_code, code)
        self.retry_after = retry_after
        self.failures = list(failures or [])


class NoFoodRecognizedError(OperationError):
    """The model answered, but no food item could be extracted."""

    kind = ErrorKind.NO_FOOD
    default_message = "No food was recognized in this photo. Try a clearer shot of your meal."
    default_status = 422


class ParseError(OperationError):
    """Response could not be interpreted at all."""

    kind = ErrorKind.PARSE
    default_message = "Failed to parse analysis results. Please try again with a clearer image."


class ServerError(OperationError):
    """5xx from a model."""

    kind = ErrorKind.SERVER
    default_message = "Gemini service temporarily unavailable. Please try again later."
    default_status = 503


class TransportError(OperationError):
    """Low-level network failure."""

    kind = ErrorKind.TRANSPORT
    default_message = "Analysis failed. Please check your internet connection and try again."


class RequestTimeoutError(OperationError):
    """No response within the configured duration."""

    kind = ErrorKind.TIMEOUT
    default_message = "Request timeout. Please try again."
    default_status = 408


class CanceledError(OperationError):
    """Caller-triggered cancellation."""

    kind = ErrorKind.CANCELED
    default_message = "Canceled"
    default_status = 499

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message, code="canceled")


class ModelsExhaustedError(OperationError):
    """Every model in the fallback order failed non-fatally.

    Attributes:
        failures: Final failure per model, in the order models were attempted
    """

    kind = ErrorKind.EXHAUSTED
    default_status = 503

    def __init__(self, failures: list[tuple[str, OperationError]]) -> None:
        self.failures = list(failures)
        reasons = "; ".join(f"{model_id}: {error.message}" for model_id, error in self.failures)
        super().__init__(f"All models failed. {reasons}" if reasons else "No models configured")


def policy_for(error: OperationError) -> FailurePolicy:
    """Look up the failure policy for an error."""
    return FAILURE_POLICIES[error.kind]
