"""Core pipeline components.

Components are imported from their modules directly (snapcal.core.fallback,
snapcal.core.rate_limiter, ...); only the error types and the cancel token
are re-exported here.
"""

from snapcal.core.cancellation import CancelToken
from snapcal.core.errors import ErrorKind, FailurePolicy, OperationError

__all__ = ["CancelToken", "ErrorKind", "FailurePolicy", "OperationError"]
