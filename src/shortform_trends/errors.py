"""
Error taxonomy shared by adapters, the enricher and the service layer
"""

from enum import Enum
from typing import Optional

from shortform_trends.models import Platform, RateLimitResult


class ErrorKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    VALIDATION_FAILURE = "validation_failure"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"


class TrendPipelineError(Exception):
    """Base class for every classified failure in the pipeline"""

    kind: ErrorKind = ErrorKind.PERMANENT
    http_status: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str,
        platform: Optional[Platform] = None,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.source = source
        self.status_code = status_code


class MissingCredentialError(TrendPipelineError):
    """No API key configured. Never retried."""

    kind = ErrorKind.MISSING_CREDENTIAL

    def __init__(self, env_var: str, **kwargs):
        super().__init__(f"{env_var} is not set in environment variables", **kwargs)
        self.env_var = env_var
        self.hint = f"Set {env_var} in the environment or .env file"


class QuotaExceededError(TrendPipelineError):
    kind = ErrorKind.QUOTA_EXCEEDED
    http_status = 429

    def __init__(self, message: str, retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class TransientError(TrendPipelineError):
    """Timeouts, network errors, 5xx and plain 429s"""

    kind = ErrorKind.TRANSIENT
    retryable = True


class StoreUnavailableError(TransientError):
    """Cache / rate-limit backing store could not be reached"""


class PermanentError(TrendPipelineError):
    """Malformed request or any other non-retryable upstream rejection"""

    kind = ErrorKind.PERMANENT


class ValidationFailureError(TrendPipelineError):
    """Upstream answered but the payload does not match the schema"""

    kind = ErrorKind.VALIDATION_FAILURE


class NotFoundError(TrendPipelineError):
    kind = ErrorKind.NOT_FOUND
    http_status = 404


class RateLimitExceededError(TrendPipelineError):
    kind = ErrorKind.RATE_LIMITED
    http_status = 429

    def __init__(self, identifier: str, result: RateLimitResult):
        super().__init__(f"Rate limit exceeded for {identifier}")
        self.identifier = identifier
        self.result = result


def to_http_status(error: BaseException) -> int:
    """User-visible status for an error surfacing at an API boundary"""
    if isinstance(error, TrendPipelineError):
        return error.http_status
    return 500
