"""
Standardised error handling for ShopReel.
"""

from shopreel.core.constants import ErrorCode, MAX_ERROR_MESSAGE_LEN


class PipelineError(Exception):
    """Raised when an orchestration operation fails with a known condition."""

    code = ErrorCode.INTERNAL

    def __init__(self, message: str, code: str | None = None):
        self.code = code or self.code
        self.message = message[:MAX_ERROR_MESSAGE_LEN]
        super().__init__(f"[{self.code}] {self.message}")


class NotFoundError(PipelineError):
    code = ErrorCode.NOT_FOUND


class ConflictError(PipelineError):
    """Duplicate in-flight job, or restart of a job that may not be restarted."""
    code = ErrorCode.CONFLICT


class PreconditionFailedError(PipelineError):
    code = ErrorCode.PRECONDITION_FAILED


class ValidationError(PipelineError):
    code = ErrorCode.VALIDATION


class ProviderError(PipelineError):
    """Any failure reported by (or while talking to) an external provider."""
    code = ErrorCode.PROVIDER_FAILED


class InternalError(PipelineError):
    code = ErrorCode.INTERNAL


def error_message(error: BaseException, default: str = "Unknown error occurred") -> str:
    """Best-effort human message for an arbitrary exception."""
    if isinstance(error, PipelineError):
        return error.message or default
    text = str(error).strip()
    return text[:MAX_ERROR_MESSAGE_LEN] if text else default
