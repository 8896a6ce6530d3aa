from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ErrorSeverity(str, Enum):
    """Severity levels for status messages."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCode(str, Enum):
    """Standardized error codes for generation and chat requests."""
    UPSTREAM_STREAM_FAILED = "UPSTREAM_STREAM_FAILED"
    FINALIZE_PARSE_FAILED = "FINALIZE_PARSE_FAILED"
    DOCUMENT_SHAPE_INVALID = "DOCUMENT_SHAPE_INVALID"
    RULES_NOT_GENERATED = "RULES_NOT_GENERATED"
    SCHEMA_NOT_GENERATED = "SCHEMA_NOT_GENERATED"
    PATCH_PARSE_FAILED = "PATCH_PARSE_FAILED"
    STALE_RESULT = "STALE_RESULT"
    MISSING_LLM = "MISSING_LLM"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


SEVERITY_BY_CODE = {
    ErrorCode.STALE_RESULT: ErrorSeverity.WARNING,
    ErrorCode.RULES_NOT_GENERATED: ErrorSeverity.WARNING,
    ErrorCode.SCHEMA_NOT_GENERATED: ErrorSeverity.WARNING,
    ErrorCode.SERVICE_UNAVAILABLE: ErrorSeverity.CRITICAL,
}


class StatusMessage(BaseModel):
    """A single human-readable status line rendered by the UI.

    Attributes:
        message (str): Text shown to the user.
        severity (ErrorSeverity): How the UI should style the message.
        error_code (Optional[ErrorCode]): Set when the status reports a failure.
    """
    model_config = ConfigDict(extra="ignore")

    message: str
    severity: ErrorSeverity = ErrorSeverity.INFO
    error_code: Optional[ErrorCode] = None

    @property
    def is_error(self) -> bool:
        return self.error_code is not None


class DbtgenError(Exception):
    """Base class for request-scoped failures.

    None of these leave the workspace unusable; callers convert them to a
    ``StatusMessage`` and carry on.
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, error_code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code

    def to_status(self) -> StatusMessage:
        return StatusMessage(
            message=self.message,
            severity=SEVERITY_BY_CODE.get(self.error_code, ErrorSeverity.ERROR),
            error_code=self.error_code,
        )


class UpstreamStreamError(DbtgenError):
    """The generation backend failed mid-stream."""
    error_code = ErrorCode.UPSTREAM_STREAM_FAILED


class FinalizeError(DbtgenError):
    """The completed stream is not a valid document."""
    error_code = ErrorCode.FINALIZE_PARSE_FAILED


class RulesNotGeneratedError(DbtgenError):
    """A patch was requested before any rule set was finalized."""
    error_code = ErrorCode.RULES_NOT_GENERATED


class SchemaNotGeneratedError(DbtgenError):
    """Rule generation was requested before any schema was finalized."""
    error_code = ErrorCode.SCHEMA_NOT_GENERATED


class PatchParseError(DbtgenError):
    """The payload after the patch sentinel is not a valid patch."""
    error_code = ErrorCode.PATCH_PARSE_FAILED

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


class StaleResultError(DbtgenError):
    """A result arrived for a request that has since been superseded."""
    error_code = ErrorCode.STALE_RESULT
