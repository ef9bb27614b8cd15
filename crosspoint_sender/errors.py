"""
Error taxonomy for the note sender.

Every failure raised by the core derives from :class:`SenderError`, which
carries a machine-readable code, a category, a severity and a user-facing
message. Errors log themselves on construction at a level matching their
severity so that suppressed errors still leave a trace.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Error categories for classification and handling."""
    CONVERSION = "conversion"
    PACKAGING = "packaging"
    NETWORK = "network"
    CONFIGURATION = "configuration"


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SenderError(Exception):
    """Base error with classification and context."""

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        cause: Optional[BaseException] = None,
        user_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.severity = severity
        self.cause = cause
        self.user_message = user_message or message
        self.details = details or {}

        self._log_error()

    def _log_error(self) -> None:
        log_level = {
            ErrorSeverity.LOW: logging.DEBUG,
            ErrorSeverity.MEDIUM: logging.WARNING,
            ErrorSeverity.HIGH: logging.ERROR,
        }.get(self.severity, logging.ERROR)

        logger.log(log_level, "%s: %s", self.error_code, self.message, extra={
            "error_code": self.error_code,
            "category": self.category.value,
            "severity": self.severity.value,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        })

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "category": self.category.value,
            "severity": self.severity.value,
            "details": self.details,
        }


class ConversionError(SenderError):
    """The markdown engine failed to render the document."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, **kwargs):
        super().__init__(
            message=message,
            error_code="CONVERSION_FAILED",
            category=ErrorCategory.CONVERSION,
            severity=ErrorSeverity.MEDIUM,
            cause=cause,
            **kwargs,
        )


class PackagingError(SenderError):
    """The EPUB archive could not be assembled."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, **kwargs):
        super().__init__(
            message=message,
            error_code="PACKAGING_FAILED",
            category=ErrorCategory.PACKAGING,
            severity=ErrorSeverity.MEDIUM,
            cause=cause,
            **kwargs,
        )


class DirectoryCreationError(SenderError):
    """A single ``mkdir`` request failed; callers suppress it."""

    def __init__(
        self,
        parent: str,
        name: str,
        status_code: Optional[int] = None,
        response_text: str = "",
        cause: Optional[BaseException] = None,
    ):
        if status_code is not None:
            message = (
                f"Folder creation for {name} at {parent} failed or already exists "
                f"(status {status_code})"
            )
        else:
            message = f"Folder creation for {name} at {parent} failed: {cause}"
        super().__init__(
            message=message,
            error_code="MKDIR_FAILED",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.LOW,
            cause=cause,
            details={
                "parent": parent,
                "name": name,
                "status_code": status_code,
                "response_text": response_text,
            },
        )
        self.parent = parent
        self.name = name
        self.status_code = status_code


class TransportError(SenderError):
    """The final upload failed: network error or non-200 response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_text: str = "",
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            message=message,
            error_code="UPLOAD_FAILED",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.HIGH,
            cause=cause,
            details={"status_code": status_code, "response_text": response_text},
        )
        self.status_code = status_code
        self.response_text = response_text


class ConfigurationError(SenderError):
    """The device address or another setting is missing or invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="INVALID_CONFIGURATION",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            details={"field": field} if field else None,
        )
        self.field = field
