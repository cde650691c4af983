from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from prometheus_client import Counter

error_counter = Counter(
    "app_errors_total",
    "Total number of errors",
    ["error_type", "severity", "category"],
)


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION = "validation"
    EXTERNAL_SERVICE = "external_service"
    BACKEND_DATA = "backend_data"
    CONFIGURATION = "configuration"
    BUSINESS_LOGIC = "business_logic"
    UNKNOWN = "unknown"


class BaseApplicationException(Exception):
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    retryable: bool = False
    user_message: str | None = None

    def __init__(
        self,
        message: str,
        *,
        severity: ErrorSeverity | None = None,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity or self.severity
        self.category = category or self.category
        self.retryable = retryable if retryable is not None else self.retryable
        self.user_message = user_message or self.user_message or message
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(UTC)
        self.error_id = f"ERR-{uuid.uuid4().hex[:12].upper()}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_id": self.error_id,
            "timestamp": self.timestamp.isoformat(),
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationException(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.VALIDATION
    user_message = "The provided data is invalid"


class ExternalServiceException(BaseApplicationException):
    severity = ErrorSeverity.ERROR
    category = ErrorCategory.EXTERNAL_SERVICE
    retryable = True
    user_message = "An external service is temporarily unavailable"


class ConfigurationException(BaseApplicationException):
    severity = ErrorSeverity.CRITICAL
    category = ErrorCategory.CONFIGURATION


class ConfigurationError(ConfigurationException):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field


class InputError(ValidationException):
    user_message = "Message is required"


class IntentMismatchError(ValidationException):
    def __init__(self, declared: str, requested: str, message: str, user_message: str) -> None:
        super().__init__(
            message,
            user_message=user_message,
            details={"declared": declared, "requested": requested},
        )
        self.declared = declared
        self.requested = requested


class UpstreamModelError(ExternalServiceException):
    retryable = False
    user_message = "Failed to process request"


class BackendRequestError(ExternalServiceException):
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        status_text: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = {"status_code": status_code, "status_text": status_text, **(details or {})}
        super().__init__(message, details=merged)
        self.status_code = status_code
        self.status_text = status_text


class BackendDataError(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.BACKEND_DATA


class UnsupportedOperationError(BaseApplicationException):
    severity = ErrorSeverity.WARNING
    category = ErrorCategory.BUSINESS_LOGIC


def record_error(error: Exception) -> None:
    if isinstance(error, BaseApplicationException):
        severity, category = error.severity.value, error.category.value
    else:
        severity, category = ErrorSeverity.ERROR.value, ErrorCategory.UNKNOWN.value
    error_counter.labels(
        error_type=type(error).__name__,
        severity=severity,
        category=category,
    ).inc()
