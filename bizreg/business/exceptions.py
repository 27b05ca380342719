"""
Business Logic Exception Classes

Exception hierarchy for business-rule and validation failures raised by the
registration service. Every exception carries a stable ``error_code`` and an
HTTP status so the Flask error handlers can render a uniform error body
without inspecting exception types.

Classes:
    BaseBusinessException: Base class for all business logic exceptions
    DataValidationError: Missing/invalid fields and malformed query parameters
    MalformedControlNumber: Control number text that does not parse
    ImmutableFieldError: Attempt to set a server-managed field
    ResourceNotFoundError: Lookup miss surfaced at the HTTP boundary
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger("bizreg.business.exceptions")


class ErrorSeverity(Enum):
    """Severity used when logging business exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BaseBusinessException(Exception):
    """
    Base exception class for all business logic failures.

    Attributes:
        message (str): User-facing error message
        error_code (str): Stable identifier for client handling
        http_status_code (int): HTTP status code for the Flask response
        severity (ErrorSeverity): Severity for log routing
        context (Dict[str, Any]): Additional structured context
        timestamp (datetime): When the error was raised
    """

    default_error_code = "BUSINESS_ERROR"
    default_status_code = 400

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        http_status_code: Optional[int] = None,
        severity: ErrorSeverity = ErrorSeverity.LOW,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.http_status_code = http_status_code or self.default_status_code
        self.severity = severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API error responses."""
        payload: Dict[str, Any] = {
            "message": self.message,
            "error_code": self.error_code,
        }
        if self.context:
            payload["context"] = self.context
        return payload

    def __str__(self) -> str:
        return self.message


class DataValidationError(BaseBusinessException):
    """
    Raised when input data fails validation.

    Carries the offending field (first failure) and the full list of
    per-field errors as ``[{"field": ..., "message": ...}]``.
    """

    default_error_code = "VALIDATION_ERROR"
    default_status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        **kwargs,
    ) -> None:
        if errors is None and field is not None:
            errors = [{"field": field, "message": message}]
        self.errors = errors or []
        self.field = field or (self.errors[0]["field"] if self.errors else None)
        super().__init__(message, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        if self.errors:
            payload["errors"] = self.errors
        return payload


class MalformedControlNumber(DataValidationError):
    """Control number text that is not ``YYYY-NNNN``."""

    default_error_code = "INVALID_CONTROL_NUMBER"

    def __init__(self, message: str, value: Optional[str] = None, **kwargs) -> None:
        self.value = value
        super().__init__(message, field=kwargs.pop("field", "controlNumber"), **kwargs)


class ImmutableFieldError(DataValidationError):
    """Payload attempted to set a field the service manages itself."""

    default_error_code = "IMMUTABLE_FIELD"


class ResourceNotFoundError(BaseBusinessException):
    """Business record lookup miss, raised only at the HTTP boundary."""

    default_error_code = "NOT_FOUND"
    default_status_code = 404

    def __init__(self, resource: str = "Business", identifier: Optional[str] = None, **kwargs) -> None:
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found", **kwargs)


__all__ = [
    "ErrorSeverity",
    "BaseBusinessException",
    "DataValidationError",
    "MalformedControlNumber",
    "ImmutableFieldError",
    "ResourceNotFoundError",
]
