"""
Database Exception Handling

Storage-layer exception hierarchy plus the translation of PyMongo and
pybreaker errors into it. Two failure classes matter to callers:

- ``StorageUnavailable``: the store could not complete an operation
  (connection loss, timeout, open circuit). Retryable by the client, never
  swallowed.
- ``UniqueConstraintViolation``: an insert collided on ``controlNumber``.
  With an atomic allocator this is unreachable, so it is logged at critical
  level and never retried with a fresh number.

Retry (tenacity) and circuit-breaker (pybreaker) policies are built per store
instance by ``create_read_retrying`` and ``create_circuit_breaker`` so that
breaker state never leaks between stores.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Optional, Type

import structlog
from prometheus_client import Counter
from pybreaker import CircuitBreaker, CircuitBreakerError
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

store_errors_total = Counter(
    "bizreg_store_errors_total",
    "Record store errors by type and operation",
    ["error_type", "operation"],
)

# Transient errors a read may be retried on.
TRANSIENT_ERRORS = (
    AutoReconnect,
    ConnectionFailure,
    NetworkTimeout,
    ServerSelectionTimeoutError,
    ExecutionTimeout,
)


class DatabaseOperationType(Enum):
    READ = "read"
    WRITE = "write"
    COUNTER = "counter"
    AGGREGATE = "aggregate"
    ADMIN = "admin"


class DatabaseException(Exception):
    """
    Base exception for record store failures.

    Args:
        message: Human readable description
        operation: Store operation that failed
        collection: Collection involved, when known
        original_error: Underlying driver exception
    """

    error_code = "DATABASE_ERROR"
    http_status_code = 500
    retryable = False
    client_message = "Database operation failed"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.collection = collection
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Client-facing error body; driver detail stays in the logs."""
        return {
            "message": self.client_message,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }


class StorageUnavailable(DatabaseException):
    """The store could not complete the operation; safe for the client to retry."""

    error_code = "STORAGE_UNAVAILABLE"
    http_status_code = 503
    retryable = True
    client_message = "Record store unavailable, please retry"


class UniqueConstraintViolation(DatabaseException):
    """Insert rejected by the unique index on a key (``controlNumber``)."""

    error_code = "UNIQUE_CONSTRAINT_VIOLATION"
    http_status_code = 500
    client_message = "Registration could not be completed"

    def __init__(self, message: str, key: Optional[str] = None, value: Any = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.key = key
        self.value = value


class ConfigurationError(DatabaseException):
    """Store could not be built from the supplied configuration."""

    error_code = "STORE_CONFIGURATION_ERROR"


def classify_pymongo_error(error: Exception) -> Type[DatabaseException]:
    """Map a driver or breaker exception to the store exception class."""
    if isinstance(error, DuplicateKeyError):
        return UniqueConstraintViolation
    if isinstance(error, (CircuitBreakerError, PyMongoError)):
        return StorageUnavailable
    return DatabaseException


def handle_database_error(
    error: Exception,
    operation: str,
    collection: Optional[str] = None,
) -> DatabaseException:
    """
    Translate ``error`` into a ``DatabaseException`` and log it.

    The caller raises the returned exception (``raise handle_database_error(...) from e``).
    """
    if isinstance(error, DatabaseException):
        return error

    exception_class = classify_pymongo_error(error)
    store_errors_total.labels(error_type=type(error).__name__, operation=operation).inc()

    if exception_class is UniqueConstraintViolation:
        details = getattr(error, "details", None) or {}
        key_value = details.get("keyValue") or {}
        key = next(iter(key_value), None)
        return UniqueConstraintViolation(
            f"Duplicate key on {key or 'unique index'} in '{collection}'",
            key=key,
            value=key_value.get(key) if key else None,
            operation=operation,
            collection=collection,
            original_error=error,
        )

    logger.error(
        "store_operation_failed",
        operation=operation,
        collection=collection,
        error_type=type(error).__name__,
        error=str(error),
    )
    if isinstance(error, CircuitBreakerError):
        message = f"Record store circuit open during {operation}"
    else:
        message = f"Record store unavailable during {operation}: {error}"
    return exception_class(
        message,
        operation=operation,
        collection=collection,
        original_error=error,
    )


def create_read_retrying(attempts: int = 3, wait_seconds: float = 0.2) -> Retrying:
    """
    Retry policy for idempotent reads.

    Writes are never retried: a retried counter increment could burn a
    sequence and a retried insert could double-persist.
    """
    return Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=wait_seconds, max=wait_seconds * 10),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )


def create_circuit_breaker(
    name: str,
    fail_max: int = 5,
    reset_timeout: float = 30,
    exclude: Iterable[Type[Exception]] = (DuplicateKeyError,),
) -> CircuitBreaker:
    """Circuit breaker for one store; constraint violations do not count as failures."""
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        exclude=list(exclude),
        name=name,
    )


__all__ = [
    "DatabaseOperationType",
    "DatabaseException",
    "StorageUnavailable",
    "UniqueConstraintViolation",
    "ConfigurationError",
    "TRANSIENT_ERRORS",
    "classify_pymongo_error",
    "handle_database_error",
    "create_read_retrying",
    "create_circuit_breaker",
]
