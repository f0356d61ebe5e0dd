"""
Structured error types for the bulk cache client.

Every failure the client surfaces is a ``CacheError`` carrying enough
metadata for the caller to decide what to do next: retry later, fix the
data, or fix the configuration. The client itself never retries.

Manifesto:
    - **Typed hierarchy:** Connectivity, data access and serialization
      failures are different types, not different messages
    - **Explicit retry semantics:** Each error knows if it's retryable
    - **Rich context:** Errors carry the operation and key for logging
    - **Error chaining:** The driver exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                        CacheError                            │
        │          (category, retryable, context, cause)              │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ConnectivityError     DataAccessError      SerializationError│
        │  (NETWORK, retry)      (STORE)              (SERIALIZATION)   │
        │                            │                     │            │
        │                 TransientDataAccessError  DeserializationError│
        │                 PermanentDataAccessError                      │
        │                                                              │
        │  ConfigError (CONFIG)                                        │
        │       │                                                      │
        │  InvalidConfigError   ClientNotEnabledError                  │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = ConnectivityError("Connection refused")
    >>> error.retryable
    True
    >>> error.category
    <ErrorCategory.NETWORK: 'NETWORK'>

    >>> error = PermanentDataAccessError("WRONGTYPE").with_context(operation="get")
    >>> error.context.operation
    'get'

Guardrails:
    ❌ DON'T: Retry inside the client
    ✅ DO: Let the caller consult ``retryable`` and decide

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, retry-logic, redis, bulkcache
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        NETWORK: Pool exhausted, connection refused, timeouts
        STORE: The store answered but rejected or failed the command
        SERIALIZATION: Key/value could not be converted to or from bytes
        CONFIG: Missing or invalid client configuration
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    NETWORK = "NETWORK"
    STORE = "STORE"
    SERIALIZATION = "SERIALIZATION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Only the fields relevant to the failure are set; ``to_dict()`` drops
    the rest so log lines stay short.

    Attributes:
        operation: Client operation that failed (``get``, ``remove``, ...)
        key_count: Number of keys in the batch, for bulk operations
        key: Repr of the key that failed, for single-key failures
        reply_code: Leading word of a Redis error reply (``WRONGTYPE``, ``LOADING``)
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    key_count: int | None = None
    key: str | None = None
    reply_code: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "key_count", "key", "reply_code"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class CacheError(Exception):
    """
    Base exception for all bulk cache client errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising sites only pass what differs from the defaults.

    Examples:
        >>> error = CacheError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> try:
        ...     raise OSError("socket closed")
        ... except OSError as e:
        ...     error = CacheError("Network error", cause=e)
        >>> error.cause
        OSError('socket closed')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CacheError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PermanentDataAccessError("WRONGTYPE").with_context(
                operation="get",
                key="'user:1'",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONNECTIVITY
# =============================================================================


class ConnectivityError(CacheError):
    """
    The store could not be reached for this call.

    Pool exhausted, connection refused, DNS failure, socket or read
    timeout. Always fatal to the current call and retryable by default;
    authentication failures are raised with ``retryable=False``.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


# =============================================================================
# DATA ACCESS
# =============================================================================


class DataAccessError(CacheError):
    """The store was reached but the command failed."""

    default_category = ErrorCategory.STORE
    default_retryable = False


class TransientDataAccessError(DataAccessError):
    """Store temporarily rejected the command (loading, busy, failover, OOM)."""

    default_retryable = True


class PermanentDataAccessError(DataAccessError):
    """Malformed command, type mismatch or script error. Will not succeed on retry."""

    default_retryable = False


# =============================================================================
# SERIALIZATION
# =============================================================================


class SerializationError(CacheError):
    """A key or value could not be converted to bytes."""

    default_category = ErrorCategory.SERIALIZATION
    default_retryable = False


class DeserializationError(SerializationError):
    """A stored payload could not be converted back to a value."""

    pass


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(CacheError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class ClientNotEnabledError(ConfigError):
    """Operation called before ``enable()`` or after ``disable()``."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Cache client is not enabled; cannot run {operation}",
            context=ErrorContext(operation=operation),
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CacheError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, CacheError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "CacheError",
    "ConnectivityError",
    "DataAccessError",
    "TransientDataAccessError",
    "PermanentDataAccessError",
    "SerializationError",
    "DeserializationError",
    "ConfigError",
    "InvalidConfigError",
    "ClientNotEnabledError",
    "is_retryable",
    "categorize_error",
]
