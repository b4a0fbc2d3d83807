"""
Structured error types for mongoline.

Every failure an adapter operation can report is a ``MongolineError``
subclass carrying a category, a retryable flag, structured context and the
chained driver exception (if any).  Collection operations never raise these
across their call boundary: they are returned inside ``Err`` so callers get
the same error-first, single-result contract for every verb.

Manifesto:
    - **Typed Error Hierarchy:** criteria, schema, config, connection and
      driver failures are distinct types
    - **Explicit Retry Semantics:** only connection errors are retryable
    - **Rich Context:** errors carry the collection and operation they came from
    - **Error Chaining:** the original ``PyMongoError`` is kept as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      MongolineError                          │
        │  (category, retryable, context, cause)                       │
        ├──────────────────────────────────────────────────────────────┤
        │  QueryError          ValidationError      ConfigError        │
        │  (PARSE)             (VALIDATION)         (CONFIG)           │
        │                           │                    │             │
        │                      SchemaError        MissingConfigError   │
        │                                         InvalidConfigError   │
        │                                                              │
        │  DatabaseConnectionError    DatabaseError                    │
        │  (DATABASE, retryable)      (DATABASE)                       │
        │                                  │                           │
        │                           RecordNotFoundError                │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = QueryError("where must be a mapping")
    >>> error.category
    <ErrorCategory.PARSE: 'PARSE'>
    >>> error.with_context(collection="user", operation="find").context.collection
    'user'

Tags:
    error-handling, exception-hierarchy, error-context, mongoline
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and logging."""

    # Infrastructure
    DATABASE = "DATABASE"         # Connection and driver command failures

    # Input
    PARSE = "PARSE"               # Malformed criteria
    VALIDATION = "VALIDATION"     # Schema, value coercion

    # Configuration
    CONFIG = "CONFIG"             # Bad connection URL, missing settings

    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        collection: Identity of the collection the operation ran against
        operation: Adapter verb (find, insert, update, destroy, ...)
        metadata: Additional key-value pairs
    """

    collection: str | None = None
    operation: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["collection", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class MongolineError(Exception):
    """
    Base exception for all mongoline errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    rarely pass them explicitly.
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

    def with_context(self, **kwargs: Any) -> MongolineError:
        """
        Add context to this error (fluent API).

        Usage:
            return Err(DatabaseError("insert failed").with_context(
                collection="user", operation="insert"
            ))
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
# CRITERIA ERRORS
# =============================================================================


class QueryError(MongolineError):
    """Malformed criteria. Raised before any I/O is attempted."""

    default_category = ErrorCategory.PARSE
    default_retryable = False


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(MongolineError):
    """
    Value or schema validation error.

    Never retryable - the values must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class SchemaError(ValidationError):
    """Invalid field spec, or a value that cannot be coerced to its declared type."""
    pass


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(MongolineError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseConnectionError(MongolineError):
    """Could not open, verify or reuse a connection to the server."""

    default_category = ErrorCategory.DATABASE
    default_retryable = True


class DatabaseError(MongolineError):
    """A driver command failed."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class RecordNotFoundError(DatabaseError):
    """An operation that requires existing records matched none."""
    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, MongolineError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "MongolineError",
    "QueryError",
    "ValidationError",
    "SchemaError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "DatabaseConnectionError",
    "DatabaseError",
    "RecordNotFoundError",
    "is_retryable",
]
