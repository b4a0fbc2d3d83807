"""mongoline core -- errors, result envelope, logging and settings.

Architecture::

    errors.py      Structured error hierarchy (MongolineError and subclasses)
    result.py      Result[T] envelope (Ok / Err)
    logging.py     structlog configuration and bound loggers
    settings.py    MONGOLINE_* environment settings (pydantic-settings)
"""

from mongoline.core.errors import (
    ConfigError,
    DatabaseConnectionError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    MissingConfigError,
    MongolineError,
    QueryError,
    RecordNotFoundError,
    SchemaError,
    ValidationError,
    is_retryable,
)
from mongoline.core.result import Err, Ok, Result

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
    "Result",
    "Ok",
    "Err",
]
