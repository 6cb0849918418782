"""Error handling module for the contact merge engine."""

from .handlers import (
    ErrorHandler,
    ErrorContext,
    ErrorSeverity,
    ErrorCategory,
    BaseCardaError,
    ContactNotFoundError,
    ValidationError,
    MalformedFieldChoiceError,
    InvalidMergeError,
    PersistenceError,
    ConfigurationError,
)

__all__ = [
    "ErrorHandler",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "BaseCardaError",
    "ContactNotFoundError",
    "ValidationError",
    "MalformedFieldChoiceError",
    "InvalidMergeError",
    "PersistenceError",
    "ConfigurationError",
]
