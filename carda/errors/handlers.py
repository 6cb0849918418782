"""Engine error types and a handler that logs and counts them with context."""

import logging
import threading
import traceback
from collections import Counter, deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, Iterator, List, Optional


class ErrorSeverity(Enum):
    """How bad an error is; selects the log level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """What kind of failure an error represents."""
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    MERGE = "merge"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass
class ErrorContext:
    """Where an error happened: the operation and the contacts involved."""
    operation: str
    contact_ids: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "contact_ids": list(self.contact_ids),
            "details": dict(self.details),
            "occurred_at": self.occurred_at.isoformat(),
        }


class BaseCardaError(Exception):
    """Base exception for all engine errors.

    Subclasses set ``default_severity`` and ``category``; callers may still
    override the severity per instance.
    """

    default_severity = ErrorSeverity.MEDIUM
    category = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        severity: Optional[ErrorSeverity] = None,
        category: Optional[ErrorCategory] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context
        self.cause = cause
        self.severity = severity or self.default_severity
        if category is not None:
            self.category = category
        self.raised_at = datetime.now()
        self.stack_trace = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the error for structured logging."""
        return {
            "error_type": type(self).__name__,
            "error_message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict() if self.context else None,
            "cause": repr(self.cause) if self.cause else None,
            "raised_at": self.raised_at.isoformat(),
        }


class ContactNotFoundError(BaseCardaError):
    """A referenced contact id is missing from the collection."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, contact_id: str, context: Optional[ErrorContext] = None):
        super().__init__(f"Contact not found: {contact_id}", context=context)
        self.contact_id = contact_id


class ValidationError(BaseCardaError):
    """Invalid input handed to the engine."""

    default_severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message, context=context)
        self.field = field
        self.value = value


class MalformedFieldChoiceError(ValidationError):
    """A field-choice map does not match the contact model.

    Raised for unknown field names and for choice values that are neither a
    side nor an explicit value. Indicates a caller/engine contract mismatch.
    """

    default_severity = ErrorSeverity.HIGH

    def __init__(
        self,
        field: str,
        value: Any = None,
        reason: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(
            reason or f"Unknown merge field: {field!r}", field=field, value=value, context=context
        )


class InvalidMergeError(BaseCardaError):
    """The requested merge is not meaningful (e.g. a contact with itself)."""

    category = ErrorCategory.MERGE


class PersistenceError(BaseCardaError):
    """A store operation failed part-way through a merge or undo.

    ``phase`` names the step that failed, e.g. ``append_history`` or
    ``save_contacts``.
    """

    default_severity = ErrorSeverity.HIGH
    category = ErrorCategory.PERSISTENCE

    def __init__(
        self,
        message: str,
        phase: str,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, context=context, cause=cause)
        self.phase = phase


class ConfigurationError(BaseCardaError):
    """Invalid configuration value."""

    default_severity = ErrorSeverity.HIGH
    category = ErrorCategory.CONFIGURATION


class ErrorHandler:
    """Logs engine errors with the innermost active context and keeps counts."""

    def __init__(self, logger: Optional[logging.Logger] = None, history_size: int = 1000):
        self.logger = logger or logging.getLogger(__name__)
        self._local = threading.local()
        self._counts: Counter = Counter()
        self._recent: Deque[BaseCardaError] = deque(maxlen=history_size)

    def _stack(self) -> List[ErrorContext]:
        if not hasattr(self._local, "stack"):
            self._local.stack = []
        return self._local.stack

    @contextmanager
    def error_context(self, operation: str, **kwargs: Any) -> Iterator[ErrorContext]:
        """Attach a context to errors handled inside the block.

        Usage:
            with handler.error_context("merge", contact_ids=[a, b]):
                ...
        """
        context = ErrorContext(operation=operation, **kwargs)
        stack = self._stack()
        stack.append(context)
        try:
            yield context
        finally:
            stack.remove(context)

    def get_current_context(self) -> Optional[ErrorContext]:
        stack = self._stack()
        return stack[-1] if stack else None

    def handle_error(
        self,
        error: Exception,
        operation: Optional[str] = None,
        reraise: bool = True,
    ) -> BaseCardaError:
        """Log and count an error, wrapping foreign exceptions.

        Args:
            error: The exception that was caught
            operation: Overrides the operation name of the active context
            reraise: Raise the (possibly wrapped) error instead of returning it
        """
        context = self.get_current_context()
        if context is None and operation:
            context = ErrorContext(operation=operation)
        elif context is not None and operation:
            context.operation = operation

        if isinstance(error, BaseCardaError):
            handled = error
            if handled.context is None:
                handled.context = context
        else:
            handled = BaseCardaError(str(error), context=context, cause=error)

        self.logger.log(
            _LOG_LEVELS[handled.severity],
            f"{type(handled).__name__}: {handled.message}",
            extra=handled.to_dict(),
        )
        self._counts[type(handled).__name__] += 1
        self._recent.append(handled)

        if reraise:
            if handled is error:
                raise handled
            raise handled from error
        return handled

    def get_error_stats(self) -> Dict[str, Any]:
        by_severity = Counter(e.severity.value for e in self._recent)
        return {
            "total_errors": len(self._recent),
            "error_counts": dict(self._counts),
            "severity_distribution": {s.value: by_severity.get(s.value, 0) for s in ErrorSeverity},
        }
