"""
Structured error handling for the tab session engine.

Provides the exception taxonomy, error context, and the handler used at the
boundary of a user action.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecoveryStrategy(Enum):
    """How the caller should react to a failed action."""
    NOTIFY = "notify"
    SKIP = "skip"
    REFRESH = "refresh"


@dataclass
class ErrorContext:
    """
    Context information about an error.

    Captures what is needed to explain a failure to the user and to debug it.
    """

    error_type: str
    message: str
    code: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    # Action context
    action_type: Optional[str] = None
    action_data: Optional[Dict[str, Any]] = None

    # Additional metadata
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'error_type': self.error_type,
            'message': self.message,
            'code': self.code,
            'timestamp': self.timestamp.isoformat(),
            'action_type': self.action_type,
            'action_data': self.action_data,
            'metadata': self.metadata
        }


class ExtensionError(Exception):
    """
    Base exception for all engine errors.

    Every error is recoverable at the boundary of a user action; none of them
    is fatal to the running engine.
    """

    code: str = "EXTENSION_ERROR"
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    recovery_strategy: RecoveryStrategy = RecoveryStrategy.NOTIFY

    def __init__(
        self,
        message: str,
        details: Any = None,
        context: Optional[ErrorContext] = None,
        **kwargs
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.context = context or ErrorContext(
            error_type=self.__class__.__name__,
            message=message,
            code=self.code
        )

        # Allow overriding context fields
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)


class ValidationError(ExtensionError):
    """Malformed input data: bad name, bad URL, empty required field."""
    code = "VALIDATION_ERROR"
    severity = ErrorSeverity.LOW
    recovery_strategy = RecoveryStrategy.NOTIFY


class BrowserApiError(ExtensionError):
    """An external browser capability is unavailable or its call failed."""
    code = "BROWSER_API_ERROR"
    severity = ErrorSeverity.HIGH
    recovery_strategy = RecoveryStrategy.REFRESH


class SessionError(ExtensionError):
    """A session-level operation cannot proceed."""
    code = "SESSION_ERROR"
    severity = ErrorSeverity.MEDIUM
    recovery_strategy = RecoveryStrategy.NOTIFY


def describe_error(error: BaseException) -> str:
    """Human-readable message for any exception."""
    if isinstance(error, ExtensionError):
        return error.message
    return str(error) or type(error).__name__


@dataclass
class ErrorHandler:
    """
    Records errors caught at the user-action boundary.
    """

    max_history: int = 100

    # Error history
    errors: List[ErrorContext] = field(default_factory=list)

    def handle_error(
        self,
        error: Exception,
        action_context: Optional[Dict[str, Any]] = None
    ) -> RecoveryStrategy:
        """
        Record an error and determine the recovery strategy.

        Args:
            error: The exception that occurred
            action_context: Context about the action that failed

        Returns:
            RecoveryStrategy to use
        """
        if isinstance(error, ExtensionError):
            context = error.context
        else:
            context = ErrorContext(
                error_type=type(error).__name__,
                message=describe_error(error)
            )

        if action_context:
            context.action_type = action_context.get('action_type')
            context.action_data = action_context.get('action_data')

        self.errors.append(context)
        if len(self.errors) > self.max_history:
            self.errors.pop(0)

        if isinstance(error, ExtensionError):
            return error.recovery_strategy
        return RecoveryStrategy.NOTIFY

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of all errors."""
        error_counts = {}
        for error in self.errors:
            error_type = error.error_type
            error_counts[error_type] = error_counts.get(error_type, 0) + 1

        return {
            'total_errors': len(self.errors),
            'error_counts': error_counts,
            'recent_errors': [e.to_dict() for e in self.errors[-5:]]
        }

    def clear_errors(self) -> None:
        """Clear error history."""
        self.errors.clear()
