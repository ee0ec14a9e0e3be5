# src/driver_lifecycle/core/exceptions/base.py
"""
Base Exception Class for the Session Lifecycle Core

Every exception raised by the framework inherits from AutomationException.
It carries structured context, recovery suggestions and a classification
(category, severity) so that failures can be logged as structured records
rather than bare strings.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from .enums import ErrorCategory, ErrorSeverity, LogLevel


@dataclass
class ErrorContext:
    """
    Structured context attached to an exception.

    Provides key/value data for debugging plus tags and metadata for
    monitoring systems.
    """

    data: Dict[str, Any] = field(default_factory=dict)
    tags: Set[str] = field(default_factory=set)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add(self, key: str, value: Any) -> 'ErrorContext':
        """Add context data."""
        self.data[key] = value
        return self

    def add_tag(self, tag: str) -> 'ErrorContext':
        """Add a tag for categorization."""
        self.tags.add(tag)
        return self

    def add_metadata(self, key: str, value: Any) -> 'ErrorContext':
        """Add metadata for monitoring systems."""
        self.metadata[key] = value
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "data": self.data.copy(),
            "tags": sorted(self.tags),
            "metadata": self.metadata.copy()
        }


class AutomationException(Exception):
    """
    Base exception class for all framework exceptions.

    Attributes:
        message: Human-readable error description
        error_code: Unique error identifier for tracking
        correlation_id: UUID for correlating related errors
        category: Error category for classification
        severity: Error severity level
        error_context: Additional context information
        recovery_suggestions: List of potential recovery actions
        timestamp: When the error occurred
        original_exception: Original exception that caused this error

    Example:
        >>> try:
        ...     launch()
        ... except Exception as e:
        ...     raise AutomationException(
        ...         message="Launch failed",
        ...         category=ErrorCategory.BROWSER,
        ...         severity=ErrorSeverity.HIGH,
        ...         original_exception=e
        ...     ).add_context("engine", "chrome") from e
    """

    def __init__(
            self,
            message: str,
            error_code: Optional[str] = None,
            correlation_id: Optional[str] = None,
            category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
            severity: ErrorSeverity = ErrorSeverity.MEDIUM,
            context: Optional[Dict[str, Any]] = None,
            recovery_suggestions: Optional[List[str]] = None,
            original_exception: Optional[BaseException] = None,
            log_level: Optional[LogLevel] = None
    ):
        """
        Initialize automation exception with error details.

        Args:
            message: Clear, actionable error description
            error_code: Unique identifier for this error type (auto-generated if None)
            correlation_id: UUID for tracking related errors (auto-generated if None)
            category: Error category for classification
            severity: Severity level for prioritization
            context: Additional debugging context
            recovery_suggestions: List of recovery actions
            original_exception: Original exception that caused this error
            log_level: Logging level for this exception (derived from severity if None)
        """
        super().__init__(message)

        self.message = message
        self.timestamp = datetime.now(timezone.utc)
        self.error_code = error_code or self._generate_error_code()
        self.correlation_id = correlation_id or str(uuid4())
        self.category = category
        self.severity = severity
        self.log_level = log_level or LogLevel.from_severity(severity)

        self.error_context = ErrorContext()
        if context:
            for key, value in context.items():
                self.error_context.add(key, value)

        for tag in category.get_monitoring_tags():
            self.error_context.add_tag(tag)

        self.recovery_suggestions = list(recovery_suggestions or [])

        self.original_exception = original_exception
        if original_exception is not None:
            self.error_context.add("original_type", type(original_exception).__name__)
            self.error_context.add("original_message", str(original_exception))

    def _generate_error_code(self) -> str:
        """Generate an error code based on exception type and timestamp."""
        class_name = self.__class__.__name__.replace("Exception", "").upper()
        timestamp = self.timestamp.strftime("%Y%m%d_%H%M%S_%f")
        return f"{class_name}_{timestamp}"

    @property
    def context(self) -> Dict[str, Any]:
        """Shortcut to the context data mapping."""
        return self.error_context.data

    def add_context(self, key: str, value: Any) -> 'AutomationException':
        """
        Add contextual information to the exception.

        Supports method chaining:

            >>> exc = AutomationException("Connect failed") \
            ...     .add_context("engine", "firefox") \
            ...     .add_context("mode", "remote")
        """
        self.error_context.add(key, value)
        return self

    def add_tag(self, tag: str) -> 'AutomationException':
        """Add a tag for categorization and monitoring."""
        self.error_context.add_tag(tag)
        return self

    def add_recovery_suggestion(self, suggestion: str) -> 'AutomationException':
        """Add a recovery suggestion, ignoring duplicates."""
        if suggestion and suggestion not in self.recovery_suggestions:
            self.recovery_suggestions.append(suggestion)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for structured logging.

        Returns:
            Dict: Complete exception data
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "correlation_id": self.correlation_id,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "log_level": self.log_level.value,
            "context": self.error_context.to_dict(),
            "recovery_suggestions": list(self.recovery_suggestions),
            "timestamp": self.timestamp.isoformat(),
            "original_exception": {
                "type": type(self.original_exception).__name__,
                "message": str(self.original_exception)
            } if self.original_exception is not None else None,
            "responsible_team": self.category.get_responsible_team(),
        }

    def to_json(self) -> str:
        """Convert exception to a JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        """Message followed by a short context summary."""
        if not self.error_context.data:
            return self.message
        details = ", ".join(
            f"{key}={value}" for key, value in list(self.error_context.data.items())[:5]
        )
        return f"{self.message} ({details})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message[:50]}', "
            f"category={self.category.value}, "
            f"severity={self.severity.value}, "
            f"error_code='{self.error_code}'"
            f")"
        )
