# src/driver_lifecycle/core/exceptions/enums.py
"""
Exception Classification Enums

This module defines enums for categorizing and prioritizing exceptions
raised by the session lifecycle core. They give error handling, logging
and monitoring a consistent vocabulary.
"""

from enum import Enum
from typing import Dict, Set


class ErrorSeverity(str, Enum):
    """
    Error severity levels for exception prioritization.

    Usage:
        >>> error = SessionCreationException("boom", severity=ErrorSeverity.CRITICAL)
        >>> error.severity.should_alert()
        True
    """

    LOW = "low"
    """Cosmetic or diagnostic issues. Log and continue."""

    MEDIUM = "medium"
    """Issues that may affect reliability, e.g. teardown hiccups."""

    HIGH = "high"
    """Issues that stop the current test, e.g. a session that failed to start."""

    CRITICAL = "critical"
    """Issues that stop the whole run, e.g. an unusable configuration."""

    def should_alert(self) -> bool:
        """Determine if this severity level requires alerting."""
        return self in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]


class ErrorCategory(str, Enum):
    """
    Error categories for organizing exception types by functional area.

    Usage:
        >>> error = DriverConfigurationException("bad engine")
        >>> error.category is ErrorCategory.CONFIGURATION
        True
    """

    BROWSER = "browser"
    """Browser launch or connection failures."""

    CONFIGURATION = "configuration"
    """Invalid engine names, enumeration values, endpoints or credentials."""

    SESSION = "session"
    """Session registry misuse and lifecycle state violations."""

    NETWORK = "network"
    """Remote grid, container or cloud endpoint connectivity."""

    INFRASTRUCTURE = "infrastructure"
    """Anything else in the execution environment."""

    def get_responsible_team(self) -> str:
        """Get the team typically responsible for this error category."""
        team_mapping: Dict[ErrorCategory, str] = {
            ErrorCategory.BROWSER: "Infrastructure Team",
            ErrorCategory.CONFIGURATION: "DevOps Team",
            ErrorCategory.SESSION: "QA Team",
            ErrorCategory.NETWORK: "Network Team",
            ErrorCategory.INFRASTRUCTURE: "Infrastructure Team",
        }
        return team_mapping.get(self, "Unknown Team")

    def get_monitoring_tags(self) -> Set[str]:
        """Get monitoring tags for this category."""
        base_tags = {self.value, "automation_error"}

        tag_mapping: Dict[ErrorCategory, Set[str]] = {
            ErrorCategory.BROWSER: {"browser_issue", "ui_automation"},
            ErrorCategory.CONFIGURATION: {"config_issue", "setup_error"},
            ErrorCategory.SESSION: {"session_issue", "lifecycle_error"},
            ErrorCategory.NETWORK: {"network_issue", "connectivity"},
            ErrorCategory.INFRASTRUCTURE: {"infra_issue", "system_error"},
        }

        return base_tags.union(tag_mapping.get(self, set()))


class LogLevel(str, Enum):
    """Logging levels aligned with standard Python logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_severity(cls, severity: ErrorSeverity) -> 'LogLevel':
        """Determine log level from error severity."""
        severity_mapping: Dict[ErrorSeverity, LogLevel] = {
            ErrorSeverity.LOW: LogLevel.INFO,
            ErrorSeverity.MEDIUM: LogLevel.WARNING,
            ErrorSeverity.HIGH: LogLevel.ERROR,
            ErrorSeverity.CRITICAL: LogLevel.CRITICAL,
        }
        return severity_mapping[severity]
