# src/driver_lifecycle/core/exceptions/__init__.py
from .base import AutomationException, ErrorContext
from .enums import ErrorCategory, ErrorSeverity, LogLevel
from .session import (
    DriverConfigurationException,
    SessionCreationException,
    SessionStateException,
    SessionTeardownException,
)

__all__ = [
    "AutomationException",
    "DriverConfigurationException",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "LogLevel",
    "SessionCreationException",
    "SessionStateException",
    "SessionTeardownException",
]
