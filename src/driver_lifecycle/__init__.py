# src/driver_lifecycle/__init__.py
"""Browser driver session lifecycle management for UI test suites."""

from driver_lifecycle.core.session_registry import (
    Session,
    SessionRegistry,
    SessionState,
    acquire_session,
    get_session_registry,
    release_all_sessions,
    release_session,
)

__version__ = "0.1.0"

__all__ = [
    "Session",
    "SessionRegistry",
    "SessionState",
    "acquire_session",
    "get_session_registry",
    "release_all_sessions",
    "release_session",
]
