# src/driver_lifecycle/core/instrumentation.py
"""
Event Instrumentation

Wraps a DriverHandle in a proxy that reports navigation and failures to
listeners. The proxy never changes results or control flow: every error is
re-raised unchanged, and a listener that fails is logged and skipped.
"""

import functools
from typing import Any, Iterable, List, Optional

from driver_lifecycle.core.handle import DriverHandle
from driver_lifecycle.core.logger import get_logger

# Attributes passed through without error interception.
_PASSTHROUGH = frozenset({"close", "describe", "is_closed"})


class DriverEventListener:
    """Base listener; override the hooks you need."""

    def before_navigate(self, url: str, handle: DriverHandle) -> None:
        pass

    def after_navigate(self, url: str, handle: DriverHandle) -> None:
        pass

    def on_error(self, operation: str, error: Exception, handle: DriverHandle) -> None:
        pass


class LoggingEventListener(DriverEventListener):
    """Logs navigation and errors through structlog."""

    def __init__(self):
        self.logger = get_logger("driver_events")

    def before_navigate(self, url: str, handle: DriverHandle) -> None:
        self.logger.info("Navigating", url=url, handle_id=handle.handle_id)

    def after_navigate(self, url: str, handle: DriverHandle) -> None:
        self.logger.info("Navigation completed", url=url, handle_id=handle.handle_id)

    def on_error(self, operation: str, error: Exception, handle: DriverHandle) -> None:
        self.logger.error(
            "Driver operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error=str(error),
            handle_id=handle.handle_id
        )


class EventFiringHandle:
    """
    Transparent proxy over a DriverHandle.

    Attribute reads are forwarded to the wrapped handle. Callables are
    wrapped so that a failure notifies ``on_error`` before propagating.
    """

    def __init__(self, handle: DriverHandle, listeners: Iterable[DriverEventListener]):
        self._handle = handle
        self._listeners: List[DriverEventListener] = list(listeners)
        self._logger = get_logger("instrumentation")

    @property
    def wrapped_handle(self) -> DriverHandle:
        return self._handle

    @property
    def listeners(self) -> List[DriverEventListener]:
        return list(self._listeners)

    def navigate(self, url: str) -> None:
        self._fire("before_navigate", url, self._handle)
        try:
            self._handle.navigate(url)
        except Exception as e:
            self._fire("on_error", "navigate", e, self._handle)
            raise
        self._fire("after_navigate", url, self._handle)

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._handle, name)
        if name in _PASSTHROUGH or name.startswith("_") or not callable(attr):
            return attr

        @functools.wraps(attr)
        def intercepted(*args, **kwargs):
            try:
                return attr(*args, **kwargs)
            except Exception as e:
                self._fire("on_error", name, e, self._handle)
                raise

        return intercepted

    def _fire(self, hook: str, *args) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(*args)
            except Exception as e:
                self._logger.warning(
                    "Event listener failed",
                    listener=type(listener).__name__,
                    hook=hook,
                    error=str(e)
                )

    def __repr__(self) -> str:
        return f"EventFiringHandle({self._handle!r})"


def instrument(
        handle: DriverHandle,
        listeners: Optional[Iterable[DriverEventListener]] = None
) -> EventFiringHandle:
    """Wrap ``handle`` with the given listeners, or a LoggingEventListener by default."""
    if listeners is None:
        listeners = [LoggingEventListener()]
    return EventFiringHandle(handle, listeners)
