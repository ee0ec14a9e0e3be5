# src/driver_lifecycle/core/exceptions/session.py
"""
Session Lifecycle Exception Classes

Exceptions raised while building, configuring and tearing down driver
sessions. Each one pre-populates context and recovery suggestions that
fit its failure mode.
"""

from typing import Any, Optional

from .base import AutomationException
from .enums import ErrorCategory, ErrorSeverity


class DriverConfigurationException(AutomationException):
    """
    Raised for invalid engine names, execution modes, enumeration values,
    missing endpoints or credentials.

    Always raised before any browser process or connection is attempted.
    """

    def __init__(
            self,
            message: str,
            setting: Optional[str] = None,
            value: Any = None,
            **kwargs
    ):
        """
        Initialize configuration exception.

        Args:
            message: Error description
            setting: Dotted name of the offending setting
            value: Offending value
            **kwargs: Additional arguments for AutomationException
        """
        kwargs.setdefault('category', ErrorCategory.CONFIGURATION)
        kwargs.setdefault('severity', ErrorSeverity.CRITICAL)

        super().__init__(message=message, **kwargs)

        self.setting = setting
        self.value = value

        if setting:
            self.add_context("setting", setting)
        if value is not None:
            self.add_context("value", value)

        self.add_recovery_suggestion("Check config/application.yaml and DRIVER_* environment variables")


class SessionCreationException(AutomationException):
    """
    Raised when a session could not be created.

    The failing pipeline stage (capabilities, create, configure, instrument)
    is recorded so that a single error tells where creation stopped.
    """

    def __init__(
            self,
            message: str,
            stage: Optional[str] = None,
            engine: Optional[str] = None,
            mode: Optional[str] = None,
            worker_id: Any = None,
            **kwargs
    ):
        kwargs.setdefault('category', ErrorCategory.BROWSER)
        kwargs.setdefault('severity', ErrorSeverity.HIGH)

        super().__init__(message=message, **kwargs)

        self.stage = stage
        self.engine = engine
        self.mode = mode
        self.worker_id = worker_id

        if stage:
            self.add_context("stage", stage)
        if engine:
            self.add_context("engine", engine)
            self.add_tag(f"browser_{engine}")
        if mode:
            self.add_context("mode", mode)
        if worker_id is not None:
            self.add_context("worker_id", worker_id)

        self._add_stage_suggestions()

    def _add_stage_suggestions(self) -> None:
        if self.stage == "create":
            if self.mode == "local":
                self.add_recovery_suggestion("Run 'playwright install' for the requested engine")
            else:
                self.add_recovery_suggestion("Verify the remote endpoint is reachable")
        elif self.stage == "configure":
            self.add_recovery_suggestion("Check web.timeout and web.window_size")


class SessionTeardownException(AutomationException):
    """
    Describes a failed handle close.

    Never raised to callers: teardown usually runs while a test is already
    failing, so the registry only logs this exception's structured form.
    """

    def __init__(
            self,
            message: str,
            worker_id: Any = None,
            session_id: Optional[str] = None,
            **kwargs
    ):
        kwargs.setdefault('category', ErrorCategory.BROWSER)
        kwargs.setdefault('severity', ErrorSeverity.MEDIUM)

        super().__init__(message=message, **kwargs)

        self.worker_id = worker_id
        self.session_id = session_id

        if worker_id is not None:
            self.add_context("worker_id", worker_id)
        if session_id:
            self.add_context("session_id", session_id)

        self.add_recovery_suggestion("Check for orphaned browser processes")


class SessionStateException(AutomationException):
    """
    Programmer error: the registry was used out of order.

    Examples are reading the session of a worker that never acquired one,
    or acquiring again while the same worker's session is still starting.
    """

    def __init__(
            self,
            message: str,
            worker_id: Any = None,
            state: Optional[str] = None,
            **kwargs
    ):
        kwargs.setdefault('category', ErrorCategory.SESSION)
        kwargs.setdefault('severity', ErrorSeverity.HIGH)

        super().__init__(message=message, **kwargs)

        self.worker_id = worker_id
        self.state = state

        if worker_id is not None:
            self.add_context("worker_id", worker_id)
        if state:
            self.add_context("state", state)
