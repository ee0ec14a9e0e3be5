# src/driver_lifecycle/core/logger.py
"""
Structured Logging for the Session Lifecycle Core

This module provides:
- Structured logging through structlog on top of stdlib handlers
- Worker and session correlation through context variables
- A performance timer for session creation and teardown
- Console and rotating file outputs

Context variables are per-thread, so a worker that binds its session id
sees it on every record it emits without affecting other workers.
"""

import logging
import logging.handlers
import sys
import threading
import time
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

# Context variables for correlation tracking
worker_id_var: ContextVar[str] = ContextVar('worker_id', default='')
session_id_var: ContextVar[str] = ContextVar('session_id', default='')
test_id_var: ContextVar[str] = ContextVar('test_id', default='')


class PerformanceTimer:
    """
    Context manager for measuring operation performance.

    Example:
        >>> with PerformanceTimer("acquire_session") as timer:
        ...     session = registry.acquire()
        ...     timer.add_metric("engine", session.engine.value)
    """

    def __init__(self, operation_name: str, logger: Optional[structlog.BoundLogger] = None):
        """
        Initialize performance timer.

        Args:
            operation_name: Name of the operation being timed
            logger: Logger instance to use (defaults to framework logger)
        """
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.metrics: Dict[str, Any] = {}

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        self.logger.debug(
            "Operation started",
            operation=self.operation_name,
            event_type="performance_start"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end_time = time.perf_counter()
        duration = self.end_time - self.start_time if self.start_time else 0

        log_data = {
            "operation": self.operation_name,
            "duration_seconds": round(duration, 3),
            "event_type": "performance_end",
            **self.metrics
        }

        if exc_type is None:
            self.logger.info("Operation completed successfully", **log_data)
        else:
            log_data["exception_type"] = exc_type.__name__
            log_data["exception_message"] = str(exc_val) if exc_val else None
            self.logger.error("Operation failed", **log_data)

    def add_metric(self, key: str, value: Any) -> None:
        """Add a custom metric to be logged with performance data."""
        self.metrics[key] = value

    @property
    def duration(self) -> Optional[float]:
        """Get the current or final duration of the operation."""
        if self.start_time is None:
            return None
        end_time = self.end_time or time.perf_counter()
        return end_time - self.start_time


class LoggingManager:
    """
    Central logging management system.

    Configures structlog and the stdlib root logger exactly once per
    process and hands out cached bound loggers.
    """

    def __init__(self):
        self._configured = False
        self._implicit = False
        self._lock = threading.RLock()
        self._loggers: Dict[str, structlog.BoundLogger] = {}
        self._log_file_handlers: List[logging.Handler] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def configure_logging(
            self,
            log_level: str = "INFO",
            enable_console: bool = True,
            enable_file: bool = False,
            log_file_path: Optional[Path] = None,
            enable_json_format: bool = True,
            max_file_size_mb: int = 100,
            backup_count: int = 5,
            force: bool = False
    ) -> None:
        """
        Configure the logging system with specified parameters.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            enable_console: Enable console output
            enable_file: Enable file output
            log_file_path: Path to log file (default: logs/automation.log)
            enable_json_format: Use structured JSON format
            max_file_size_mb: Maximum log file size in MB
            backup_count: Number of backup log files to keep
            force: Reconfigure even if logging was already configured
        """
        with self._lock:
            # A default configuration made implicitly by get_logger() does not block an explicit one.
            if self._configured and not force and not self._implicit:
                return

            level = getattr(logging, log_level.upper())

            processors = [
                self._add_correlation_context,
                self._add_timestamp,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.format_exc_info,
            ]

            if enable_json_format:
                processors.append(structlog.processors.JSONRenderer(default=str))
            else:
                processors.append(structlog.dev.ConsoleRenderer())

            structlog.configure(
                processors=processors,
                wrapper_class=structlog.stdlib.BoundLogger,
                logger_factory=structlog.stdlib.LoggerFactory(),
                cache_logger_on_first_use=True,
            )

            root_logger = logging.getLogger()
            for handler in self._log_file_handlers:
                handler.close()
            self._log_file_handlers.clear()
            root_logger.handlers.clear()
            root_logger.setLevel(level)

            if enable_console:
                console_handler = logging.StreamHandler(sys.stdout)
                console_handler.setLevel(logging.DEBUG)
                root_logger.addHandler(console_handler)

            if enable_file:
                log_path = log_file_path or Path("logs/automation.log")
                self._setup_file_handler(root_logger, log_path, max_file_size_mb, backup_count)

            self._loggers.clear()
            self._configured = True
            self._implicit = False

            self.get_logger("logging_manager").debug(
                "Logging system configured",
                log_level=log_level,
                console_enabled=enable_console,
                file_enabled=enable_file,
                json_format=enable_json_format
            )

    def _setup_file_handler(
            self,
            root_logger: logging.Logger,
            log_path: Path,
            max_size_mb: int,
            backup_count: int
    ) -> None:
        """Set up rotating file logging handler."""
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)

        root_logger.addHandler(file_handler)
        self._log_file_handlers.append(file_handler)

    def _add_correlation_context(self, logger, method_name, event_dict):
        """Add worker/session/test correlation to log entries."""
        worker_id = worker_id_var.get()
        if worker_id and 'worker_id' not in event_dict:
            event_dict['worker_id'] = worker_id

        session_id = session_id_var.get()
        if session_id and 'session_id' not in event_dict:
            event_dict['session_id'] = session_id

        test_id = test_id_var.get()
        if test_id:
            event_dict['test_id'] = test_id

        return event_dict

    def _add_timestamp(self, logger, method_name, event_dict):
        event_dict['timestamp'] = datetime.now().isoformat()
        return event_dict

    def get_logger(self, name: str = "driver_lifecycle") -> structlog.BoundLogger:
        """
        Get a configured logger instance.

        Args:
            name: Logger name for identification

        Returns:
            structlog.BoundLogger: Configured logger instance
        """
        if not self._configured:
            with self._lock:
                if not self._configured:
                    self.configure_logging()
                    self._implicit = True

        if name not in self._loggers:
            self._loggers[name] = structlog.get_logger(name)

        return self._loggers[name]


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(
        log_level: str = "INFO",
        enable_console: bool = True,
        enable_file: bool = False,
        log_file_path: Optional[Path] = None,
        enable_json_format: bool = True,
        max_file_size_mb: int = 100,
        backup_count: int = 5,
        force: bool = False
) -> None:
    """
    Set up logging for the framework.

    Should be called once at startup; later calls are ignored unless
    ``force`` is set.

    Example:
        >>> setup_logging(log_level="DEBUG", enable_file=True,
        ...               log_file_path=Path("logs/run.log"))
    """
    _logging_manager.configure_logging(
        log_level=log_level,
        enable_console=enable_console,
        enable_file=enable_file,
        log_file_path=log_file_path,
        enable_json_format=enable_json_format,
        max_file_size_mb=max_file_size_mb,
        backup_count=backup_count,
        force=force
    )


def setup_logging_from_settings(settings, force: bool = False) -> None:
    """Configure logging from the ``logging`` section of Settings."""
    log = settings.logging
    setup_logging(
        log_level=log.level,
        enable_console=log.console_enabled,
        enable_file=log.file_enabled,
        log_file_path=log.file_path,
        enable_json_format=log.format_type == "json",
        max_file_size_mb=log.max_file_size_mb,
        backup_count=log.backup_count,
        force=force
    )


def get_logger(name: str = "driver_lifecycle") -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> logger = get_logger("session_registry")
        >>> logger.info("Session acquired", engine="chrome")
    """
    return _logging_manager.get_logger(name)


def get_performance_timer(operation_name: str) -> PerformanceTimer:
    """Create a performance timer for measuring operation duration."""
    return PerformanceTimer(operation_name)


class LoggingContext:
    """
    Context manager that binds correlation ids for the current thread.

    Example:
        >>> with LoggingContext(worker_id="gw0", session_id="abc"):
        ...     get_logger().info("Navigating")  # carries worker_id and session_id
    """

    def __init__(
            self,
            worker_id: Optional[str] = None,
            session_id: Optional[str] = None,
            test_id: Optional[str] = None
    ):
        self.worker_id = worker_id
        self.session_id = session_id
        self.test_id = test_id
        self._tokens = []

    def __enter__(self) -> "LoggingContext":
        if self.worker_id is not None:
            self._tokens.append((worker_id_var, worker_id_var.set(str(self.worker_id))))
        if self.session_id is not None:
            self._tokens.append((session_id_var, session_id_var.set(self.session_id)))
        if self.test_id is not None:
            self._tokens.append((test_id_var, test_id_var.set(self.test_id)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


def bind_session_context(worker_id: Any, session_id: str) -> None:
    """Attach worker and session ids to every record emitted by this thread."""
    worker_id_var.set(str(worker_id))
    session_id_var.set(session_id)


def clear_session_context() -> None:
    """Drop the session id bound by bind_session_context."""
    session_id_var.set('')


def set_test_id(test_id: str) -> None:
    """Set test ID for the current test execution."""
    test_id_var.set(test_id)
