# src/driver_lifecycle/core/retry.py
"""
Retry With Backoff for Remote Connections

Connecting to a grid, a container or a cloud provider can fail transiently
while the far side is still starting. This module retries such connects
with a configurable backoff. Local launches are never retried: a missing
browser binary will not appear on the second try.
"""

import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Set, Tuple, Type
from uuid import uuid4

from playwright.sync_api import Error as PlaywrightError

from driver_lifecycle.core.exceptions import AutomationException, ErrorCategory, ErrorSeverity
from driver_lifecycle.core.logger import get_logger


class RetryStrategy(str, Enum):
    """Delay progression between attempts."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    EXPONENTIAL_JITTER = "exponential_jitter"


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    ``max_attempts`` includes the initial attempt, so 1 disables retrying.
    """

    max_attempts: int = 2
    base_delay: float = 2.0
    max_delay: float = 30.0
    strategy: RetryStrategy = RetryStrategy.FIXED
    backoff_multiplier: float = 2.0
    jitter_range: Tuple[float, float] = (0.8, 1.2)

    retryable_exceptions: Set[Type[Exception]] = field(
        default_factory=lambda: {
            PlaywrightError,
            ConnectionError,
            TimeoutError,
        }
    )

    non_retryable_exceptions: Set[Type[Exception]] = field(
        default_factory=lambda: {
            KeyboardInterrupt,
            SystemExit,
            MemoryError,
        }
    )

    retry_on_categories: Set[ErrorCategory] = field(
        default_factory=lambda: {
            ErrorCategory.NETWORK,
            ErrorCategory.INFRASTRUCTURE,
        }
    )

    @classmethod
    def for_remote_connect(cls, remote_settings) -> "RetryConfig":
        """Build a config from the ``remote`` settings section."""
        return cls(
            max_attempts=remote_settings.connect_attempts,
            base_delay=remote_settings.connect_retry_delay,
            strategy=RetryStrategy(remote_settings.connect_retry_strategy),
        )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before a retry attempt.

    Args:
        attempt: Attempt about to be made (1-based)
        config: Retry configuration

    Returns:
        Delay in seconds, 0 for the first attempt
    """
    if attempt <= 1:
        return 0.0

    if config.strategy == RetryStrategy.LINEAR:
        delay = config.base_delay * (attempt - 1)

    elif config.strategy == RetryStrategy.EXPONENTIAL:
        delay = config.base_delay * (config.backoff_multiplier ** (attempt - 2))

    elif config.strategy == RetryStrategy.EXPONENTIAL_JITTER:
        base_delay = config.base_delay * (config.backoff_multiplier ** (attempt - 2))
        jitter_min, jitter_max = config.jitter_range
        delay = base_delay * random.uniform(jitter_min, jitter_max)

    else:
        delay = config.base_delay

    return min(delay, config.max_delay)


def should_retry(exception: Exception, attempt: int, config: RetryConfig) -> bool:
    """
    Determine if an exception should trigger another attempt.

    Configuration errors are CRITICAL and never retried.
    """
    if attempt >= config.max_attempts:
        return False

    for exc_type in config.non_retryable_exceptions:
        if isinstance(exception, exc_type):
            return False

    if isinstance(exception, AutomationException):
        if exception.severity == ErrorSeverity.CRITICAL:
            return False
        return exception.category in config.retry_on_categories

    for exc_type in config.retryable_exceptions:
        if isinstance(exception, exc_type):
            return True

    return False


def call_with_retry(
        func: Callable[..., Any],
        *args,
        config: Optional[RetryConfig] = None,
        operation_name: Optional[str] = None,
        **kwargs
) -> Any:
    """
    Call ``func`` and retry it according to ``config``.

    The last exception is re-raised unchanged once attempts are exhausted.
    """
    config = config or RetryConfig()
    op_name = operation_name or getattr(func, "__name__", "operation")
    operation_id = str(uuid4())
    logger = get_logger("retry")

    last_exception: Optional[Exception] = None

    for attempt in range(1, config.max_attempts + 1):
        delay_before = calculate_delay(attempt, config)
        if delay_before > 0:
            logger.debug(
                f"Waiting before attempt {attempt}",
                delay_seconds=delay_before,
                attempt=attempt,
                operation_id=operation_id
            )
            time.sleep(delay_before)

        attempt_start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            last_exception = e
            attempt_duration = round(time.perf_counter() - attempt_start, 3)

            if should_retry(e, attempt, config):
                logger.warning(
                    f"Attempt {attempt} failed, will retry",
                    operation_name=op_name,
                    attempt=attempt,
                    exception_type=type(e).__name__,
                    exception_message=str(e),
                    duration=attempt_duration,
                    operation_id=operation_id
                )
                continue

            logger.error(
                f"Attempt {attempt} failed, no more retries",
                operation_name=op_name,
                attempt=attempt,
                exception_type=type(e).__name__,
                exception_message=str(e),
                duration=attempt_duration,
                operation_id=operation_id
            )
            break

        if attempt > 1:
            logger.info(
                f"Operation succeeded on attempt {attempt}",
                operation_name=op_name,
                attempt=attempt,
                operation_id=operation_id
            )
        return result

    raise last_exception
