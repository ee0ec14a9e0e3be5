# src/driver_lifecycle/core/session_configurator.py
"""
Post-creation setup applied once to every new handle: timeouts, viewport,
cookie and storage clearing.
"""

from typing import Optional, Tuple

from driver_lifecycle.core.handle import DriverHandle
from driver_lifecycle.core.logger import get_logger

PAGE_LOAD_TIMEOUT_FACTOR = 2

_CLEAR_STORAGE_SCRIPT = "() => { window.localStorage.clear(); window.sessionStorage.clear(); }"


def parse_window_size(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Parse ``"width,height"`` into a pair of positive integers.

    Returns None when the window should be maximized instead. Malformed
    values are logged, never raised.

    Example:
        >>> parse_window_size("1920,1080")
        (1920, 1080)
        >>> parse_window_size("1920") is None
        True
    """
    if value is None or not value.strip():
        return None

    parts = [part.strip() for part in value.split(",")]
    if len(parts) == 2:
        try:
            width, height = int(parts[0]), int(parts[1])
        except ValueError:
            pass
        else:
            if width > 0 and height > 0:
                return width, height

    get_logger("session_configurator").warning(
        "Malformed window size, maximizing instead", window_size=value
    )
    return None


class SessionConfigurator:
    """Normalizes a freshly created handle."""

    def __init__(self):
        self.logger = get_logger("session_configurator")

    def configure(self, handle: DriverHandle, settings) -> None:
        """
        Apply timeouts, window sizing and a clean cookie/storage state.

        The page load timeout is twice the base timeout; implicit and
        script timeouts equal it. Storage clearing is best-effort.
        """
        web = settings.web
        base = web.timeout

        handle.set_timeouts(
            implicit=base,
            page_load=base * PAGE_LOAD_TIMEOUT_FACTOR,
            script=base
        )

        size = parse_window_size(web.window_size)
        if size is not None:
            handle.set_viewport(*size)
        else:
            size = handle.maximize()

        handle.delete_all_cookies()
        self._clear_storage(handle)

        self.logger.debug(
            "Session configured",
            handle_id=handle.handle_id,
            timeout=base,
            viewport=size
        )

    def _clear_storage(self, handle: DriverHandle) -> None:
        try:
            handle.run_script(_CLEAR_STORAGE_SCRIPT)
        except Exception as e:
            # about:blank and some error pages deny storage access.
            self.logger.warning(
                "Could not clear browser storage",
                handle_id=handle.handle_id,
                error=str(e)
            )
