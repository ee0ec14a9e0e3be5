# src/driver_lifecycle/core/handle.py
"""
Driver Handle

A DriverHandle owns one Playwright browser session: the Playwright driver
process, the browser (launched or connected), one context and its first
page.

Playwright's sync API is bound to the thread that started it. Every call a
handle makes therefore runs on the handle's own single-thread executor,
which lets any thread (the owning worker, or a shutdown sweep running
elsewhere) close the handle safely.
"""

import json
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import uuid4

from playwright.sync_api import (
    Browser,
    BrowserContext,
    Dialog,
    Page,
    Playwright,
    sync_playwright,
)

from driver_lifecycle.core.browser_constants import Engine
from driver_lifecycle.core.capabilities import Capabilities
from driver_lifecycle.core.logger import get_logger

_MAXIMIZE_SCRIPT = "() => ({width: window.screen.availWidth, height: window.screen.availHeight})"


def nest_preferences(prefs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expand dotted Chromium preference names into the nested form used by a
    profile's ``Preferences`` file.

    Example:
        >>> nest_preferences({"download.prompt_for_download": False})
        {'download': {'prompt_for_download': False}}
    """
    nested: Dict[str, Any] = {}
    for dotted, value in prefs.items():
        node = nested
        *parents, leaf = dotted.split(".")
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value
    return nested


def write_chromium_profile(profile_dir: Path, prefs: Dict[str, Any]) -> Path:
    """Write ``Default/Preferences`` under ``profile_dir`` and return its path."""
    default_dir = profile_dir / "Default"
    default_dir.mkdir(parents=True, exist_ok=True)
    preferences_file = default_dir / "Preferences"
    preferences_file.write_text(json.dumps(nest_preferences(prefs), default=str), encoding="utf-8")
    return preferences_file


class DriverHandle:
    """
    Live connection to one browser instance.

    Created by DriverFactory through ``launch`` or ``connect``; ownership
    passes to the Session that stores it. ``close`` is idempotent.
    """

    def __init__(
            self,
            engine: Engine,
            capabilities: Capabilities,
            playwright_factory: Optional[Callable[[], Any]] = None
    ):
        self.engine = engine
        self.capabilities = capabilities
        self.handle_id = uuid4().hex[:12]
        self.created_at = datetime.now()
        self.endpoint: Optional[str] = None
        self.script_timeout_ms: Optional[float] = None

        self._playwright_factory = playwright_factory or sync_playwright
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=f"driver-{engine.value}-{self.handle_id}"
        )
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._profile_dir: Optional[Path] = None
        self._closed = False

        self.logger = get_logger("driver_handle")

    # ------------------------------------------------------------------
    # Thread confinement
    # ------------------------------------------------------------------

    def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run ``fn`` on the handle's Playwright thread and wait for it."""
        if self._closed:
            raise RuntimeError(f"Driver handle {self.handle_id} is closed")
        return self._executor.submit(fn, *args, **kwargs).result()

    def run(self, fn: Callable[[Page], Any]) -> Any:
        """
        Run ``fn(page)`` on the handle's Playwright thread.

        This is the way to drive the page directly from test code:

            >>> handle.run(lambda page: page.click("text=Login"))
        """
        return self._call(lambda: fn(self._require_page()))

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def launch(self) -> "DriverHandle":
        """Start a local browser process."""
        self._call(self._launch)
        return self

    def connect(self, endpoint: str, headers: Optional[Dict[str, str]] = None) -> "DriverHandle":
        """Connect to a Playwright server at ``endpoint``."""
        self._call(self._connect, endpoint, headers or {})
        return self

    def _start_playwright(self) -> Playwright:
        if self._playwright is None:
            self._playwright = self._playwright_factory().start()
        return self._playwright

    def _launch(self) -> None:
        playwright = self._start_playwright()
        browser_type = getattr(playwright, self.engine.launcher)
        launch_options = self.capabilities.launch_options()
        context_options = self.capabilities.context_options()

        if self.engine.is_chromium:
            # Chromium reads preferences from its profile only.
            self._profile_dir = Path(tempfile.mkdtemp(prefix=f"driver-{self.engine.value}-"))
            write_chromium_profile(self._profile_dir, self.capabilities.prefs)
            self._context = browser_type.launch_persistent_context(
                str(self._profile_dir), **launch_options, **context_options
            )
            self._page = self._context.pages[0] if self._context.pages else self._context.new_page()
        else:
            self._browser = browser_type.launch(**launch_options)
            self._context = self._browser.new_context(**context_options)
            self._page = self._context.new_page()

        self._install_dialog_handler()
        self.logger.debug(
            "Local browser launched",
            engine=self.engine.value,
            handle_id=self.handle_id,
            persistent_profile=self._profile_dir is not None
        )

    def _connect(self, endpoint: str, headers: Dict[str, str]) -> None:
        playwright = self._start_playwright()
        browser_type = getattr(playwright, self.engine.launcher)

        launch_options = self.capabilities.launch_options()
        launch_options.pop("downloads_path", None)
        if self.engine.is_chromium and self.capabilities.prefs:
            self.logger.debug(
                "Chromium preferences are not sent to remote browsers",
                engine=self.engine.value,
                prefs=sorted(self.capabilities.prefs)
            )

        connect_headers = {"x-playwright-launch-options": json.dumps(launch_options, default=str)}
        connect_headers.update(headers)

        self._browser = browser_type.connect(endpoint, headers=connect_headers)
        try:
            self._context = self._browser.new_context(**self.capabilities.context_options())
            self._page = self._context.new_page()
        except Exception:
            # A retried connect replaces the browser; the half-open one must not outlive this attempt.
            self._drop_remote_browser()
            raise
        self.endpoint = endpoint

        self._install_dialog_handler()
        self.logger.debug(
            "Remote browser connected",
            engine=self.engine.value,
            handle_id=self.handle_id,
            endpoint=endpoint.split("?", 1)[0]
        )

    def _drop_remote_browser(self) -> None:
        for resource in (self._context, self._browser):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                self.logger.warning(
                    "Failed to close half-open remote browser",
                    handle_id=self.handle_id,
                    error=str(e)
                )
        self._page = None
        self._context = None
        self._browser = None

    def _install_dialog_handler(self) -> None:
        behavior = self.capabilities.unhandled_prompt_behavior
        if behavior is None or behavior.value == "ignore":
            return

        def on_dialog(dialog: Dialog) -> None:
            if behavior.notifies:
                self.logger.info(
                    "Unhandled prompt",
                    dialog_type=dialog.type,
                    dialog_message=dialog.message,
                    action="accept" if behavior.accepts else "dismiss"
                )
            if behavior.accepts:
                dialog.accept()
            else:
                dialog.dismiss()

        self._context.on("page", lambda page: page.on("dialog", on_dialog))
        self._page.on("dialog", on_dialog)

    def _require_page(self) -> Page:
        if self._page is None:
            raise RuntimeError(f"Driver handle {self.handle_id} has no open page")
        return self._page

    # ------------------------------------------------------------------
    # Operations used by the session configurator and callers
    # ------------------------------------------------------------------

    def navigate(self, url: str) -> None:
        """Navigate the page, waiting as the page load strategy requires."""
        wait_until = self.capabilities.wait_until
        self._call(lambda: self._require_page().goto(url, wait_until=wait_until))

    def set_timeouts(self, implicit: float, page_load: float, script: float) -> None:
        """Set timeouts in seconds."""

        def apply() -> None:
            self._context.set_default_timeout(implicit * 1000)
            self._context.set_default_navigation_timeout(page_load * 1000)
            page = self._require_page()
            page.set_default_timeout(implicit * 1000)
            page.set_default_navigation_timeout(page_load * 1000)

        self._call(apply)
        self.script_timeout_ms = script * 1000

    def set_viewport(self, width: int, height: int) -> None:
        self._call(lambda: self._require_page().set_viewport_size({"width": width, "height": height}))

    def maximize(self) -> Tuple[int, int]:
        """Size the viewport to the available screen area."""

        def apply() -> Tuple[int, int]:
            page = self._require_page()
            size = page.evaluate(_MAXIMIZE_SCRIPT)
            page.set_viewport_size({"width": size["width"], "height": size["height"]})
            return size["width"], size["height"]

        return self._call(apply)

    def delete_all_cookies(self) -> None:
        self._call(lambda: self._context.clear_cookies())

    def run_script(self, body: str, arg: Any = None) -> Any:
        """Evaluate a JavaScript expression or function in the page."""
        return self._call(lambda: self._require_page().evaluate(body, arg))

    def wait_for_script(self, expression: str, arg: Any = None) -> Any:
        """Wait until ``expression`` is truthy, bounded by the script timeout."""
        timeout = self.script_timeout_ms
        return self._call(
            lambda: self._require_page().wait_for_function(expression, arg=arg, timeout=timeout)
        )

    @property
    def current_url(self) -> str:
        return self._call(lambda: self._require_page().url)

    def title(self) -> str:
        return self._call(lambda: self._require_page().title())

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Close the context, the browser and the Playwright driver.

        Every step is attempted; the first failure is re-raised after all
        resources have been released.
        """
        if self._closed:
            return

        try:
            try:
                future = self._executor.submit(self._close_resources)
            except RuntimeError:
                # Executors refuse new work once interpreter shutdown has begun.
                errors = self._close_resources()
            else:
                errors = future.result()
        finally:
            self._closed = True
            self._executor.shutdown(wait=True)
            if self._profile_dir is not None:
                shutil.rmtree(self._profile_dir, ignore_errors=True)
                self._profile_dir = None

        if errors:
            raise errors[0]

    def _close_resources(self) -> list:
        errors = []
        for resource in (self._context, self._browser):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                errors.append(e)

        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                errors.append(e)

        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        return errors

    def describe(self) -> Dict[str, Any]:
        """Diagnostic snapshot without touching the browser."""
        return {
            "handle_id": self.handle_id,
            "engine": self.engine.value,
            "endpoint": self.endpoint.split("?", 1)[0] if self.endpoint else None,
            "created_at": self.created_at.isoformat(),
            "closed": self._closed,
        }

    def __repr__(self) -> str:
        return f"DriverHandle(engine={self.engine.value!r}, id={self.handle_id!r}, closed={self._closed})"
