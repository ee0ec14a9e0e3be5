# src/driver_lifecycle/core/browser_constants.py
"""
Browser Engine Constants

Enums and lookup tables used by the capability builder and driver factory,
kept in one place to avoid magic strings.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from driver_lifecycle.core.exceptions import DriverConfigurationException


class Engine(str, Enum):
    """Supported browser engines."""

    CHROME = "chrome"
    FIREFOX = "firefox"
    EDGE = "edge"
    SAFARI = "safari"

    @classmethod
    def parse(cls, value: Any) -> "Engine":
        """
        Resolve a user-supplied engine name.

        Raises:
            DriverConfigurationException: For anything outside the enum
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise DriverConfigurationException(
                f"Unsupported browser engine: {value!r}",
                setting="web.browser",
                value=value
            ).add_recovery_suggestion(f"Choose one of {[e.value for e in cls]}") from None

    @property
    def launcher(self) -> str:
        """Name of the Playwright BrowserType that drives this engine."""
        return _LAUNCHERS[self]

    @property
    def channel(self) -> Optional[str]:
        """Playwright distribution channel, if the engine needs one."""
        return _CHANNELS.get(self)

    @property
    def is_chromium(self) -> bool:
        return self.launcher == "chromium"


_LAUNCHERS: Dict[Engine, str] = {
    Engine.CHROME: "chromium",
    Engine.EDGE: "chromium",
    Engine.FIREFOX: "firefox",
    Engine.SAFARI: "webkit",
}

_CHANNELS: Dict[Engine, str] = {
    Engine.EDGE: "msedge",
}


class ExecutionMode(str, Enum):
    """Where the browser runs relative to the test process."""

    LOCAL = "local"
    REMOTE = "remote"
    CONTAINERIZED = "containerized"
    CLOUD = "cloud"

    @classmethod
    def parse(cls, value: Any) -> "ExecutionMode":
        """
        Resolve a user-supplied execution mode.

        Raises:
            DriverConfigurationException: For anything outside the enum
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise DriverConfigurationException(
                f"Unsupported execution mode: {value!r}",
                setting="remote.execution_mode",
                value=value
            ).add_recovery_suggestion(f"Choose one of {[m.value for m in cls]}") from None


class PageLoadStrategy(str, Enum):
    """W3C page load strategies."""

    NORMAL = "normal"
    EAGER = "eager"
    NONE = "none"

    @property
    def wait_until(self) -> str:
        """Playwright navigation wait condition for this strategy."""
        return {
            PageLoadStrategy.NORMAL: "load",
            PageLoadStrategy.EAGER: "domcontentloaded",
            PageLoadStrategy.NONE: "commit",
        }[self]


class PromptBehavior(str, Enum):
    """W3C unhandled prompt behaviors."""

    DISMISS = "dismiss"
    ACCEPT = "accept"
    DISMISS_AND_NOTIFY = "dismiss and notify"
    ACCEPT_AND_NOTIFY = "accept and notify"
    IGNORE = "ignore"

    @property
    def accepts(self) -> bool:
        return self in (PromptBehavior.ACCEPT, PromptBehavior.ACCEPT_AND_NOTIFY)

    @property
    def notifies(self) -> bool:
        return self in (PromptBehavior.ACCEPT_AND_NOTIFY, PromptBehavior.DISMISS_AND_NOTIFY)


class EngineFeatures:
    """Which cross-engine capability flags each engine honors."""

    SUPPORTS_INSECURE_CERTS = {
        Engine.CHROME: True,
        Engine.EDGE: True,
        Engine.FIREFOX: True,
        Engine.SAFARI: False,
    }

    SUPPORTS_PAGE_LOAD_STRATEGY = {
        Engine.CHROME: True,
        Engine.EDGE: True,
        Engine.FIREFOX: True,
        Engine.SAFARI: False,
    }

    SUPPORTS_PROMPT_BEHAVIOR = {
        Engine.CHROME: True,
        Engine.EDGE: False,
        Engine.FIREFOX: False,
        Engine.SAFARI: False,
    }

    SUPPORTS_PREFS = {
        Engine.CHROME: True,
        Engine.EDGE: True,
        Engine.FIREFOX: True,
        Engine.SAFARI: False,
    }

    @classmethod
    def supports_feature(cls, engine: Engine, feature: str) -> bool:
        """Check if an engine supports a capability flag."""
        feature_map = {
            "insecure_certs": cls.SUPPORTS_INSECURE_CERTS,
            "page_load_strategy": cls.SUPPORTS_PAGE_LOAD_STRATEGY,
            "prompt_behavior": cls.SUPPORTS_PROMPT_BEHAVIOR,
            "prefs": cls.SUPPORTS_PREFS,
        }

        if feature in feature_map:
            return feature_map[feature].get(engine, False)

        return False


class HeadlessArgs:
    """Engine-specific headless switch, injected ahead of user arguments."""

    ARGS: Dict[Engine, List[str]] = {
        Engine.CHROME: ["--headless=new"],
        Engine.EDGE: ["--headless=new"],
        Engine.FIREFOX: ["--headless"],
        Engine.SAFARI: [],
    }

    @classmethod
    def for_engine(cls, engine: Engine) -> List[str]:
        return list(cls.ARGS.get(engine, []))


class DefaultArgs:
    """Fallback arguments used only when an engine has no explicit args."""

    EDGE_ARGS = [
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
    ]

    @classmethod
    def for_engine(cls, engine: Engine) -> List[str]:
        if engine is Engine.EDGE:
            return list(cls.EDGE_ARGS)
        return []


class DefaultPreferences:
    """Fallback preference sets used only when an engine has no explicit prefs."""

    @staticmethod
    def chromium(download_dir: Path) -> Dict[str, Any]:
        return {
            "download.default_directory": str(download_dir),
            "download.prompt_for_download": False,
            "download.directory_upgrade": True,
            "safebrowsing.enabled": True,
        }

    @staticmethod
    def firefox(download_dir: Path) -> Dict[str, Any]:
        return {
            "dom.webnotifications.enabled": False,
            "media.volume_scale": "0.0",
            "browser.download.folderList": 2,
            "browser.download.dir": str(download_dir),
        }


class CloudProviders:
    """Cloud grid WebSocket endpoints and per-engine browser names."""

    BROWSERSTACK = "browserstack"
    LAMBDATEST = "lambdatest"

    ENDPOINTS = {
        BROWSERSTACK: "wss://cdp.browserstack.com/playwright",
        LAMBDATEST: "wss://cdp.lambdatest.com/playwright",
    }

    BROWSER_NAMES: Dict[str, Dict[Engine, str]] = {
        BROWSERSTACK: {
            Engine.CHROME: "chrome",
            Engine.EDGE: "edge",
            Engine.FIREFOX: "playwright-firefox",
            Engine.SAFARI: "playwright-webkit",
        },
        LAMBDATEST: {
            Engine.CHROME: "Chrome",
            Engine.EDGE: "MicrosoftEdge",
            Engine.FIREFOX: "pw-firefox",
            Engine.SAFARI: "pw-webkit",
        },
    }

    @classmethod
    def supported(cls) -> List[str]:
        return list(cls.ENDPOINTS)
