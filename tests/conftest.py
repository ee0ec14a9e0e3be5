# tests/conftest.py
"""
Shared fixtures: isolated configuration, fake Playwright objects and a
registry wired to a fake driver factory.
"""

import threading
import time
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from driver_lifecycle.config.settings import Settings, get_settings
from driver_lifecycle.core.browser_constants import Engine
from driver_lifecycle.core.handle import DriverHandle
from driver_lifecycle.core.session_registry import SessionRegistry

pytest_plugins = ["driver_lifecycle.testing.plugin"]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the repository YAML and any DRIVER_* variables out of unit tests."""
    monkeypatch.setenv("DRIVER_CONFIG_FILE", str(tmp_path / "absent.yaml"))
    for name in ("DRIVER_ENVIRONMENT", "DRIVER_WEB__BROWSER", "DRIVER_REMOTE__EXECUTION_MODE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings from keyword overrides with a temp download dir."""

    def _make(**overrides) -> Settings:
        web = dict(overrides.pop("web", {}))
        web.setdefault("download_dir", str(tmp_path / "downloads"))
        return Settings(web=web, **overrides)

    return _make


def make_fake_handle(engine=Engine.CHROME) -> MagicMock:
    handle = MagicMock(spec=DriverHandle)
    handle.engine = engine
    handle.handle_id = uuid4().hex[:12]
    handle.maximize.return_value = (1280, 720)
    handle.describe.return_value = {"handle_id": handle.handle_id, "engine": engine.value}
    return handle


class FakeDriverFactory:
    """Stands in for DriverFactory; records every handle it hands out."""

    def __init__(self, fail_with=None, delay=0.0):
        self.fail_with = fail_with
        self.delay = delay
        self.calls = 0
        self.created = []
        self._lock = threading.Lock()

    def create(self, engine, mode, endpoint=None, capabilities=None):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        handle = make_fake_handle(engine)
        with self._lock:
            self.created.append(handle)
        return handle


@pytest.fixture
def fake_handle():
    return make_fake_handle()


@pytest.fixture
def fake_factory():
    return FakeDriverFactory()


@pytest.fixture
def failing_factory():
    """Build a FakeDriverFactory whose create() raises ``error``."""

    def _make(error, delay=0.0):
        return FakeDriverFactory(fail_with=error, delay=delay)

    return _make


@pytest.fixture
def make_registry(make_settings):
    """Registry over a FakeDriverFactory; returns (registry, factory)."""

    def _make(factory=None, settings=None, **kwargs):
        factory = factory or FakeDriverFactory()
        registry = SessionRegistry(settings or make_settings(), factory=factory, **kwargs)
        return registry, factory

    return _make


@pytest.fixture
def fake_playwright():
    """
    A Playwright factory whose browsers, contexts and pages are mocks.

    Returns (factory, playwright) where ``playwright`` is what
    ``factory().start()`` yields.
    """
    factory = MagicMock(name="sync_playwright")
    playwright = factory.return_value.start.return_value

    for launcher in ("chromium", "firefox", "webkit"):
        browser_type = getattr(playwright, launcher)
        persistent = browser_type.launch_persistent_context.return_value
        persistent.pages = [MagicMock(name=f"{launcher}_persistent_page")]

    return factory, playwright


@pytest.fixture(scope="session")
def session_registry():
    """Plugin fixture override backed by a fake factory."""
    registry = SessionRegistry(Settings(), factory=FakeDriverFactory())
    yield registry
    registry.release_all()
