# tests/unit/test_testing_support.py
"""Tests for the test base class and the pytest plugin fixtures."""

from driver_lifecycle.core.browser_constants import Engine
from driver_lifecycle.testing import BrowserTestCase


class TestBrowserTestCase:

    def _case(self, registry, **attrs):
        case_cls = type("TestExample", (BrowserTestCase,), dict(registry=registry, **attrs))
        return case_cls()

    def _method(self):
        def test_page():
            pass
        return test_page

    def test_setup_acquires_and_teardown_releases(self, make_registry):
        registry, factory = make_registry()
        case = self._case(registry, browser="firefox")

        case.setup_method(self._method())

        assert registry.is_active()
        assert case.session.engine is Engine.FIREFOX
        assert case.handle.wrapped_handle is factory.created[0]

        case.teardown_method(self._method())

        assert not registry.is_active()
        factory.created[0].close.assert_called_once()

    def test_setup_reuses_active_session(self, make_registry):
        registry, factory = make_registry()
        existing = registry.acquire()
        case = self._case(registry)

        case.setup_method(self._method())

        assert case.session is existing
        assert factory.calls == 1
        case.teardown_method(self._method())


class TestPluginFixtures:

    def test_browser_session_is_bound_to_this_thread(self, browser_session, session_registry):
        assert session_registry.is_active()
        assert session_registry.get_session() is browser_session

    def test_previous_session_was_released(self, session_registry):
        assert not session_registry.is_active()

    def test_driver_options_are_registered(self, pytestconfig):
        assert pytestconfig.getoption("--driver-browser") is None
        assert pytestconfig.getoption("--driver-mode") is None
