# tests/unit/test_driver_factory.py
"""Tests for execution mode resolution and driver creation."""

import json
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from playwright.sync_api import Error as PlaywrightError

from driver_lifecycle.core.browser_constants import Engine, ExecutionMode
from driver_lifecycle.core.driver_factory import (
    DriverFactory,
    LocalTarget,
    RemoteTarget,
    resolve_cloud,
    resolve_containerized,
    resolve_remote,
)
from driver_lifecycle.core.exceptions import DriverConfigurationException
from driver_lifecycle.core.handle import DriverHandle


class TestEndpointResolution:

    def test_remote_uses_hub_url(self, make_settings):
        settings = make_settings(remote={"hub_url": "ws://grid:3000/"})

        target = resolve_remote(settings, Engine.CHROME)

        assert target == RemoteTarget(endpoint="ws://grid:3000/", mode=ExecutionMode.REMOTE)

    def test_explicit_endpoint_wins(self, make_settings):
        settings = make_settings(remote={"hub_url": "ws://grid:3000/"})

        target = resolve_remote(settings, Engine.CHROME, "ws://other:3000/")

        assert target.endpoint == "ws://other:3000/"

    @pytest.mark.parametrize("endpoint", [None, "", "   "])
    def test_remote_without_endpoint_is_configuration_error(self, make_settings, endpoint):
        with pytest.raises(DriverConfigurationException) as exc_info:
            resolve_remote(make_settings(), Engine.CHROME, endpoint)

        assert exc_info.value.setting == "remote.hub_url"

    def test_containerized_prefers_docker_endpoint(self, make_settings):
        settings = make_settings(remote={
            "hub_url": "ws://grid:3000/",
            "docker": {"endpoint": "ws://container:3000/"},
        })

        target = resolve_containerized(settings, Engine.FIREFOX)

        assert target.endpoint == "ws://container:3000/"
        assert target.mode is ExecutionMode.CONTAINERIZED

    def test_containerized_falls_back_to_hub_url(self, make_settings):
        settings = make_settings(remote={"hub_url": "ws://grid:3000/"})

        assert resolve_containerized(settings, Engine.FIREFOX).endpoint == "ws://grid:3000/"

    def test_browserstack_url_carries_credentials(self, make_settings):
        settings = make_settings(remote={"cloud": {
            "provider": "BrowserStack",
            "username": "alice",
            "access_key": "s3cret",
        }})

        target = resolve_cloud(settings, Engine.FIREFOX)

        parsed = urlparse(target.endpoint)
        caps = json.loads(parse_qs(parsed.query)["caps"][0])
        assert target.endpoint.startswith("wss://cdp.browserstack.com/playwright?caps=")
        assert target.display_endpoint == "wss://cdp.browserstack.com/playwright"
        assert caps["browser"] == "playwright-firefox"
        assert caps["os"] == "Windows"
        assert caps["os_version"] == "11"
        assert caps["browserstack.username"] == "alice"
        assert caps["browserstack.accessKey"] == "s3cret"

    def test_lambdatest_url_carries_credentials(self, make_settings):
        settings = make_settings(remote={"cloud": {
            "provider": "lambdatest",
            "username": "bob",
            "access_key": "k3y",
        }})

        target = resolve_cloud(settings, Engine.CHROME)

        caps = json.loads(parse_qs(urlparse(target.endpoint).query)["capabilities"][0])
        assert caps["browserName"] == "Chrome"
        assert caps["LT:Options"]["user"] == "bob"
        assert caps["LT:Options"]["accessKey"] == "k3y"

    def test_cloud_without_credentials_is_configuration_error(self, make_settings):
        settings = make_settings(remote={"cloud": {"provider": "browserstack"}})

        with pytest.raises(DriverConfigurationException):
            resolve_cloud(settings, Engine.CHROME)

    def test_unknown_cloud_provider_is_configuration_error(self, make_settings):
        settings = make_settings(remote={"cloud": {"provider": "saucelabs", "username": "u", "access_key": "k"}})

        with pytest.raises(DriverConfigurationException) as exc_info:
            resolve_cloud(settings, Engine.CHROME)

        assert exc_info.value.value == "saucelabs"

    def test_cloud_explicit_endpoint_used_as_is(self, make_settings):
        target = resolve_cloud(make_settings(), Engine.CHROME, "wss://private-cloud/playwright")

        assert target.endpoint == "wss://private-cloud/playwright"
        assert target.mode is ExecutionMode.CLOUD


class TestDriverFactory:

    def test_local_mode_resolves_local_target(self, make_settings):
        factory = DriverFactory(make_settings(), playwright_factory=MagicMock())

        assert isinstance(factory.resolve_target("chrome", "local"), LocalTarget)

    def test_create_local_launches_browser(self, make_settings, fake_playwright):
        pw_factory, playwright = fake_playwright
        factory = DriverFactory(make_settings(), playwright_factory=pw_factory)

        handle = factory.create("firefox", "local")

        assert isinstance(handle, DriverHandle)
        assert handle.engine is Engine.FIREFOX
        playwright.firefox.launch.assert_called_once()
        handle.close()

    def test_create_remote_connects_to_endpoint(self, make_settings, fake_playwright):
        pw_factory, playwright = fake_playwright
        factory = DriverFactory(
            make_settings(remote={"hub_url": "ws://grid:3000/"}),
            playwright_factory=pw_factory
        )

        handle = factory.create(Engine.CHROME, ExecutionMode.REMOTE)

        assert playwright.chromium.connect.call_args.args == ("ws://grid:3000/",)
        playwright.chromium.launch_persistent_context.assert_not_called()
        handle.close()

    @pytest.mark.parametrize("engine,mode", [("opera", "local"), ("chrome", "grid")])
    def test_unsupported_values_fail_before_any_process(self, make_settings, engine, mode):
        pw_factory = MagicMock()
        factory = DriverFactory(make_settings(), playwright_factory=pw_factory)

        with pytest.raises(DriverConfigurationException):
            factory.create(engine, mode)

        pw_factory.assert_not_called()

    def test_missing_endpoint_fails_before_any_connection(self, make_settings):
        pw_factory = MagicMock()
        factory = DriverFactory(make_settings(), playwright_factory=pw_factory)

        with pytest.raises(DriverConfigurationException):
            factory.create("chrome", "containerized")

        pw_factory.assert_not_called()

    def test_remote_connect_is_retried(self, make_settings, fake_playwright):
        pw_factory, playwright = fake_playwright
        playwright.firefox.connect.side_effect = [PlaywrightError("not ready"), MagicMock()]
        settings = make_settings(remote={
            "hub_url": "ws://grid:3000/",
            "connect_attempts": 2,
            "connect_retry_delay": 0.0,
        })

        handle = DriverFactory(settings, playwright_factory=pw_factory).create("firefox", "remote")

        assert playwright.firefox.connect.call_count == 2
        handle.close()

    def test_retry_after_half_open_connect_closes_first_browser(self, make_settings, fake_playwright):
        pw_factory, playwright = fake_playwright
        first, second = MagicMock(name="first_browser"), MagicMock(name="second_browser")
        first.new_context.side_effect = PlaywrightError("context refused")
        playwright.firefox.connect.side_effect = [first, second]
        settings = make_settings(remote={
            "hub_url": "ws://grid:3000/",
            "connect_attempts": 2,
            "connect_retry_delay": 0.0,
        })

        handle = DriverFactory(settings, playwright_factory=pw_factory).create("firefox", "remote")
        handle.close()

        first.close.assert_called_once()
        second.close.assert_called_once()
        playwright.stop.assert_called_once()

    def test_failed_creation_closes_partial_handle(self, make_settings, fake_playwright):
        pw_factory, playwright = fake_playwright
        playwright.firefox.connect.side_effect = PlaywrightError("refused")
        settings = make_settings(remote={
            "hub_url": "ws://grid:3000/",
            "connect_attempts": 1,
        })

        with pytest.raises(PlaywrightError):
            DriverFactory(settings, playwright_factory=pw_factory).create("firefox", "remote")

        playwright.stop.assert_called_once()
