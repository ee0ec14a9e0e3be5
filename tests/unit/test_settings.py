# tests/unit/test_settings.py
"""Tests for the configuration tree and its sources."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from driver_lifecycle.config.settings import (
    EngineSettings,
    Environment,
    Settings,
    get_settings,
    reload_settings,
)


class TestWebSettings:

    def test_defaults(self):
        settings = Settings()

        assert settings.environment is Environment.DEVELOPMENT
        assert settings.web.browser == "chrome"
        assert settings.web.headless is True
        assert settings.web.timeout == 30
        assert settings.web.window_size == "1920,1080"
        assert settings.remote.execution_mode == "local"

    def test_browser_name_is_normalized(self):
        assert Settings(web={"browser": "FireFox"}).web.browser == "firefox"

    def test_unsupported_browser_rejected(self):
        with pytest.raises(ValidationError):
            Settings(web={"browser": "opera"})

    @pytest.mark.parametrize("timeout", [0, 4, 301])
    def test_timeout_bounds(self, timeout):
        with pytest.raises(ValidationError):
            Settings(web={"timeout": timeout})

    @pytest.mark.parametrize("timeout", [5, 300])
    def test_timeout_bounds_inclusive(self, timeout):
        assert Settings(web={"timeout": timeout}).web.timeout == timeout

    def test_engine_args_accept_comma_string(self):
        section = EngineSettings(args="--disable-gpu, --no-sandbox,")

        assert section.args == ["--disable-gpu", "--no-sandbox"]

    def test_unknown_engine_section_keys_rejected(self):
        with pytest.raises(ValidationError):
            EngineSettings(arguments=["--x"])

    def test_for_engine(self):
        settings = Settings(web={"capabilities": {"engines": {"firefox": {"args": ["--kiosk"]}}}})

        assert settings.web.capabilities.for_engine("firefox").args == ["--kiosk"]
        assert settings.web.capabilities.for_engine("chrome") is None

    def test_unknown_retry_strategy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(remote={"connect_retry_strategy": "random"})


class TestSources:

    def test_environment_variables_override_defaults(self, monkeypatch):
        monkeypatch.setenv("DRIVER_WEB__BROWSER", "edge")
        monkeypatch.setenv("DRIVER_WEB__TIMEOUT", "45")
        monkeypatch.setenv("DRIVER_REMOTE__HUB_URL", "ws://grid:3000/")

        settings = Settings()

        assert settings.web.browser == "edge"
        assert settings.web.timeout == 45
        assert settings.remote.hub_url == "ws://grid:3000/"

    def test_malformed_environment_value_rejected(self, monkeypatch):
        monkeypatch.setenv("DRIVER_WEB__TIMEOUT", "soon")

        with pytest.raises(ValidationError):
            Settings()

    def test_yaml_file_is_loaded(self, tmp_path, monkeypatch):
        config_file = tmp_path / "application.yaml"
        config_file.write_text(
            "web:\n"
            "  browser: firefox\n"
            "  window_size: '1280,720'\n"
            "  capabilities:\n"
            "    page_load_strategy: eager\n"
            "    engines:\n"
            "      firefox:\n"
            "        prefs:\n"
            "          media.volume_scale: '0.0'\n"
            "remote:\n"
            "  hub_url: ws://yaml-grid:3000/\n",
            encoding="utf-8"
        )
        monkeypatch.setenv("DRIVER_CONFIG_FILE", str(config_file))

        settings = Settings()

        assert settings.web.browser == "firefox"
        assert settings.web.window_size == "1280,720"
        assert settings.web.capabilities.page_load_strategy == "eager"
        assert settings.web.capabilities.engines["firefox"].prefs == {"media.volume_scale": "0.0"}
        assert settings.remote.hub_url == "ws://yaml-grid:3000/"

    def test_environment_overrides_yaml(self, tmp_path, monkeypatch):
        config_file = tmp_path / "application.yaml"
        config_file.write_text("web:\n  browser: firefox\n", encoding="utf-8")
        monkeypatch.setenv("DRIVER_CONFIG_FILE", str(config_file))
        monkeypatch.setenv("DRIVER_WEB__BROWSER", "safari")

        assert Settings().web.browser == "safari"

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("DRIVER_WEB__BROWSER", "firefox")

        assert get_settings() is first
        assert reload_settings().web.browser == "firefox"


class TestProfiles:

    def test_ci_forces_headless(self):
        settings = Settings(environment="ci", web={"headless": False})

        assert settings.web.headless is True

    def test_docker_switches_local_to_containerized(self):
        settings = Settings(environment="docker")

        assert settings.web.headless is True
        assert settings.remote.execution_mode == "containerized"

    def test_docker_keeps_explicit_remote_mode(self):
        settings = Settings(environment="docker", remote={"execution_mode": "cloud"})

        assert settings.remote.execution_mode == "cloud"

    def test_production_caps_log_level(self):
        settings = Settings(environment="production", logging={"level": "debug"})

        assert settings.logging.level == "INFO"
        assert settings.web.headless is True

    def test_development_keeps_headed(self):
        assert Settings(web={"headless": False}).web.headless is False


class TestSafeDump:

    def test_access_key_is_masked(self):
        settings = Settings(remote={"cloud": {"provider": "browserstack", "username": "u", "access_key": "s3cret"}})

        dumped = settings.model_dump_safe()

        assert dumped["remote"]["cloud"]["access_key"] == "********"
        assert "s3cret" not in str(dumped)

    def test_download_dir_is_path(self):
        assert isinstance(Settings().web.download_dir, Path)
