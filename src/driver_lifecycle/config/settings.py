# src/driver_lifecycle/config/settings.py
"""
Environment-Aware Configuration Management with Pydantic v2

This module loads the configuration tree consumed by the session lifecycle
core:
- Loads settings from init kwargs → environment → .env → YAML → defaults
- Validates browser name and timeout bounds at load time
- Keeps engine-specific capability sections as plain data; the
  capability builder translates them into typed per-engine options
- Applies profile overrides (development, ci, docker, production)

Environment variables use the ``DRIVER_`` prefix and ``__`` for nesting,
e.g. ``DRIVER_WEB__BROWSER=firefox`` or ``DRIVER_REMOTE__HUB_URL=ws://grid:3000/``.
"""

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

CONFIG_FILE_ENV = "DRIVER_CONFIG_FILE"
DEFAULT_CONFIG_FILE = Path("config/application.yaml")

SUPPORTED_BROWSERS = ("chrome", "firefox", "edge", "safari")
RETRY_STRATEGIES = ("fixed", "linear", "exponential", "exponential_jitter")


class Environment(str, Enum):
    """Execution profiles with specific behaviors."""
    DEVELOPMENT = "development"
    CI = "ci"
    DOCKER = "docker"
    PRODUCTION = "production"


class EngineSettings(BaseModel):
    """Per-engine capability section (``web.capabilities.engines.<name>``)."""
    model_config = ConfigDict(extra="forbid")

    args: List[str] = Field(default_factory=list)
    prefs: Dict[str, Any] = Field(default_factory=dict)
    experimental_options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def parse_args(cls, v) -> List[str]:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [arg.strip() for arg in v.split(",") if arg.strip()]
        return v or []

    @field_validator("prefs", "experimental_options", mode="before")
    @classmethod
    def none_as_empty(cls, v) -> Dict[str, Any]:
        return v or {}


class CapabilitySettings(BaseModel):
    """
    Cross-engine capability flags plus engine sections.

    Enumerated values (page load strategy, prompt behavior) are kept as
    strings here and validated by the capability builder.
    """
    model_config = ConfigDict(extra="forbid")

    accept_insecure_certs: Optional[bool] = Field(default=None)
    page_load_strategy: Optional[str] = Field(
        default=None,
        description="normal, eager or none"
    )
    unhandled_prompt_behavior: Optional[str] = Field(
        default=None,
        description="dismiss, accept, dismiss and notify, accept and notify or ignore"
    )
    engines: Dict[str, EngineSettings] = Field(default_factory=dict)

    def for_engine(self, engine: str) -> Optional[EngineSettings]:
        """Get the section for an engine, or None if not configured."""
        return self.engines.get(engine)


class WebSettings(BaseModel):
    """Browser session settings."""
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    browser: str = Field(
        default="chrome",
        description="Browser engine (chrome, firefox, edge, safari)"
    )

    headless: bool = Field(default=True)

    timeout: int = Field(
        default=30,
        ge=5,
        le=300,
        description="Base timeout in seconds (5-300)"
    )

    window_size: Optional[str] = Field(
        default="1920,1080",
        description="Viewport as 'width,height'; anything else maximizes"
    )

    download_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "downloads",
        description="Directory used by the default download preferences"
    )

    capabilities: CapabilitySettings = Field(default_factory=CapabilitySettings)

    @field_validator("browser")
    @classmethod
    def validate_browser_name(cls, v: str) -> str:
        """Validate browser name is supported."""
        if v.lower() not in SUPPORTED_BROWSERS:
            raise ValueError(f"Unsupported browser: {v}. Choose from {SUPPORTED_BROWSERS}")
        return v.lower()


class DockerSettings(BaseModel):
    """Containerized grid endpoint."""
    model_config = ConfigDict(extra="forbid")

    endpoint: Optional[str] = Field(
        default=None,
        description="Playwright server endpoint in the container, e.g. ws://localhost:3000/"
    )


class CloudSettings(BaseModel):
    """Cloud provider and credentials."""
    model_config = ConfigDict(extra="forbid")

    provider: Optional[str] = Field(
        default=None,
        description="browserstack or lambdatest"
    )
    username: Optional[str] = Field(default=None)
    access_key: Optional[SecretStr] = Field(default=None)
    platform: str = Field(default="Windows 11")
    browser_version: str = Field(default="latest")

    @field_validator("provider")
    @classmethod
    def normalize_provider(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class RemoteSettings(BaseModel):
    """Remote execution settings."""
    model_config = ConfigDict(extra="forbid")

    execution_mode: str = Field(
        default="local",
        description="local, remote, containerized or cloud"
    )
    hub_url: Optional[str] = Field(default=None)
    docker: DockerSettings = Field(default_factory=DockerSettings)
    cloud: CloudSettings = Field(default_factory=CloudSettings)

    connect_attempts: int = Field(default=2, ge=1, le=10)
    connect_retry_delay: float = Field(default=2.0, ge=0.0, le=60.0)
    connect_retry_strategy: str = Field(
        default="fixed",
        description="fixed, linear, exponential or exponential_jitter"
    )

    @field_validator("connect_retry_strategy")
    @classmethod
    def validate_retry_strategy(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in RETRY_STRATEGIES:
            raise ValueError(f"Retry strategy must be one of {RETRY_STRATEGIES}")
        return normalized


class LoggingSettings(BaseModel):
    """Centralized logging configuration."""
    model_config = ConfigDict(extra="forbid")

    level: str = Field(default="INFO")
    format_type: str = Field(
        default="json",
        description="Log format (json, console)"
    )
    console_enabled: bool = Field(default=True)
    file_enabled: bool = Field(default=False)
    file_path: Path = Field(default=Path("logs/automation.log"))
    max_file_size_mb: int = Field(default=100, ge=1, le=1000)
    backup_count: int = Field(default=5, ge=1, le=30)

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v_upper

    @field_validator("format_type")
    @classmethod
    def validate_format_type(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = {"json", "console"}
        if v not in valid_formats:
            raise ValueError(f"Invalid format: {v}")
        return v


class Settings(BaseSettings):
    """
    Main settings object, resolved once per process.

    Sources in priority order:
    1. Keyword arguments
    2. Environment variables (``DRIVER_`` prefix)
    3. ``.env`` file
    4. YAML file (``DRIVER_CONFIG_FILE``, default ``config/application.yaml``)
    5. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="DRIVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Active profile"
    )

    web: WebSettings = Field(default_factory=WebSettings)
    remote: RemoteSettings = Field(default_factory=RemoteSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
            cls,
            settings_cls: Type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        yaml_file = Path(os.getenv(CONFIG_FILE_ENV, str(DEFAULT_CONFIG_FILE)))
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
            file_secret_settings,
        )

    @model_validator(mode="after")
    def configure_environment_defaults(self) -> "Settings":
        """Apply profile-specific adjustments."""

        if self.environment == Environment.CI:
            self.web.headless = True

        elif self.environment == Environment.DOCKER:
            self.web.headless = True
            if self.remote.execution_mode == "local":
                self.remote.execution_mode = "containerized"

        elif self.environment == Environment.PRODUCTION:
            self.web.headless = True
            if self.logging.level == "DEBUG":
                self.logging.level = "INFO"

        return self

    def model_dump_safe(self) -> Dict[str, Any]:
        """Dump configuration with credentials masked."""
        data = self.model_dump()
        cloud = data["remote"]["cloud"]
        if cloud.get("access_key"):
            cloud["access_key"] = "*" * 8
        return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Clear the cache with ``get_settings.cache_clear()`` or call
    ``reload_settings()``.

    Example:
        >>> settings = get_settings()
        >>> settings.web.browser
        'chrome'
    """
    return Settings()


def reload_settings() -> Settings:
    """Force reload settings by clearing cache."""
    get_settings.cache_clear()
    return get_settings()
