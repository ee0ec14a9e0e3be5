# src/driver_lifecycle/core/driver_factory.py
"""
Driver Factory

Produces live DriverHandles. The four execution modes collapse into two
targets:

- ``LocalTarget``: launch a browser process on this machine
- ``RemoteTarget``: connect to a Playwright server at an endpoint

Remote, containerized and cloud modes differ only in how the endpoint is
resolved; all three share one connection path.
"""

import json
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union
from urllib.parse import quote

from driver_lifecycle.config.settings import Settings, get_settings
from driver_lifecycle.core.browser_constants import CloudProviders, Engine, ExecutionMode
from driver_lifecycle.core.capabilities import Capabilities, CapabilityBuilder
from driver_lifecycle.core.exceptions import DriverConfigurationException
from driver_lifecycle.core.handle import DriverHandle
from driver_lifecycle.core.logger import get_logger, get_performance_timer
from driver_lifecycle.core.retry import RetryConfig, call_with_retry


@dataclass(frozen=True)
class LocalTarget:
    """Launch the browser in-process."""

    mode: ExecutionMode = ExecutionMode.LOCAL


@dataclass(frozen=True)
class RemoteTarget:
    """Connect to a Playwright server."""

    endpoint: str
    mode: ExecutionMode = ExecutionMode.REMOTE
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def display_endpoint(self) -> str:
        """Endpoint without its query string, which may carry credentials."""
        return self.endpoint.split("?", 1)[0]


Target = Union[LocalTarget, RemoteTarget]


def _require_endpoint(endpoint: Optional[str], mode: ExecutionMode, setting: str) -> str:
    if not endpoint or not endpoint.strip():
        raise DriverConfigurationException(
            f"Execution mode '{mode.value}' requires an endpoint",
            setting=setting
        ).add_recovery_suggestion(f"Set {setting} or pass an explicit endpoint")
    return endpoint.strip()


def resolve_remote(settings: Settings, engine: Engine, endpoint: Optional[str] = None) -> RemoteTarget:
    """Grid endpoint: explicit argument, then ``remote.hub_url``."""
    resolved = _require_endpoint(endpoint or settings.remote.hub_url, ExecutionMode.REMOTE, "remote.hub_url")
    return RemoteTarget(endpoint=resolved, mode=ExecutionMode.REMOTE)


def resolve_containerized(
        settings: Settings,
        engine: Engine,
        endpoint: Optional[str] = None
) -> RemoteTarget:
    """Container endpoint: argument, then ``remote.docker.endpoint``, then ``remote.hub_url``."""
    candidate = endpoint or settings.remote.docker.endpoint or settings.remote.hub_url
    resolved = _require_endpoint(candidate, ExecutionMode.CONTAINERIZED, "remote.docker.endpoint")
    return RemoteTarget(endpoint=resolved, mode=ExecutionMode.CONTAINERIZED)


def resolve_cloud(settings: Settings, engine: Engine, endpoint: Optional[str] = None) -> RemoteTarget:
    """
    Cloud endpoint: an explicit argument is used as-is; otherwise the
    provider URL is built from ``remote.cloud`` credentials.
    """
    if endpoint and endpoint.strip():
        return RemoteTarget(endpoint=endpoint.strip(), mode=ExecutionMode.CLOUD)

    cloud = settings.remote.cloud
    if cloud.provider not in CloudProviders.ENDPOINTS:
        raise DriverConfigurationException(
            f"Unsupported cloud provider: {cloud.provider!r}",
            setting="remote.cloud.provider",
            value=cloud.provider
        ).add_recovery_suggestion(f"Use one of {CloudProviders.supported()}")

    access_key = cloud.access_key.get_secret_value() if cloud.access_key else None
    if not cloud.username or not access_key:
        raise DriverConfigurationException(
            f"Cloud provider '{cloud.provider}' requires username and access key",
            setting="remote.cloud"
        ).add_recovery_suggestion("Set DRIVER_REMOTE__CLOUD__USERNAME and DRIVER_REMOTE__CLOUD__ACCESS_KEY")

    browser_name = CloudProviders.BROWSER_NAMES[cloud.provider][engine]

    if cloud.provider == CloudProviders.BROWSERSTACK:
        os_name, _, os_version = cloud.platform.partition(" ")
        caps = {
            "browser": browser_name,
            "browser_version": cloud.browser_version,
            "os": os_name,
            "os_version": os_version,
            "browserstack.username": cloud.username,
            "browserstack.accessKey": access_key,
        }
        query = "caps"
    else:
        caps = {
            "browserName": browser_name,
            "browserVersion": cloud.browser_version,
            "LT:Options": {
                "platform": cloud.platform,
                "user": cloud.username,
                "accessKey": access_key,
            },
        }
        query = "capabilities"

    url = f"{CloudProviders.ENDPOINTS[cloud.provider]}?{query}={quote(json.dumps(caps))}"
    return RemoteTarget(endpoint=url, mode=ExecutionMode.CLOUD)


_RESOLVERS: Dict[ExecutionMode, Callable[..., RemoteTarget]] = {
    ExecutionMode.REMOTE: resolve_remote,
    ExecutionMode.CONTAINERIZED: resolve_containerized,
    ExecutionMode.CLOUD: resolve_cloud,
}


class DriverFactory:
    """
    Creates DriverHandles for an engine and execution mode.

    Configuration errors (unsupported engine or mode, missing endpoint or
    credentials) are raised before any process or connection is started.
    A handle that fails part-way through creation is closed before the
    error propagates.
    """

    def __init__(
            self,
            settings: Optional[Settings] = None,
            capability_builder: Optional[CapabilityBuilder] = None,
            playwright_factory: Optional[Callable] = None
    ):
        self.settings = settings or get_settings()
        self.capability_builder = capability_builder or CapabilityBuilder()
        self.playwright_factory = playwright_factory
        self.logger = get_logger("driver_factory")

    def resolve_target(self, engine, mode, endpoint: Optional[str] = None) -> Target:
        """Map an execution mode to a Local or Remote target."""
        engine = Engine.parse(engine)
        mode = ExecutionMode.parse(mode)
        if mode is ExecutionMode.LOCAL:
            return LocalTarget()
        return _RESOLVERS[mode](self.settings, engine, endpoint)

    def create(
            self,
            engine,
            mode,
            endpoint: Optional[str] = None,
            capabilities: Optional[Capabilities] = None
    ) -> DriverHandle:
        """
        Produce a live handle.

        Args:
            engine: Engine or engine name
            mode: ExecutionMode or mode name
            endpoint: Overrides the configured endpoint for remote modes
            capabilities: Pre-built capabilities; built from settings if None

        Raises:
            DriverConfigurationException: Invalid engine, mode or endpoint
            Exception: Whatever Playwright raised while launching or connecting
        """
        engine = Engine.parse(engine)
        target = self.resolve_target(engine, mode, endpoint)

        if capabilities is None:
            capabilities = self.capability_builder.build(engine, self.settings.web.headless, self.settings)

        handle = DriverHandle(engine, capabilities, playwright_factory=self.playwright_factory)

        with get_performance_timer(f"create_{engine.value}_{target.mode.value}") as timer:
            timer.add_metric("handle_id", handle.handle_id)
            try:
                if isinstance(target, LocalTarget):
                    handle.launch()
                else:
                    timer.add_metric("endpoint", target.display_endpoint)
                    self._connect(handle, target)
            except Exception:
                self._discard(handle)
                raise

        self.logger.info(
            "Driver created",
            engine=engine.value,
            mode=target.mode.value,
            handle_id=handle.handle_id
        )
        return handle

    def _connect(self, handle: DriverHandle, target: RemoteTarget) -> None:
        call_with_retry(
            handle.connect,
            target.endpoint,
            target.headers,
            config=RetryConfig.for_remote_connect(self.settings.remote),
            operation_name=f"connect_{target.mode.value}"
        )

    def _discard(self, handle: DriverHandle) -> None:
        try:
            handle.close()
        except Exception as e:
            self.logger.warning(
                "Failed to close partially created driver",
                handle_id=handle.handle_id,
                error=str(e)
            )
