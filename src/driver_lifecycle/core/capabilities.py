# src/driver_lifecycle/core/capabilities.py
"""
Capability Builder

Translates the ``web`` section of Settings into a typed, engine-specific
Capabilities object. The merge order is fixed:

1. The engine's headless argument goes first, so explicit arguments can
   override it.
2. Explicit arguments, preferences and experimental options are copied
   from ``web.capabilities.engines.<engine>``.
3. Cross-engine flags (insecure certs, page load strategy, prompt
   behavior) are applied only where the engine honors them.
4. Default preferences are a fallback: any explicit preference for an
   engine disables all of that engine's defaults.

Building is pure apart from debug logging.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from driver_lifecycle.core.browser_constants import (
    DefaultArgs,
    DefaultPreferences,
    Engine,
    EngineFeatures,
    HeadlessArgs,
    PageLoadStrategy,
    PromptBehavior,
)
from driver_lifecycle.core.exceptions import DriverConfigurationException
from driver_lifecycle.core.logger import get_logger


@dataclass
class Capabilities:
    """Engine-specific options negotiated at session creation."""

    engine: Engine
    headless: bool
    args: List[str] = field(default_factory=list)
    prefs: Dict[str, Any] = field(default_factory=dict)
    experimental_options: Dict[str, Any] = field(default_factory=dict)
    accept_insecure_certs: Optional[bool] = None
    page_load_strategy: Optional[PageLoadStrategy] = None
    unhandled_prompt_behavior: Optional[PromptBehavior] = None
    download_dir: Optional[Path] = None
    default_prefs_applied: bool = False

    @property
    def wait_until(self) -> str:
        """Navigation wait condition derived from the page load strategy."""
        strategy = self.page_load_strategy or PageLoadStrategy.NORMAL
        return strategy.wait_until

    def launch_options(self) -> Dict[str, Any]:
        """
        Keyword arguments for ``BrowserType.launch``.

        Chromium preferences are not launch options; the handle writes them
        into a profile directory instead.
        """
        options: Dict[str, Any] = {
            "headless": self.headless,
            "args": list(self.args),
        }
        if self.engine.channel:
            options["channel"] = self.engine.channel
        if self.engine is Engine.FIREFOX and self.prefs:
            options["firefox_user_prefs"] = dict(self.prefs)
        if self.download_dir is not None:
            options["downloads_path"] = str(self.download_dir)
        options.update(self.experimental_options)
        return options

    def context_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``Browser.new_context``."""
        options: Dict[str, Any] = {"accept_downloads": True}
        if self.accept_insecure_certs is not None:
            options["ignore_https_errors"] = self.accept_insecure_certs
        return options

    def to_dict(self) -> Dict[str, Any]:
        """Flat view for logging."""
        return {
            "engine": self.engine.value,
            "headless": self.headless,
            "args": self.args,
            "prefs": sorted(self.prefs),
            "experimental_options": sorted(self.experimental_options),
            "accept_insecure_certs": self.accept_insecure_certs,
            "page_load_strategy": self.page_load_strategy.value if self.page_load_strategy else None,
            "unhandled_prompt_behavior": (
                self.unhandled_prompt_behavior.value if self.unhandled_prompt_behavior else None
            ),
            "default_prefs_applied": self.default_prefs_applied,
        }


class CapabilityBuilder:
    """
    Builds Capabilities for one engine from Settings.

    Example:
        >>> caps = CapabilityBuilder().build(Engine.FIREFOX, True, get_settings())
        >>> caps.args
        ['--headless']
    """

    def __init__(self):
        self.logger = get_logger("capability_builder")
        self._builders: Dict[Engine, Callable[[Capabilities, Any], None]] = {
            Engine.CHROME: self._build_chrome,
            Engine.EDGE: self._build_edge,
            Engine.FIREFOX: self._build_firefox,
            Engine.SAFARI: self._build_safari,
        }

    def build(self, engine: Engine, headless: bool, settings) -> Capabilities:
        """
        Build capabilities for ``engine``.

        Args:
            engine: Target engine
            headless: Whether to inject the engine's headless argument
            settings: Settings object; only the ``web`` section is read

        Raises:
            DriverConfigurationException: For unrecognized page load
                strategy or prompt behavior values
        """
        engine = Engine.parse(engine)
        web = settings.web
        cross = web.capabilities

        page_load_strategy = self._parse_enum(
            PageLoadStrategy, cross.page_load_strategy, "web.capabilities.page_load_strategy"
        )
        prompt_behavior = self._parse_enum(
            PromptBehavior, cross.unhandled_prompt_behavior, "web.capabilities.unhandled_prompt_behavior"
        )

        caps = Capabilities(engine=engine, headless=headless, download_dir=web.download_dir)
        if headless:
            caps.args.extend(HeadlessArgs.for_engine(engine))

        section = cross.for_engine(engine.value)

        if cross.accept_insecure_certs is not None and self._supports(engine, "insecure_certs"):
            caps.accept_insecure_certs = cross.accept_insecure_certs
        if page_load_strategy is not None and self._supports(engine, "page_load_strategy"):
            caps.page_load_strategy = page_load_strategy
        if prompt_behavior is not None and self._supports(engine, "prompt_behavior"):
            caps.unhandled_prompt_behavior = prompt_behavior

        self._builders[engine](caps, section)

        self.logger.debug("Capabilities built", **caps.to_dict())
        return caps

    def _build_chrome(self, caps: Capabilities, section) -> None:
        if section is not None:
            caps.args.extend(section.args)
            caps.prefs.update(section.prefs)
            caps.experimental_options.update(section.experimental_options)

        if not caps.prefs:
            caps.prefs.update(DefaultPreferences.chromium(caps.download_dir))
            caps.default_prefs_applied = True

    def _build_edge(self, caps: Capabilities, section) -> None:
        explicit_args = section.args if section is not None else []
        caps.args.extend(explicit_args or DefaultArgs.for_engine(Engine.EDGE))

        if section is not None:
            caps.prefs.update(section.prefs)
            caps.experimental_options.update(section.experimental_options)

        if not caps.prefs:
            caps.prefs.update(DefaultPreferences.chromium(caps.download_dir))
            caps.default_prefs_applied = True

    def _build_firefox(self, caps: Capabilities, section) -> None:
        if section is not None:
            caps.args.extend(section.args)
            caps.prefs.update(section.prefs)
            caps.experimental_options.update(section.experimental_options)

        if not caps.prefs:
            caps.prefs.update(DefaultPreferences.firefox(caps.download_dir))
            caps.default_prefs_applied = True

    def _build_safari(self, caps: Capabilities, section) -> None:
        # WebKit has no preference store and no headless switch.
        if section is None:
            return
        caps.args.extend(section.args)
        caps.experimental_options.update(section.experimental_options)
        if section.prefs and not EngineFeatures.supports_feature(caps.engine, "prefs"):
            self.logger.warning(
                "Preferences are not supported for this engine and were ignored",
                engine=caps.engine.value,
                prefs=sorted(section.prefs)
            )

    def _supports(self, engine: Engine, feature: str) -> bool:
        supported = EngineFeatures.supports_feature(engine, feature)
        if not supported:
            self.logger.debug("Capability not applied for engine", engine=engine.value, feature=feature)
        return supported

    @staticmethod
    def _parse_enum(enum_cls, value: Optional[str], setting: str):
        if value is None:
            return None
        try:
            return enum_cls(str(value).strip().lower())
        except ValueError:
            raise DriverConfigurationException(
                f"Unrecognized value for {setting}: {value!r}",
                setting=setting,
                value=value
            ).add_recovery_suggestion(
                f"Use one of {[member.value for member in enum_cls]}"
            ) from None
