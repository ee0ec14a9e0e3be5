# src/driver_lifecycle/config/__init__.py
from .settings import Environment, Settings, get_settings, reload_settings

__all__ = ["Environment", "Settings", "get_settings", "reload_settings"]
