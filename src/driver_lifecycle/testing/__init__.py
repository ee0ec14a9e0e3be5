# src/driver_lifecycle/testing/__init__.py
"""
Helpers for test suites: a base class for class-style tests and a pytest
plugin with session fixtures.

Enable the plugin from a conftest with::

    pytest_plugins = ["driver_lifecycle.testing.plugin"]
"""

from .base_test import BrowserTestCase

__all__ = ["BrowserTestCase"]
