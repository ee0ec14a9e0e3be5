# tests/integration/test_shutdown_integration.py
"""
Integration tests for the interpreter-exit sweep.

Each test runs a short script in a fresh interpreter, leaves a session
open and lets the process exit; Playwright is mocked inside the script.
"""

import os
import subprocess
import sys
import textwrap

import pytest

pytestmark = pytest.mark.integration

EXIT_WITH_OPEN_SESSION = textwrap.dedent("""
    import sys
    from pathlib import Path
    from unittest.mock import MagicMock

    from driver_lifecycle import get_session_registry
    from driver_lifecycle.config.settings import Settings
    from driver_lifecycle.core.driver_factory import DriverFactory

    marker = Path(sys.argv[1])
    pw_factory = MagicMock(name="sync_playwright")
    playwright = pw_factory.return_value.start.return_value
    playwright.stop.side_effect = lambda: marker.write_text("stopped", encoding="utf-8")

    settings = Settings(
        web={"browser": "firefox", "window_size": "800,600", "download_dir": sys.argv[2]},
        logging={"console_enabled": False},
    )
    registry = get_session_registry(settings)
    registry.factory = DriverFactory(settings, playwright_factory=pw_factory)

    registry.acquire("w1")
    assert registry.active_count() == 1
""")


class TestShutdownIntegration:

    def run_script(self, tmp_path, source):
        script = tmp_path / "exit_script.py"
        script.write_text(source, encoding="utf-8")
        marker = tmp_path / "playwright_stopped"
        result = subprocess.run(
            [sys.executable, str(script), str(marker), str(tmp_path / "downloads")],
            capture_output=True,
            text=True,
            timeout=120,
            env=os.environ.copy(),
            cwd=str(tmp_path),
        )
        return result, marker

    def test_open_session_is_closed_at_interpreter_exit(self, tmp_path):
        result, marker = self.run_script(tmp_path, EXIT_WITH_OPEN_SESSION)

        assert result.returncode == 0, result.stderr
        assert "Exception ignored" not in result.stderr
        assert marker.exists(), result.stderr
        assert marker.read_text(encoding="utf-8") == "stopped"
