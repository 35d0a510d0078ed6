"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands load and print help without a database.
They don't validate correctness deeply - just that commands are wired up.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


def run_cli_command(args: list[str], tmp_path: Path, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run the CLI module and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m atomic_mastery.cli'
        tmp_path: Working directory (log files land here)
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    env = dict(os.environ)
    env["PYTHONPATH"] = str(PROJECT_ROOT) + os.pathsep + env.get("PYTHONPATH", "")
    env["COLUMNS"] = "200"

    result = subprocess.run(
        [sys.executable, "-m", "atomic_mastery.cli", *args],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, tmp_path):
        code, stdout, stderr = run_cli_command(["--help"], tmp_path)

        assert code == 0, f"Help failed: {stderr}"
        for command in ("init-db", "progress", "apply", "grade"):
            assert command in stdout

    @pytest.mark.parametrize("command", ["init-db", "progress", "apply", "grade"])
    def test_command_help(self, command, tmp_path):
        code, stdout, stderr = run_cli_command([command, "--help"], tmp_path)

        assert code == 0, f"{command} help failed: {stderr}"
        assert "Usage" in stdout

    def test_apply_requires_arguments(self, tmp_path):
        code, _, _ = run_cli_command(["apply"], tmp_path)

        assert code != 0

    def test_grade_rejects_missing_file(self, tmp_path):
        code, _, _ = run_cli_command(["grade", "u1", "lesson-1", str(tmp_path / "missing.json")], tmp_path)

        assert code != 0
