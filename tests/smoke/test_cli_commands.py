"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

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


@pytest.fixture
def cli_env(tmp_path):
    """Environment pointing storage at a temporary directory."""
    env = dict(os.environ)
    # Lessons come from the bundled default
    env.pop("CONTENT_DIR", None)
    env.update(
        {
            "DATABASE_URL": f"sqlite:///{tmp_path / 'state.db'}",
            "SESSION_DIR": str(tmp_path / "sessions"),
            "COLUMNS": "200",
        }
    )
    return env


def run_cli_command(args: list[str], env: dict, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m lingoloop'
        env: Process environment
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    result = subprocess.run(
        [sys.executable, "-m", "lingoloop", *args],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli_env):
        code, stdout, stderr = run_cli_command(["--help"], cli_env)

        assert code == 0, f"Help failed: {stderr}"
        assert "lingoloop" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("command", ["onboard", "lesson", "review", "resume", "plan"])
    def test_command_help(self, cli_env, command):
        code, stdout, stderr = run_cli_command([command, "--help"], cli_env)

        assert code == 0, f"{command} help failed: {stderr}"
        assert "user" in stdout.lower()


class TestCLICommands:
    def test_lessons(self, cli_env):
        code, stdout, stderr = run_cli_command(["lessons"], cli_env)

        assert code == 0, stderr
        assert "greetings" in stdout

    def test_onboard_then_plan(self, cli_env):
        code, stdout, stderr = run_cli_command(
            ["onboard", "ana", "--motivation", "travel", "--difficulty", "balanced"], cli_env
        )
        assert code == 0, stderr
        assert "goal:travel" in stdout

        code, stdout, stderr = run_cli_command(
            ["plan", "ana", "greetings", "--session-id", "s1"], cli_env
        )
        assert code == 0, stderr
        assert "t-hola" in stdout
        assert "cards" in stdout

    def test_onboard_rejects_missing_motivation(self, cli_env):
        code, stdout, _ = run_cli_command(["onboard", "ana", "--difficulty", "hard"], cli_env)

        assert code == 1
        assert "motivation" in stdout

    def test_unknown_lesson(self, cli_env):
        code, _, _ = run_cli_command(["plan", "ana", "no-such-lesson"], cli_env)

        assert code == 1

    def test_due_and_review_with_empty_store(self, cli_env):
        code, stdout, stderr = run_cli_command(["due", "ana"], cli_env)
        assert code == 0, stderr
        assert "0" in stdout

        code, stdout, stderr = run_cli_command(["review", "ana"], cli_env)
        assert code == 0, stderr
        assert "Nothing due" in stdout

    def test_resume_without_session(self, cli_env):
        code, stdout, stderr = run_cli_command(["resume", "ana"], cli_env)

        assert code == 0, stderr
        assert "No session" in stdout
