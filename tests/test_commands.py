"""Tests for the subprocess wrapper used by command-backed drivers."""
from __future__ import annotations

import subprocess
import sys

import pytest

from hostmate import commands
from hostmate.commands import CommandRunner
from hostmate.errors import CommandError


def test_sudo_prefix_only_when_not_root(monkeypatch: pytest.MonkeyPatch) -> None:
    runner = CommandRunner(sudo=True)

    monkeypatch.setattr(commands.os, "geteuid", lambda: 1000)
    assert runner.command(["apt-get", "install", "curl"]) == [
        "sudo",
        "-n",
        "apt-get",
        "install",
        "curl",
    ]

    monkeypatch.setattr(commands.os, "geteuid", lambda: 0)
    assert runner.command(["apt-get"]) == ["apt-get"]
    assert CommandRunner().command(["true"]) == ["true"]


def test_run_captures_output() -> None:
    result = CommandRunner().run([sys.executable, "-c", "print('hello')"])

    assert result.returncode == 0
    assert result.stdout.strip() == "hello"


def test_run_merges_environment() -> None:
    runner = CommandRunner(env={"HOSTMATE_A": "1"})
    script = "import os; print(os.environ['HOSTMATE_A'] + os.environ['HOSTMATE_B'])"

    result = runner.run([sys.executable, "-c", script], env={"HOSTMATE_B": "2"})

    assert result.stdout.strip() == "12"


def test_non_zero_exit_raises_command_error() -> None:
    script = "import sys; sys.stderr.write('bad things'); sys.exit(3)"

    with pytest.raises(CommandError) as excinfo:
        CommandRunner().run([sys.executable, "-c", script])

    assert excinfo.value.returncode == 3
    assert "bad things" in str(excinfo.value)


def test_non_zero_exit_is_returned_when_not_checking() -> None:
    result = CommandRunner().run([sys.executable, "-c", "raise SystemExit(1)"], check=False)

    assert result.returncode == 1


def test_missing_program_raises_command_error() -> None:
    with pytest.raises(CommandError) as excinfo:
        CommandRunner().run(["hostmate-no-such-program"])

    assert excinfo.value.returncode == 127


def test_timeout_raises_command_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def slow(*args: object, **kwargs: object) -> None:
        raise subprocess.TimeoutExpired(cmd="sleep", timeout=1)

    monkeypatch.setattr(commands.subprocess, "run", slow)

    with pytest.raises(CommandError, match="timed out"):
        CommandRunner(timeout=1).run(["sleep", "10"])
