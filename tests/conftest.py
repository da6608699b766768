"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Mapping, Sequence

import pytest

from hostmate.registry import CapabilityRegistry, DependencyProbe


class FakeRunner:
    """Record commands instead of executing them.

    *responder* receives the argv and returns the stdout to report.
    """

    def __init__(self, responder: Callable[[list[str]], str | None] | None = None) -> None:
        self.calls: list[list[str]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self.responder = responder

    def run(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        argv = [str(arg) for arg in args]
        self.calls.append(argv)
        self.envs.append(env)
        stdout = self.responder(argv) if self.responder else ""
        return subprocess.CompletedProcess(argv, 0, stdout=stdout or "", stderr="")

    def commands(self, program: str) -> list[list[str]]:
        """Return the recorded calls whose argv starts with *program*."""
        return [call for call in self.calls if call and call[0] == program]


def everything_present_registry() -> CapabilityRegistry:
    """Return a registry whose probe finds every program and library."""
    probe = DependencyProbe(
        which=lambda name: f"/usr/bin/{name}",
        find_spec=lambda name: object(),
    )
    return CapabilityRegistry(probe)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Return a runner that records commands and prints nothing."""
    return FakeRunner()


@pytest.fixture
def registry() -> CapabilityRegistry:
    """Return a registry where every dependency is present."""
    return everything_present_registry()
