"""Python package driver using ``pip`` for the running interpreter."""
from __future__ import annotations

import sys
from collections.abc import Iterable, Mapping
from typing import Any

from packaging.utils import canonicalize_name

from ..commands import CommandRunner
from ..driver import Dependencies
from .base import PackageDriver


class PipDriver(PackageDriver):
    """Manage Python distributions with ``python -m pip``.

    Mapping targets install from the given path (wheel, sdist or project
    directory) and uninstall by distribution name.
    """

    name = "pip"
    depends_on = Dependencies(libraries=("pip",))
    uninstall_uses_sources = False

    def __init__(self, *, runner: CommandRunner | None = None, python: str | None = None) -> None:
        """Create the driver for *python* (defaults to the current interpreter)."""
        super().__init__(runner=runner)
        self.python = python or sys.executable

    def installed_names(self, names: list[str], options: Mapping[str, Any]) -> Iterable[str]:
        """Return the *names* ``pip show`` reports, matched by canonical name."""
        result = self.runner.run([self.python, "-m", "pip", "show", *names], check=False)
        reported = set()
        for line in (result.stdout or "").splitlines():
            key, _, value = line.partition(":")
            if key.strip() == "Name" and value.strip():
                reported.add(canonicalize_name(value.strip()))
        return [name for name in names if canonicalize_name(name) in reported]

    def install_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Install *values* (requirement names or paths)."""
        self.runner.run([self.python, "-m", "pip", "install", "--quiet", *values])

    def uninstall_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Uninstall *values* by distribution name."""
        self.runner.run([self.python, "-m", "pip", "uninstall", "--yes", "--quiet", *values])


__all__ = ["PipDriver"]
