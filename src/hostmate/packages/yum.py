"""RPM/YUM driver."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..driver import Dependencies
from .base import PackageDriver


class YumDriver(PackageDriver):
    """Manage packages with ``yum`` and query them with ``rpm``."""

    name = "yum"
    depends_on = Dependencies(programs=("yum", "rpm"))

    def installed_names(self, names: list[str], options: Mapping[str, Any]) -> Iterable[str]:
        """Return the *names* rpm knows about."""
        result = self.runner.run(["rpm", "-q", "--qf", "%{NAME}\\n", *names], check=False)
        reported = {line.strip() for line in (result.stdout or "").splitlines()}
        return [name for name in names if name in reported]

    def install_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Install *values* (names or local rpm paths)."""
        self.runner.run(["yum", "install", "-y", "-q", *values])

    def uninstall_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Remove *values*."""
        self.runner.run(["yum", "remove", "-y", "-q", *values])


__all__ = ["YumDriver"]
