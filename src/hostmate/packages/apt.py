"""Debian APT driver (dpkg-query for checks, apt-get for changes)."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..driver import Dependencies
from .base import PackageDriver

DPKG_FORMAT = "${Package} ${Status}\\n"
APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptDriver(PackageDriver):
    """Manage packages with ``apt-get``."""

    name = "apt"
    depends_on = Dependencies(programs=("apt-get", "dpkg-query"))

    def installed_names(self, names: list[str], options: Mapping[str, Any]) -> Iterable[str]:
        """Return the *names* dpkg reports as ``install ok installed``."""
        # Unknown packages make dpkg-query exit non-zero; known ones still print.
        result = self.runner.run(["dpkg-query", "-W", "-f", DPKG_FORMAT, *names], check=False)
        installed: set[str] = set()
        for line in (result.stdout or "").splitlines():
            package, _, status = line.partition(" ")
            if status.strip().endswith("install ok installed"):
                installed.add(package.split(":", 1)[0])
        return [name for name in names if name in installed]

    def install_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Install *values* non-interactively."""
        self.runner.run(["apt-get", "install", "-y", "-q", *values], env=APT_ENV)

    def uninstall_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Remove *values* non-interactively."""
        self.runner.run(["apt-get", "remove", "-y", "-q", *values], env=APT_ENV)


__all__ = ["AptDriver"]
