"""RubyGems driver."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..driver import Dependencies
from .base import PackageDriver


class GemDriver(PackageDriver):
    """Manage Ruby gems with the ``gem`` command."""

    name = "gem"
    depends_on = Dependencies(programs=("gem",))
    uninstall_uses_sources = False

    def installed_names(self, names: list[str], options: Mapping[str, Any]) -> Iterable[str]:
        """Return the *names* present in ``gem list --local``."""
        result = self.runner.run(["gem", "list", "--local", "--no-versions"], check=False)
        reported = {
            line.strip()
            for line in (result.stdout or "").splitlines()
            if line.strip() and not line.startswith("***")
        }
        return [name for name in names if name in reported]

    def install_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Install *values* (gem names or ``.gem`` paths)."""
        self.runner.run(["gem", "install", "--no-document", *values])

    def uninstall_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Uninstall every version of *values*."""
        self.runner.run(["gem", "uninstall", "-x", "-a", *values])


__all__ = ["GemDriver"]
