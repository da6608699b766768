"""Thin wrapper around :mod:`subprocess` used by command-backed drivers."""
from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .errors import CommandError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandRunner:
    """Run external commands with captured text output."""

    sudo: bool = False
    timeout: float | None = None
    env: Mapping[str, str] | None = None

    def command(self, args: Sequence[str]) -> list[str]:
        """Return the argv actually executed for *args*."""
        argv = [str(arg) for arg in args]
        if self.sudo and os.geteuid() != 0:
            argv = ["sudo", "-n", *argv]
        return argv

    def run(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Execute *args*; raise :class:`CommandError` on failure when *check*."""
        argv = self.command(args)
        merged_env: dict[str, str] | None = None
        if self.env or env:
            merged_env = dict(os.environ)
            merged_env.update(self.env or {})
            merged_env.update(env or {})
        LOGGER.debug("Running %s", " ".join(argv))
        try:
            result = subprocess.run(  # noqa: S603
                argv,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
                env=merged_env,
            )
        except FileNotFoundError as exc:
            raise CommandError(argv, 127, f"{argv[0]} not found: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(argv, -1, f"timed out after {self.timeout}s") from exc
        if check and result.returncode != 0:
            stdout = result.stdout or ""
            stderr = result.stderr or ""
            raise CommandError(argv, result.returncode, stderr.strip() or stdout.strip())
        return result


__all__ = ["CommandRunner"]
