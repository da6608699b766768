"""Exception taxonomy shared by managers, drivers and the mutation helpers."""
from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence


class HostmateError(RuntimeError):
    """Base class for hostmate failures."""


class NoSuitableDriver(HostmateError):
    """Raised when no registered driver can handle a call on this host."""

    def __init__(
        self,
        role: str,
        method: str,
        *,
        missing: Mapping[str, Sequence[str]] | None = None,
        reason: str | None = None,
    ) -> None:
        """Record the role, method and per-driver missing dependencies."""
        self.role = role
        self.method = method
        self.missing = {name: list(deps) for name, deps in (missing or {}).items()}
        message = reason or f"No suitable {role} driver for '{method}'."
        details = [
            f"{name} (missing: {', '.join(deps)})" if deps else name
            for name, deps in self.missing.items()
        ]
        if details:
            message = f"{message} Candidates: {'; '.join(details)}."
        super().__init__(message)


class ActionIncomplete(HostmateError):
    """Raised when verification shows that some targets did not converge."""

    def __init__(self, action: str, targets: Iterable[str]) -> None:
        """Record the failed *action* and the exact unconverged *targets*."""
        self.action = action
        self.targets = list(targets)
        super().__init__(f"Couldn't {action}: {' '.join(self.targets)}")


class InvalidTargetSpecification(HostmateError, TypeError):
    """Raised when a target specification is not a recognised shape."""


class KeyNotFound(HostmateError, KeyError):
    """Raised when a structured lookup path does not resolve."""

    def __init__(self, key: str, segment: str) -> None:
        """Record the full *key* and the first missing *segment*."""
        self.key = key
        self.segment = segment
        super().__init__(f"Key '{key}' not found (missing segment '{segment}').")

    def __str__(self) -> str:
        """Avoid ``KeyError``'s repr-quoting of the message."""
        return str(self.args[0])


class AvailabilityCheckFailed(HostmateError):
    """Raised when probing a driver dependency errors out or times out."""

    def __init__(self, driver: str, dependency: str, detail: str) -> None:
        """Record which *driver* dependency failed and why."""
        self.driver = driver
        self.dependency = dependency
        super().__init__(
            f"Availability check for driver '{driver}' failed on '{dependency}': {detail}"
        )


class CommandError(HostmateError):
    """Raised when an external command exits unsuccessfully."""

    def __init__(self, command: Sequence[str], returncode: int, output: str = "") -> None:
        """Record the failed *command*, its exit code and captured output."""
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = output.strip() or "no output"
        super().__init__(f"{' '.join(self.command)} failed (exit {returncode}): {message}")


__all__ = [
    "ActionIncomplete",
    "AvailabilityCheckFailed",
    "CommandError",
    "HostmateError",
    "InvalidTargetSpecification",
    "KeyNotFound",
    "NoSuitableDriver",
]
