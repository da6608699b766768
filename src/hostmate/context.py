"""Execution mode flags threaded through every manager call."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ExecutionMode(str, Enum):
    """Whether mutations perform real side effects."""

    NORMAL = "normal"
    PREVIEW = "preview"

    @classmethod
    def parse(cls, value: str | ExecutionMode) -> ExecutionMode:
        """Return the mode named by *value* (case-insensitive)."""
        if isinstance(value, ExecutionMode):
            return value
        text = str(value).strip().lower()
        for mode in cls:
            if mode.value == text:
                return mode
        allowed = ", ".join(mode.value for mode in cls)
        raise ValueError(f"Unknown execution mode '{value}'. Allowed: {allowed}.")


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Immutable per-run settings consulted by the mutation helpers."""

    mode: ExecutionMode = ExecutionMode.NORMAL
    quiet: bool = False
    probe_timeout: float = 5.0

    @property
    def preview(self) -> bool:
        """Return ``True`` when side effects must be suppressed."""
        return self.mode is ExecutionMode.PREVIEW

    @property
    def writing(self) -> bool:
        """Return ``True`` when side effects are allowed."""
        return not self.preview


__all__ = ["ExecutionContext", "ExecutionMode"]
