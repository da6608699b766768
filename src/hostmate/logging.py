"""Structured operations log for hostmate commands.

Each top-level operation appends a single JSON object to
``<log_dir>/operations.jsonl``::

    {"timestamp": "...", "command": "packages install", "args": {...},
     "target": {...}, "steps": [...], "result": {"status": "success", ...}}

The log is best effort: an unwritable log directory disables the logger so
that host mutations never fail because of bookkeeping.
"""
from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger(__name__)

OPERATIONS_LOG = "operations.jsonl"


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _json_safe(value: object) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    if isinstance(value, Mapping):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return str(value)


@dataclass(slots=True)
class OperationScope:
    """Collects steps and the final result of one logged operation."""

    command: str
    args: Mapping[str, object]
    target: Mapping[str, object] | None
    started: float = field(default_factory=time.perf_counter)
    timestamp: str = field(default_factory=_now_iso)
    steps: list[dict[str, Any]] = field(default_factory=list)
    result: dict[str, Any] | None = None

    def add_step(self, name: str, *, status: str = "success", detail: object = None) -> None:
        """Record an intermediate step such as a driver selection."""
        step: dict[str, Any] = {"name": name, "status": status}
        if detail is not None:
            step["detail"] = _json_safe(detail)
        self.steps.append(step)

    def success(
        self,
        message: str,
        *,
        changed: int = 0,
        warnings: Iterable[str] = (),
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation successful."""
        self._finish("success", message, changed=changed, warnings=warnings, context=context)

    def warning(
        self,
        message: str,
        *,
        warnings: Iterable[str] = (),
        errors: Iterable[str] = (),
        changed: int = 0,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation as completed with warnings."""
        self._finish(
            "warning",
            message,
            changed=changed,
            warnings=warnings,
            errors=errors,
            context=context,
        )

    def error(
        self,
        message: str,
        *,
        errors: Iterable[str] | None = None,
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        """Mark the operation failed."""
        self._finish(
            "error",
            message,
            errors=list(errors) if errors else [message],
            rc=rc,
            context=context,
        )

    def _finish(
        self,
        status: str,
        message: str,
        *,
        changed: int = 0,
        warnings: Iterable[str] = (),
        errors: Iterable[str] = (),
        rc: int | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        result: dict[str, Any] = {
            "status": status,
            "message": message,
            "changed": changed,
            "warnings": list(warnings),
            "errors": list(errors),
        }
        if rc is not None:
            result["rc"] = rc
        if context:
            result["context"] = _json_safe(dict(context))
        self.result = result

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-ready record for this operation."""
        result = self.result or {
            "status": "unknown",
            "message": "Operation ended without a result.",
            "changed": 0,
            "warnings": [],
            "errors": [],
        }
        return {
            "timestamp": self.timestamp,
            "command": self.command,
            "args": _json_safe(dict(self.args)),
            "target": _json_safe(dict(self.target)) if self.target else None,
            "duration_ms": int((time.perf_counter() - self.started) * 1000),
            "steps": list(self.steps),
            "result": result,
        }


class StructuredLogger:
    """Append-only JSONL log of operations."""

    def __init__(self, log_dir: Path) -> None:
        """Prepare *log_dir*; disable logging if it cannot be created."""
        self._log_dir = Path(log_dir).expanduser()
        self._operations_log_path = self._log_dir / OPERATIONS_LOG
        self._enabled = True
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.warning("Operations log disabled, cannot create %s: %s", self._log_dir, exc)
            self._enabled = False

    @property
    def path(self) -> Path:
        """Return the operations log path."""
        return self._operations_log_path

    @property
    def enabled(self) -> bool:
        """Return ``True`` while records are being written."""
        return self._enabled

    @contextmanager
    def operation(
        self,
        command: str,
        *,
        args: Mapping[str, object] | None = None,
        target: Mapping[str, object] | None = None,
    ) -> Iterator[OperationScope]:
        """Yield an :class:`OperationScope` and write its record on exit.

        Exceptions escaping the block are recorded as errors and re-raised.
        """
        scope = OperationScope(command=command, args=dict(args or {}), target=target)
        try:
            yield scope
        except Exception as exc:
            if scope.result is None:
                scope.error(str(exc) or type(exc).__name__)
            raise
        finally:
            self._write(scope.to_record())

    def _write(self, record: Mapping[str, Any]) -> None:
        if not self._enabled:
            return
        line = json.dumps(record, sort_keys=False)
        try:
            with self._operations_log_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            LOGGER.warning("Operations log disabled after write failure: %s", exc)
            self._enabled = False


__all__ = ["OperationScope", "StructuredLogger"]
