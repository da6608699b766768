"""Exit codes shared by every hostmate command."""
from __future__ import annotations

from enum import IntEnum

from jinja2 import TemplateError

from .errors import (
    ActionIncomplete,
    AvailabilityCheckFailed,
    CommandError,
    InvalidTargetSpecification,
    KeyNotFound,
    NoSuitableDriver,
)


class ExitCode(IntEnum):
    """Well-known exit codes enforced across the CLI."""

    OK = 0
    VALIDATION = 2
    ENVIRONMENT = 3
    PROVIDER = 4


def exit_code_for(exc: BaseException) -> ExitCode:
    """Map a hostmate exception to the exit code the CLI reports."""
    if isinstance(exc, (NoSuitableDriver, AvailabilityCheckFailed)):
        return ExitCode.ENVIRONMENT
    if isinstance(exc, (ActionIncomplete, CommandError)):
        return ExitCode.PROVIDER
    if isinstance(exc, (InvalidTargetSpecification, KeyNotFound, ValueError, TemplateError)):
        return ExitCode.VALIDATION
    return ExitCode.PROVIDER


__all__ = ["ExitCode", "exit_code_for"]
