"""Exit code mapping tests."""
from __future__ import annotations

import pytest
from jinja2 import UndefinedError

from hostmate.errors import (
    ActionIncomplete,
    AvailabilityCheckFailed,
    CommandError,
    InvalidTargetSpecification,
    KeyNotFound,
    NoSuitableDriver,
)
from hostmate.exit_codes import ExitCode, exit_code_for


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (NoSuitableDriver("packages", "install"), ExitCode.ENVIRONMENT),
        (AvailabilityCheckFailed("apt", "apt-get", "timed out"), ExitCode.ENVIRONMENT),
        (ActionIncomplete("install", ["curl"]), ExitCode.PROVIDER),
        (CommandError(["apt-get"], 100, "E: broken"), ExitCode.PROVIDER),
        (InvalidTargetSpecification("bad"), ExitCode.VALIDATION),
        (KeyNotFound("a#b", "b"), ExitCode.VALIDATION),
        (ValueError("bad"), ExitCode.VALIDATION),
        (UndefinedError("'name' is undefined"), ExitCode.VALIDATION),
        (OSError("disk"), ExitCode.PROVIDER),
    ],
)
def test_exit_code_for(exc: BaseException, expected: ExitCode) -> None:
    assert exit_code_for(exc) is expected


def test_error_messages_name_their_subjects() -> None:
    assert str(CommandError(["apt-get", "install"], 100, "\nE: broken\n")) == (
        "apt-get install failed (exit 100): E: broken"
    )
    assert str(NoSuitableDriver("fields", "lookup", missing={"yaml": []})) == (
        "No suitable fields driver for 'lookup'. Candidates: yaml."
    )
