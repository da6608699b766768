"""Idempotent mutation protocol shared by every mutating driver.

Drivers supply two callbacks:

``check(names, options)``
    Return the subset of *names* currently in the state being queried
    (e.g. installed packages, groups a user belongs to).
``act(values, options)``
    Perform the change for *values*. For name to path targets the values are
    the paths; otherwise they are the names.

:func:`converge` then normalises the targets, acts only on the delta and
verifies the postcondition afterwards.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .context import ExecutionContext
from .errors import ActionIncomplete
from .targets import TargetSet, normalize_targets

LOGGER = logging.getLogger(__name__)

Check = Callable[[list[str], Mapping[str, Any]], Iterable[str]]
Act = Callable[[list[str], Mapping[str, Any]], object]

# Options consumed here rather than forwarded to driver callbacks.
RESULT_OPTIONS = ("details", "list")


@dataclass(frozen=True, slots=True)
class Delta:
    """Targets split into those already in the desired state and the rest."""

    targets: TargetSet
    satisfied: tuple[str, ...]
    pending: tuple[str, ...]

    @property
    def changed(self) -> bool:
        """Return ``True`` when some targets still need the action."""
        return bool(self.pending)


def split_options(options: Mapping[str, Any] | None) -> tuple[bool, dict[str, Any]]:
    """Return ``(details, remaining_options)`` for *options*."""
    remaining = dict(options or {})
    details = False
    for key in RESULT_OPTIONS:
        if remaining.pop(key, False):
            details = True
    return details, remaining


def compute_delta(
    targets: TargetSet,
    check: Check,
    options: Mapping[str, Any],
    *,
    desired: bool = True,
) -> Delta:
    """Partition *targets* using *check*.

    With ``desired=False`` the same check is inverted: targets reported by
    the check are the pending ones.
    """
    names = list(targets.names)
    present = set(check(names, options)) if names else set()
    satisfied = tuple(name for name in names if (name in present) == desired)
    pending = tuple(name for name in names if (name in present) != desired)
    return Delta(targets=targets, satisfied=satisfied, pending=pending)


def query_state(
    spec: object,
    check: Check,
    options: Mapping[str, Any] | None = None,
    *,
    desired: bool = True,
    label: str = "state",
) -> bool | tuple[bool, list[str]]:
    """Return whether every target is in the desired state.

    With the ``details`` (or ``list``) option, returns ``(truth, subset)``
    where *subset* holds the targets already in the desired state.
    """
    details, remaining = split_options(options)
    targets = normalize_targets(spec)
    delta = compute_delta(targets, check, remaining, desired=desired)
    truth = not delta.pending
    LOGGER.debug(
        "%s(%s) => %s: %s", label, list(targets.names), truth, list(delta.satisfied)
    )
    if details:
        return truth, list(delta.satisfied)
    return truth


def converge(
    spec: object,
    *,
    check: Check,
    act: Act,
    context: ExecutionContext,
    options: Mapping[str, Any] | None = None,
    desired: bool = True,
    action: str = "apply",
    translate: bool = True,
) -> bool | tuple[bool, list[str]]:
    """Bring *spec* into the desired state, touching only the delta.

    Returns ``False`` when nothing needed to change and ``True`` when the
    action ran (or, in preview mode, would have run). With the ``details``
    option the affected names are returned alongside the boolean. Raises
    :class:`ActionIncomplete` naming exactly the targets that still fail the
    check after acting, including when the action itself raised part way.
    """
    details, remaining = split_options(options)
    targets = normalize_targets(spec)
    delta = compute_delta(targets, check, remaining, desired=desired)

    if not delta.pending:
        LOGGER.debug("%s(%s): nothing to do", action, list(targets.names))
        return _result(False, [], details)

    pending = list(delta.pending)
    if context.preview:
        if not context.quiet:
            LOGGER.info("Would %s: %s", action, " ".join(pending))
        return _result(True, pending, details)

    if not context.quiet:
        LOGGER.info("%s: %s", action.capitalize(), " ".join(pending))
    values = targets.values_for(pending) if translate else pending
    try:
        act(values, remaining)
    except Exception as exc:
        # A failed command may still have converged part of the delta.
        verify = compute_delta(targets.subset(pending), check, remaining, desired=desired)
        if verify.pending:
            raise ActionIncomplete(action, verify.pending) from exc
        raise

    verify = compute_delta(targets.subset(pending), check, remaining, desired=desired)
    if verify.pending:
        raise ActionIncomplete(action, verify.pending)
    return _result(True, pending, details)


def was_changed(result: bool | tuple[bool, list[str]]) -> bool:
    """Return the changed flag of a :func:`converge` result, with or without details."""
    if isinstance(result, tuple):
        return result[0]
    return bool(result)


def _result(changed: bool, names: list[str], details: bool) -> bool | tuple[bool, list[str]]:
    if details:
        return changed, names
    return changed


__all__ = [
    "Act",
    "Check",
    "Delta",
    "compute_delta",
    "converge",
    "query_state",
    "split_options",
    "was_changed",
]
