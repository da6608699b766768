"""Normalisation of caller-supplied target specifications.

A target specification may be a single name, a list of names, a manifest
string (one or more names per line, ``#`` starts a comment) or a mapping from
logical name to a filesystem path or source. All of them normalise into a
:class:`TargetSet` before any driver logic runs::

    >>> normalize_targets("# web\\n nginx curl\\n\\n nginx").names
    ('nginx', 'curl')
    >>> normalize_targets({"tractags": "/tmp/tractags.whl"}).value_for("tractags")
    '/tmp/tractags.whl'
"""
from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Union

from .errors import InvalidTargetSpecification

TargetInput = Union["TargetSet", str, Sequence[object], Mapping[str, object]]


@dataclass(frozen=True, slots=True)
class TargetSet:
    """Canonical ordered-unique target names, optionally mapped to sources."""

    names: tuple[str, ...] = ()
    sources: Mapping[str, str] | None = None

    @property
    def is_mapping(self) -> bool:
        """Return ``True`` when the targets carry name to path sources."""
        return self.sources is not None

    def value_for(self, name: str) -> str:
        """Return the value an action should receive for *name*."""
        if self.sources is None:
            return name
        return self.sources[name]

    def values_for(self, names: Iterable[str]) -> list[str]:
        """Translate *names* into action values, preserving order."""
        return [self.value_for(name) for name in names]

    def subset(self, names: Iterable[str]) -> TargetSet:
        """Return the targets restricted to *names* (kept in canonical order)."""
        wanted = set(names)
        kept = tuple(name for name in self.names if name in wanted)
        if self.sources is None:
            return TargetSet(kept)
        return TargetSet(kept, {name: self.sources[name] for name in kept})

    def __iter__(self) -> Iterator[str]:
        """Iterate over target names."""
        return iter(self.names)

    def __len__(self) -> int:
        """Return the number of targets."""
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        """Return ``True`` when *name* is one of the targets."""
        return name in self.names


def parse_manifest(text: str) -> list[str]:
    """Split a manifest string into names.

    Each line is cut at the first ``#`` and split on whitespace; duplicates
    keep their first position.
    """
    names: list[str] = []
    for line in text.splitlines():
        content = line.split("#", 1)[0]
        names.extend(content.split())
    return _unique(names)


def normalize_targets(spec: object) -> TargetSet:
    """Return the canonical :class:`TargetSet` for *spec*.

    Raises :class:`InvalidTargetSpecification` for unsupported shapes.
    Normalising an existing :class:`TargetSet` returns it unchanged.
    """
    if isinstance(spec, TargetSet):
        return spec
    if isinstance(spec, str):
        return TargetSet(tuple(parse_manifest(spec)))
    if isinstance(spec, Mapping):
        return TargetSet(*_normalize_mapping(spec))
    if isinstance(spec, (list, tuple)):
        return TargetSet(tuple(_unique(_flatten(spec))))
    raise InvalidTargetSpecification(
        f"Unknown target specification type: {type(spec).__name__}."
    )


def _normalize_mapping(spec: Mapping[object, object]) -> tuple[tuple[str, ...], dict[str, str]]:
    sources: dict[str, str] = {}
    for key, value in spec.items():
        if not isinstance(key, str) or not key.strip():
            raise InvalidTargetSpecification(
                f"Target mapping keys must be non-empty strings. Got {key!r}."
            )
        if isinstance(value, os.PathLike):
            value = os.fspath(value)
        if not isinstance(value, str):
            raise InvalidTargetSpecification(
                f"Target mapping value for '{key}' must be a path or string. "
                f"Got {type(value).__name__}."
            )
        sources[key.strip()] = value
    return tuple(sources), sources


def _flatten(items: Sequence[object]) -> Iterator[str]:
    for item in items:
        if isinstance(item, str):
            yield from parse_manifest(item)
        elif isinstance(item, (list, tuple)):
            yield from _flatten(item)
        else:
            raise InvalidTargetSpecification(
                f"Target lists may only contain names. Got {type(item).__name__}."
            )


def _unique(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        result.append(name)
    return result


__all__ = ["TargetInput", "TargetSet", "normalize_targets", "parse_manifest"]
