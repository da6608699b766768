"""Field manager: read-only lookups into a tree of configuration values.

Keys descend nested mappings one ``#``-separated segment at a time::

    fields.lookup("hash#branchkey#deepleafkey")  # "deepleafvalue"
    fields.lookup("hash#missing")                # None
    fields.fetch("hash#missing")                 # raises KeyNotFound
"""
from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from .driver import Dependencies, Driver
from .errors import KeyNotFound
from .manager import Manager
from .templates import render_string

SEPARATOR = "#"
WHOLE_TREE = "*"


def split_key(key: str | Sequence[str]) -> list[str]:
    """Return the segments of *key*; ``"*"`` addresses the whole tree."""
    if isinstance(key, str):
        if key == WHOLE_TREE:
            return []
        segments = key.split(SEPARATOR)
    elif isinstance(key, Sequence):
        segments = list(key)
    else:
        raise ValueError(f"Lookup keys must be strings or sequences. Got {type(key).__name__}.")
    if not segments or any(not isinstance(seg, str) or not seg for seg in segments):
        raise ValueError(f"Malformed lookup key: {key!r}.")
    return segments


def resolve(tree: Mapping[str, Any], key: str | Sequence[str]) -> Any:
    """Descend *tree* along *key*; raise :class:`KeyNotFound` on a missing segment."""
    segments = split_key(key)
    label = key if isinstance(key, str) else SEPARATOR.join(segments)
    current: Any = tree
    for segment in segments:
        if not isinstance(current, Mapping) or segment not in current:
            raise KeyNotFound(label, segment)
        current = current[segment]
    return current


class FieldDriver(Driver, ABC):
    """Base for lookup drivers; subclasses provide :meth:`tree`."""

    role = "fields"

    @abstractmethod
    def tree(self) -> Mapping[str, Any]:
        """Return the root mapping that keys are resolved against."""

    def fetch(self, key: str | Sequence[str]) -> Any:
        """Return the value at *key* or raise :class:`KeyNotFound`."""
        return copy.deepcopy(resolve(self.tree(), key))

    def lookup(self, key: str | Sequence[str], default: Any = None) -> Any:
        """Return the value at *key*, or *default* when it does not resolve."""
        try:
            return self.fetch(key)
        except KeyNotFound:
            return default

    def has_key(self, key: str | Sequence[str]) -> bool:
        """Return ``True`` when *key* resolves."""
        try:
            resolve(self.tree(), key)
        except KeyNotFound:
            return False
        return True


class StructDriver(FieldDriver):
    """Serve lookups from an in-memory mapping."""

    name = "struct"

    def __init__(self, struct: Mapping[str, Any] | None = None) -> None:
        """Create the driver over *struct*."""
        super().__init__()
        self.struct = dict(struct) if struct is not None else None

    def suitability(self, method: str, *args: object, **kwargs: object) -> int:
        """Only suitable once a mapping has been supplied."""
        return 1 if self.struct else 0

    def tree(self) -> Mapping[str, Any]:
        """Return the configured mapping."""
        return self.struct or {}


class YamlDriver(FieldDriver):
    """Serve lookups from a YAML file, rendered through Jinja2 first."""

    name = "yaml"
    depends_on = Dependencies(libraries=("yaml", "jinja2"))

    def __init__(
        self,
        file: str | Path | None = None,
        *,
        variables: Mapping[str, object] | None = None,
    ) -> None:
        """Create the driver for *file*; *variables* feed the Jinja2 pass."""
        super().__init__()
        self.file = Path(file).expanduser() if file else None
        self.variables = dict(variables or {})
        self._tree: dict[str, Any] | None = None

    def suitability(self, method: str, *args: object, **kwargs: object) -> int:
        """Only suitable once a file has been configured."""
        return 1 if self.file is not None else 0

    def tree(self) -> Mapping[str, Any]:
        """Return the parsed file, loading it on first use."""
        if self._tree is None:
            self._tree = self._load()
        return self._tree

    def reload(self) -> None:
        """Forget the parsed file so the next lookup reads it again."""
        self._tree = None

    def _load(self) -> dict[str, Any]:
        if self.file is None:
            raise ValueError("No fields file configured.")
        text = render_string(self.file.read_text(encoding="utf-8"), self.variables)
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Failed to parse fields file {self.file}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ValueError(f"Fields file {self.file} must contain a mapping at the top level.")
        return dict(data)


class FieldManager(Manager):
    """Look up structured configuration values."""

    role = "fields"

    def __init__(
        self,
        *,
        struct: Mapping[str, Any] | None = None,
        file: str | Path | None = None,
        **kwargs: Any,
    ) -> None:
        """Create the manager; *struct* and *file* configure the default drivers."""
        self.struct = struct
        self.file = file
        super().__init__(**kwargs)

    def default_drivers(self) -> list[Driver]:
        """Return the bundled lookup drivers."""
        return [StructDriver(self.struct), YamlDriver(self.file)]

    def lookup(
        self,
        key: str | Sequence[str],
        default: Any = None,
        *,
        with_: str | None = None,
    ) -> Any:
        """Return the value at *key*, or *default* when absent."""
        return self.dispatch("lookup", key, default, with_=with_)

    def fetch(self, key: str | Sequence[str], *, with_: str | None = None) -> Any:
        """Return the value at *key* or raise :class:`KeyNotFound`."""
        return self.dispatch("fetch", key, with_=with_)

    def has_key(self, key: str | Sequence[str], *, with_: str | None = None) -> bool:
        """Return ``True`` when *key* resolves."""
        return self.dispatch("has_key", key, with_=with_)


__all__ = [
    "FieldDriver",
    "FieldManager",
    "StructDriver",
    "YamlDriver",
    "resolve",
    "split_key",
]
