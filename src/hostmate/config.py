"""Configuration loader for hostmate.

Values are merged from, in increasing priority:

1. Built-in defaults.
2. ``/etc/hostmate/config.yml`` (or the path in ``HOSTMATE_CONFIG_FILE`` or
   passed explicitly).
3. Environment variables prefixed with ``HOSTMATE_``.
4. Explicit overrides supplied programmatically (used for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export HOSTMATE_MODE=preview
    export HOSTMATE_DRIVERS__PACKAGES=apt
    export HOSTMATE_DOWNLOADS__TIMEOUT=10

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers
parse naturally.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in packaging
    raise RuntimeError(
        "PyYAML is required to load hostmate configuration. Install with "
        "`pip install hostmate` or ensure PyYAML>=6.0 is available."
    ) from exc

from .context import ExecutionContext, ExecutionMode
from .templates import CHECK_MODES

ENV_PREFIX = "HOSTMATE_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}
ROLES = ("accounts", "packages", "downloads", "templates", "fields")


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class DownloadsConfig:
    """Download transport settings."""

    timeout: float = 30.0

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"timeout": self.timeout}


@dataclass(frozen=True)
class FieldsConfig:
    """Sources for structured lookups."""

    default: str | None = None
    file: Path | None = None
    struct: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "default": self.default,
            "file": str(self.file) if self.file is not None else None,
            "struct": dict(self.struct),
        }


@dataclass(frozen=True)
class TemplatesConfig:
    """Template rendering defaults."""

    check: str = "compare"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"check": self.check}


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for hostmate."""

    config_file: Path
    logs_dir: Path
    mode: ExecutionMode
    quiet: bool
    probe_timeout: float
    use_sudo: bool
    drivers: Mapping[str, str | None]
    downloads: DownloadsConfig
    fields: FieldsConfig
    templates: TemplatesConfig

    def execution_context(self) -> ExecutionContext:
        """Return the execution context implied by this configuration."""
        return ExecutionContext(mode=self.mode, quiet=self.quiet, probe_timeout=self.probe_timeout)

    def default_driver(self, role: str) -> str | None:
        """Return the configured default driver for *role*, if any."""
        return self.drivers.get(role)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "logs_dir": str(self.logs_dir),
            "mode": self.mode.value,
            "quiet": self.quiet,
            "probe_timeout": self.probe_timeout,
            "use_sudo": self.use_sudo,
            "drivers": dict(self.drivers),
            "downloads": self.downloads.to_dict(),
            "fields": self.fields.to_dict(),
            "templates": self.templates.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/hostmate/config.yml",
    "logs_dir": "/var/log/hostmate",
    "mode": "normal",
    "quiet": False,
    "probe_timeout": 5.0,
    "use_sudo": False,
    "drivers": {role: None for role in ROLES},
    "downloads": {"timeout": 30.0},
    "fields": {"default": None, "file": None, "struct": {}},
    "templates": {"check": "compare"},
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
SECTION_KEYS: dict[str, set[str]] = {
    "drivers": set(ROLES),
    "downloads": {"timeout"},
    "fields": {"default", "file", "struct"},
    "templates": {"check"},
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_path = _determine_config_path(str(DEFAULTS["config_file"]), config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in SECTION_KEYS.items():
        mapping = _as_dict(raw.get(section), section)
        unknown = set(mapping.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    try:
        ExecutionMode.parse(str(raw.get("mode", "normal")))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    templates_map = _as_dict(raw.get("templates"), "templates")
    check = str(templates_map.get("check", "compare"))
    if check not in CHECK_MODES:
        allowed = ", ".join(CHECK_MODES)
        raise ConfigError(f"Unsupported templates.check '{check}'. Allowed: {allowed}.")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    drivers_map = _as_dict(raw.get("drivers"), "drivers")
    drivers: dict[str, str | None] = {}
    for role in ROLES:
        value = drivers_map.get(role)
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"drivers.{role} must be a driver name or null.")
        drivers[role] = value or None

    downloads_map = _as_dict(raw.get("downloads"), "downloads")
    fields_map = _as_dict(raw.get("fields"), "fields")
    fields_default = fields_map.get("default")
    if fields_default is not None and not isinstance(fields_default, str):
        raise ConfigError("fields.default must be a driver name or null.")
    fields_file = fields_map.get("file")
    templates_map = _as_dict(raw.get("templates"), "templates")

    return AppConfig(
        config_file=_to_path(raw.get("config_file")),
        logs_dir=_to_path(raw.get("logs_dir")),
        mode=ExecutionMode.parse(str(raw.get("mode", "normal"))),
        quiet=_expect_bool(raw.get("quiet"), "quiet", default=False),
        probe_timeout=_expect_positive_float(
            raw.get("probe_timeout"), "probe_timeout", default=5.0
        ),
        use_sudo=_expect_bool(raw.get("use_sudo"), "use_sudo", default=False),
        drivers=drivers,
        downloads=DownloadsConfig(
            timeout=_expect_positive_float(
                downloads_map.get("timeout"), "downloads.timeout", default=30.0
            ),
        ),
        fields=FieldsConfig(
            default=fields_default or None,
            file=_to_path(fields_file) if fields_file else None,
            struct=_as_dict(fields_map.get("struct"), "fields.struct"),
        ),
        templates=TemplatesConfig(check=str(templates_map.get("check", "compare"))),
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # pragma: no cover - treat as string if parsing fails
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_bool(value: object | None, label: str, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "on", "1"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "no", "off", "0"}:
        return False
    raise ConfigError(f"Expected {label} to be a boolean. Got {value!r}.")


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "DownloadsConfig",
    "FieldsConfig",
    "TemplatesConfig",
    "load_config",
]
