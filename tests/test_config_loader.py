"""Configuration loader tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from hostmate.config import AppConfig, ConfigError, load_config
from hostmate.context import ExecutionMode


def test_load_config_defaults_when_file_missing(tmp_path: Path) -> None:
    """Defaults apply when no config file is present."""
    config = load_config(config_file=tmp_path / "absent.yml", env={})

    assert isinstance(config, AppConfig)
    assert config.logs_dir == Path("/var/log/hostmate")
    assert config.mode is ExecutionMode.NORMAL
    assert config.quiet is False
    assert config.probe_timeout == 5.0
    assert config.use_sudo is False
    assert config.default_driver("packages") is None
    assert config.downloads.timeout == 30.0
    assert config.fields.file is None
    assert config.templates.check == "compare"


def test_load_config_reads_yaml_file(tmp_path: Path) -> None:
    """Values are loaded from the YAML config file."""
    cfg = tmp_path / "hostmate.yml"
    cfg.write_text(
        "mode: preview\n"
        "logs_dir: {logs}\n"
        "use_sudo: true\n"
        "drivers:\n"
        "  packages: apt\n"
        "fields:\n"
        "  file: {logs}/fields.yml\n"
        "  struct:\n"
        "    hash:\n"
        "      leafkey: leafvalue\n"
        "templates:\n"
        "  check: timestamp\n".format(logs=str(tmp_path / "logs"))
    )

    config = load_config(config_file=cfg, env={})

    assert config.config_file == cfg
    assert config.mode is ExecutionMode.PREVIEW
    assert config.logs_dir == tmp_path / "logs"
    assert config.use_sudo is True
    assert config.default_driver("packages") == "apt"
    assert config.fields.file == tmp_path / "logs" / "fields.yml"
    assert config.fields.struct == {"hash": {"leafkey": "leafvalue"}}
    assert config.templates.check == "timestamp"
    assert config.execution_context().preview is True


def test_env_overrides_take_precedence(tmp_path: Path) -> None:
    """Environment variables override defaults and file settings."""
    cfg = tmp_path / "hostmate.yml"
    cfg.write_text("drivers:\n  packages: apt\nprobe_timeout: 2\n")
    env = {
        "HOSTMATE_CONFIG_FILE": str(cfg),
        "HOSTMATE_DRIVERS__PACKAGES": "pip",
        "HOSTMATE_DOWNLOADS__TIMEOUT": "10",
        "HOSTMATE_QUIET": "true",
        "HOSTMATE_LOGS_DIR": str(tmp_path / "logs"),
        "UNRELATED": "ignored",
    }

    config = load_config(env=env)

    assert config.config_file == cfg
    assert config.default_driver("packages") == "pip"
    assert config.probe_timeout == 2.0
    assert config.downloads.timeout == 10.0
    assert config.quiet is True
    assert config.logs_dir == tmp_path / "logs"


def test_overrides_beat_environment(tmp_path: Path) -> None:
    config = load_config(
        config_file=tmp_path / "absent.yml",
        env={"HOSTMATE_MODE": "preview"},
        overrides={"mode": "normal", "quiet": True},
    )

    assert config.mode is ExecutionMode.NORMAL
    assert config.execution_context().quiet is True


def test_to_dict_is_serialisable(tmp_path: Path) -> None:
    config = load_config(config_file=tmp_path / "absent.yml", env={})
    data = config.to_dict()

    assert data["mode"] == "normal"
    assert data["drivers"] == {
        "accounts": None,
        "packages": None,
        "downloads": None,
        "templates": None,
        "fields": None,
    }
    assert data["templates"] == {"check": "compare"}


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("unknown: 1\n", "Unknown configuration keys: unknown"),
        ("drivers:\n  printers: cups\n", "Unknown drivers configuration keys: printers"),
        ("mode: dry-run\n", "Unknown execution mode"),
        ("templates:\n  check: sometimes\n", "Unsupported templates.check"),
        ("probe_timeout: 0\n", "probe_timeout must be greater than zero"),
        ("use_sudo: maybe\n", "Expected use_sudo to be a boolean"),
        ("drivers:\n  packages: 3\n", "drivers.packages must be a driver name"),
        ("- a\n- b\n", "must contain a mapping"),
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str, message: str) -> None:
    cfg = tmp_path / "hostmate.yml"
    cfg.write_text(content)

    with pytest.raises(ConfigError, match=message):
        load_config(config_file=cfg, env={})
