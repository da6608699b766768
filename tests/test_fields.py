"""Tests for structured field lookups."""
from __future__ import annotations

from pathlib import Path

import pytest
from conftest import everything_present_registry

from hostmate.errors import KeyNotFound, NoSuitableDriver
from hostmate.fields import FieldManager, StructDriver, YamlDriver, resolve, split_key

STRUCT = {
    "key": "value",
    "hash": {
        "leafkey": "leafvalue",
        "branchkey": {"deepleafkey": "deepleafvalue"},
    },
    "array": ["one", "two", "three"],
}


def _manager(**kwargs: object) -> FieldManager:
    return FieldManager(registry=everything_present_registry(), **kwargs)  # type: ignore[arg-type]


def test_lookup_descends_with_hash_separated_keys() -> None:
    fields = _manager(struct=STRUCT)

    assert fields.lookup("key") == "value"
    assert fields.lookup("hash#leafkey") == "leafvalue"
    assert fields.lookup("hash#branchkey#deepleafkey") == "deepleafvalue"
    assert fields.lookup("array") == ["one", "two", "three"]
    assert fields.lookup(["hash", "leafkey"]) == "leafvalue"


def test_missing_keys_return_default_without_raising() -> None:
    fields = _manager(struct=STRUCT)

    assert fields.lookup("hash#missing") is None
    assert fields.lookup("hash#leafkey#deeper") is None
    assert fields.lookup("nope", "fallback") == "fallback"
    assert fields.has_key("hash#missing") is False
    assert fields.has_key("hash#branchkey") is True


def test_fetch_raises_key_not_found() -> None:
    fields = _manager(struct=STRUCT)

    with pytest.raises(KeyNotFound) as excinfo:
        fields.fetch("hash#missing#deeper")

    assert excinfo.value.key == "hash#missing#deeper"
    assert excinfo.value.segment == "missing"
    assert isinstance(excinfo.value, KeyError)
    assert str(excinfo.value) == "Key 'hash#missing#deeper' not found (missing segment 'missing')."


def test_star_returns_a_copy_of_the_whole_tree() -> None:
    fields = _manager(struct=STRUCT)

    everything = fields.fetch("*")
    everything["hash"]["leafkey"] = "changed"

    assert everything != STRUCT
    assert fields.lookup("hash#leafkey") == "leafvalue"


@pytest.mark.parametrize("key", ["", "hash##leafkey", "#hash", "hash#"])
def test_malformed_keys_raise_value_error(key: str) -> None:
    with pytest.raises(ValueError):
        split_key(key)


def test_resolve_rejects_non_string_keys() -> None:
    with pytest.raises(ValueError):
        resolve(STRUCT, 42)  # type: ignore[arg-type]


def test_no_source_means_no_suitable_driver() -> None:
    fields = _manager()

    with pytest.raises(NoSuitableDriver):
        fields.lookup("key")


def test_yaml_file_is_rendered_then_parsed(tmp_path: Path) -> None:
    source = tmp_path / "fields.yml"
    source.write_text(
        "database:\n"
        "  host: db.{{ domain }}\n"
        "  port: 5432\n"
        "{% for name in ['alpha', 'beta'] %}\n"
        "{{ name }}: enabled\n"
        "{% endfor %}\n",
        encoding="utf-8",
    )
    driver = YamlDriver(source, variables={"domain": "example.org"})
    fields = FieldManager(registry=everything_present_registry(), drivers=[driver])

    assert fields.lookup("database#host") == "db.example.org"
    assert fields.lookup("database#port") == 5432
    assert fields.lookup("beta") == "enabled"
    assert fields.resolve("lookup", "x").name == "yaml"


def test_yaml_driver_reload_rereads_the_file(tmp_path: Path) -> None:
    source = tmp_path / "fields.yml"
    source.write_text("a: 1\n", encoding="utf-8")
    driver = YamlDriver(source)

    assert driver.fetch("a") == 1
    source.write_text("a: 2\n", encoding="utf-8")
    assert driver.fetch("a") == 1
    driver.reload()
    assert driver.fetch("a") == 2


def test_yaml_file_must_hold_a_mapping(tmp_path: Path) -> None:
    source = tmp_path / "fields.yml"
    source.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a mapping"):
        YamlDriver(source).fetch("*")


def test_manager_prefers_whichever_source_is_configured(tmp_path: Path) -> None:
    source = tmp_path / "fields.yml"
    source.write_text("from: file\n", encoding="utf-8")

    assert _manager(file=source).lookup("from") == "file"
    assert _manager(struct={"from": "struct"}).lookup("from") == "struct"
    assert _manager(struct={"from": "struct"}, file=source, default="yaml").lookup(
        "from"
    ) == "file"


def test_struct_driver_with_empty_struct_is_unsuitable() -> None:
    assert StructDriver({}).suitability("lookup") == 0
    assert StructDriver({"a": 1}).suitability("lookup") == 1
