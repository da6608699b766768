"""Tests for target specification normalisation."""
from __future__ import annotations

from pathlib import Path

import pytest

from hostmate.errors import InvalidTargetSpecification
from hostmate.targets import TargetSet, normalize_targets, parse_manifest


def test_manifest_strips_comments_blank_lines_and_duplicates() -> None:
    """Comments, blank lines and repeated names collapse to a unique list."""
    targets = normalize_targets("# comment\n pkg1 pkg2\n\n pkg1")

    assert targets.names == ("pkg1", "pkg2")
    assert targets.is_mapping is False


def test_manifest_comment_cuts_the_rest_of_the_line() -> None:
    assert parse_manifest("nginx # the web server\ncurl#wget\n  # all comment") == [
        "nginx",
        "curl",
    ]


def test_list_manifest_and_mapping_name_the_same_targets() -> None:
    """Every input shape for the same names normalises to the same names."""
    from_list = normalize_targets(["pkg1", "pkg2"])
    from_manifest = normalize_targets("pkg1\npkg2\n")
    from_mapping = normalize_targets({"pkg1": "/tmp/pkg1.deb", "pkg2": "/tmp/pkg2.deb"})

    assert from_list.names == from_manifest.names == from_mapping.names == ("pkg1", "pkg2")
    assert from_mapping.is_mapping is True


def test_list_elements_may_be_manifests_and_nested_lists() -> None:
    targets = normalize_targets(["a b", ["c", ("a", "d # note")]])

    assert targets.names == ("a", "b", "c", "d")


def test_normalising_twice_is_a_no_op() -> None:
    once = normalize_targets({"tractags": Path("/tmp/tractags.whl")})

    assert normalize_targets(once) is once
    assert normalize_targets(list(once.names)).names == once.names


def test_mapping_values_translate_and_survive_subsets() -> None:
    targets = normalize_targets({"a": "/srv/a.rpm", "b": Path("/srv/b.rpm")})

    assert targets.values_for(["b", "a"]) == ["/srv/b.rpm", "/srv/a.rpm"]
    subset = targets.subset(["b"])
    assert subset.names == ("b",)
    assert subset.value_for("b") == "/srv/b.rpm"


def test_plain_targets_translate_to_themselves() -> None:
    targets = normalize_targets("x y")

    assert targets.values_for(["y"]) == ["y"]
    assert "x" in targets
    assert len(targets) == 2
    assert list(targets) == ["x", "y"]


def test_empty_inputs_produce_empty_sets() -> None:
    assert normalize_targets("").names == ()
    assert normalize_targets("  # only a comment\n").names == ()
    assert normalize_targets([]).names == ()
    assert normalize_targets(TargetSet()).names == ()


@pytest.mark.parametrize(
    "spec",
    [
        42,
        None,
        [1, 2],
        ["ok", object()],
        {"name": 3},
        {1: "/tmp/x"},
        {"": "/tmp/x"},
    ],
)
def test_unrecognised_shapes_raise(spec: object) -> None:
    with pytest.raises(InvalidTargetSpecification):
        normalize_targets(spec)


def test_invalid_specification_is_a_type_error() -> None:
    with pytest.raises(TypeError):
        normalize_targets(3.5)
