"""Tests for the idempotent mutation protocol."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from hostmate.context import ExecutionContext, ExecutionMode
from hostmate.errors import ActionIncomplete
from hostmate.mutation import compute_delta, converge, query_state, split_options, was_changed
from hostmate.targets import normalize_targets

NORMAL = ExecutionContext()
PREVIEW = ExecutionContext(mode=ExecutionMode.PREVIEW)


class FakeHost:
    """A set of installed names with check/act callbacks over it."""

    def __init__(self, installed: tuple[str, ...] = (), *, broken: tuple[str, ...] = ()) -> None:
        self.installed = set(installed)
        self.broken = set(broken)
        self.checks: list[list[str]] = []
        self.installs: list[list[str]] = []
        self.removals: list[list[str]] = []

    def check(self, names: list[str], options: Mapping[str, Any]) -> list[str]:
        self.checks.append(list(names))
        return [name for name in names if name in self.installed]

    def install(self, values: list[str], options: Mapping[str, Any]) -> None:
        self.installs.append(list(values))
        for value in values:
            name = value.rsplit("/", 1)[-1].split(".", 1)[0]
            if name not in self.broken:
                self.installed.add(name)

    def uninstall(self, values: list[str], options: Mapping[str, Any]) -> None:
        self.removals.append(list(values))
        for value in values:
            if value not in self.broken:
                self.installed.discard(value)


def _install(host: FakeHost, spec: object, context: ExecutionContext = NORMAL, **options: Any):
    return converge(
        spec,
        check=host.check,
        act=host.install,
        context=context,
        options=options,
        action="install",
    )


def test_acts_only_on_the_missing_subset() -> None:
    """With 'a' already installed, installing a and b only passes b to the action."""
    host = FakeHost(("a",))

    assert _install(host, ["a", "b"]) is True
    assert host.installs == [["b"]]
    assert host.installed == {"a", "b"}


def test_second_application_reports_no_change() -> None:
    host = FakeHost()

    assert _install(host, "a b") is True
    assert _install(host, "a b") is False
    assert host.installs == [["a", "b"]]


def test_preview_reports_change_without_acting() -> None:
    host = FakeHost(("a",))

    assert _install(host, ["a", "b"], PREVIEW) is True
    assert host.installs == []
    assert host.installed == {"a"}


def test_preview_with_nothing_to_do_is_false() -> None:
    host = FakeHost(("a",))

    assert _install(host, "a", PREVIEW) is False


def test_details_return_the_affected_names() -> None:
    host = FakeHost(("a",))

    assert _install(host, ["a", "b", "c"], details=True) == (True, ["b", "c"])
    assert _install(host, ["a", "b", "c"], list=True) == (False, [])


def test_result_options_are_not_forwarded_to_callbacks() -> None:
    seen: list[dict[str, Any]] = []

    def check(names: list[str], options: Mapping[str, Any]) -> list[str]:
        seen.append(dict(options))
        return list(names)

    converge(
        "a",
        check=check,
        act=lambda values, options: None,
        context=NORMAL,
        options={"details": True, "flavour": "x"},
    )

    assert seen == [{"flavour": "x"}]


def test_incomplete_action_names_exactly_the_unconverged_targets() -> None:
    host = FakeHost(("a",), broken=("c",))

    with pytest.raises(ActionIncomplete) as excinfo:
        _install(host, ["a", "b", "c"])

    assert excinfo.value.targets == ["c"]
    assert str(excinfo.value) == "Couldn't install: c"
    # Verification only re-checks what was acted upon.
    assert host.checks[-1] == ["b", "c"]


def test_failing_action_still_reports_the_unconverged_subset() -> None:
    host = FakeHost(broken=("b",))

    def install_then_fail(values: list[str], options: Mapping[str, Any]) -> None:
        host.install(values, options)
        raise OSError("exit status 100")

    with pytest.raises(ActionIncomplete) as excinfo:
        converge("a b", check=host.check, act=install_then_fail, context=NORMAL, action="install")

    assert excinfo.value.targets == ["b"]
    assert isinstance(excinfo.value.__cause__, OSError)
    assert host.installed == {"a"}


def test_failing_action_that_converged_reraises_its_error() -> None:
    host = FakeHost()

    def install_then_fail(values: list[str], options: Mapping[str, Any]) -> None:
        host.install(values, options)
        raise OSError("post-install hook failed")

    with pytest.raises(OSError, match="post-install hook failed"):
        converge("a", check=host.check, act=install_then_fail, context=NORMAL, action="install")

    assert host.installed == {"a"}


def test_mapping_targets_act_on_their_sources() -> None:
    host = FakeHost(("a",))

    changed = _install(host, {"a": "/pkgs/a.deb", "b": "/pkgs/b.deb"})

    assert changed is True
    assert host.installs == [["/pkgs/b.deb"]]


def test_uninstall_acts_only_on_present_names() -> None:
    host = FakeHost(("a", "b"))

    def uninstall(spec: object, **options: Any):
        return converge(
            spec,
            check=host.check,
            act=host.uninstall,
            context=NORMAL,
            options=options,
            desired=False,
            action="uninstall",
            translate=False,
        )

    assert uninstall({"b": "/pkgs/b.deb", "c": "/pkgs/c.deb"}, details=True) == (True, ["b"])
    assert host.removals == [["b"]]
    assert uninstall("b c") is False


def test_uninstall_failure_raises() -> None:
    host = FakeHost(("a",), broken=("a",))

    with pytest.raises(ActionIncomplete, match="Couldn't uninstall: a"):
        converge(
            "a",
            check=host.check,
            act=host.uninstall,
            context=NORMAL,
            desired=False,
            action="uninstall",
        )


def test_empty_targets_never_call_the_check() -> None:
    def check(names: list[str], options: Mapping[str, Any]) -> list[str]:
        raise AssertionError("check should not run")

    assert converge("", check=check, act=check, context=NORMAL) is False
    assert query_state("# nothing\n", check) is True


def test_query_state_reports_subset_in_desired_state() -> None:
    host = FakeHost(("a",))

    assert query_state(["a", "b"], host.check) is False
    assert query_state(["a", "b"], host.check, {"details": True}) == (False, ["a"])
    assert query_state(["a"], host.check, {"details": True}) == (True, ["a"])
    assert query_state(["b", "c"], host.check, {"details": True}, desired=False) == (
        True,
        ["b", "c"],
    )


def test_compute_delta_partitions_in_target_order() -> None:
    host = FakeHost(("c", "a"))
    delta = compute_delta(normalize_targets("a b c d"), host.check, {})

    assert delta.satisfied == ("a", "c")
    assert delta.pending == ("b", "d")
    assert delta.changed is True


def test_split_options_consumes_result_flags() -> None:
    assert split_options({"list": True, "force": 1}) == (True, {"force": 1})
    assert split_options(None) == (False, {})


def test_was_changed_reads_plain_and_detailed_results() -> None:
    assert was_changed(True) is True
    assert was_changed(False) is False
    assert was_changed((False, [])) is False
    assert was_changed((True, ["a"])) is True
