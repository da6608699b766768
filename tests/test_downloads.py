"""Tests for the download manager."""
from __future__ import annotations

import urllib.error
from pathlib import Path

import pytest
from conftest import everything_present_registry

from hostmate.context import ExecutionContext, ExecutionMode
from hostmate.downloads import DownloadManager, UrllibDriver, target_path


def _manager(mode: ExecutionMode = ExecutionMode.NORMAL) -> DownloadManager:
    return DownloadManager(
        registry=everything_present_registry(),
        context=ExecutionContext(mode=mode),
        timeout=5,
    )


@pytest.fixture
def remote(tmp_path: Path) -> Path:
    path = tmp_path / "remote" / "archive.tar.gz"
    path.parent.mkdir()
    path.write_bytes(b"\x1f\x8b payload")
    return path


def test_target_path_defaults_to_url_basename(tmp_path: Path) -> None:
    assert target_path("https://example.org/files/tool.tgz") == Path("tool.tgz")
    assert target_path("https://example.org/files/tool.tgz", tmp_path) == tmp_path / "tool.tgz"
    assert target_path("https://example.org/x", tmp_path / "y.bin") == tmp_path / "y.bin"


def test_target_path_needs_a_name() -> None:
    with pytest.raises(ValueError, match="Cannot derive a filename"):
        target_path("https://example.org/")


def test_download_file_url_to_explicit_path(remote: Path, tmp_path: Path) -> None:
    destination = tmp_path / "out" / "copy.tgz"

    assert _manager().download(remote.as_uri(), destination) is True
    assert destination.read_bytes() == b"\x1f\x8b payload"


def test_download_into_directory_uses_basename(remote: Path, tmp_path: Path) -> None:
    directory = tmp_path / "downloads"
    directory.mkdir()

    _manager().download(remote.as_uri(), directory)

    assert (directory / "archive.tar.gz").read_bytes() == b"\x1f\x8b payload"
    assert [path.name for path in directory.iterdir()] == ["archive.tar.gz"]


def test_download_defaults_to_current_directory(
    remote: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    _manager().download(remote.as_uri())

    assert (workdir / "archive.tar.gz").exists()


def test_preview_does_not_download(remote: Path, tmp_path: Path) -> None:
    destination = tmp_path / "copy.tgz"

    assert _manager(ExecutionMode.PREVIEW).download(remote.as_uri(), destination) is True
    assert not destination.exists()


def test_failed_download_leaves_no_partial_file(tmp_path: Path) -> None:
    destination = tmp_path / "copy.tgz"
    missing = (tmp_path / "nowhere.tgz").as_uri()

    with pytest.raises(urllib.error.URLError):
        _manager().download(missing, destination)

    assert list(tmp_path.iterdir()) == []


def test_empty_source_is_rejected() -> None:
    with pytest.raises(ValueError):
        _manager().download("")


def test_driver_timeout_comes_from_manager() -> None:
    manager = _manager()

    driver = manager["urllib"]
    assert isinstance(driver, UrllibDriver)
    assert driver.timeout == 5
