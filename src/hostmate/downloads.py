"""Download manager and its ``urllib`` driver."""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Any

from .driver import Dependencies, Driver
from .manager import Manager

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def target_path(source: str, to: str | os.PathLike[str] | None = None) -> Path:
    """Return where *source* should be saved.

    Defaults to the URL's basename in the current directory; an existing
    directory target receives the basename.
    """
    basename = Path(urllib.parse.urlparse(source).path).name
    if to is None:
        if not basename:
            raise ValueError(f"Cannot derive a filename from '{source}'; pass 'to'.")
        return Path(basename)
    destination = Path(to).expanduser()
    if destination.is_dir():
        if not basename:
            raise ValueError(f"Cannot derive a filename from '{source}'.")
        return destination / basename
    return destination


class UrllibDriver(Driver):
    """Fetch HTTP, HTTPS, FTP and file URLs with :mod:`urllib.request`."""

    name = "urllib"
    role = "downloads"
    depends_on = Dependencies(libraries=("urllib.request",))

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Create the driver with a per-request *timeout* in seconds."""
        super().__init__()
        self.timeout = timeout

    def download(
        self,
        source: str,
        to: str | os.PathLike[str] | None = None,
        **options: Any,
    ) -> bool:
        """Save *source* to *to*; returns ``True`` (also in preview mode)."""
        if not source:
            raise ValueError("No source specified.")
        destination = target_path(source, to)
        if not self.context.quiet:
            LOGGER.info("Downloading %s to %s", source, destination)
        if self.context.preview:
            return True

        destination.parent.mkdir(parents=True, exist_ok=True)
        request = urllib.request.Request(source, headers={"User-Agent": "hostmate"})
        tmp_fd, tmp_name = tempfile.mkstemp(
            dir=str(destination.parent), prefix=f".{destination.name}."
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "wb") as writer:
                with urllib.request.urlopen(request, timeout=self.timeout) as reader:  # noqa: S310
                    shutil.copyfileobj(reader, writer)
            os.replace(tmp_path, destination)
        finally:
            tmp_path.unlink(missing_ok=True)
        return True


class DownloadManager(Manager):
    """Download files from URLs."""

    role = "downloads"

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT, **kwargs: Any) -> None:
        """Create the manager; *timeout* applies to the default driver."""
        self.timeout = timeout
        super().__init__(**kwargs)

    def default_drivers(self) -> list[Driver]:
        """Return the bundled download driver."""
        return [UrllibDriver(timeout=self.timeout)]

    def download(
        self,
        source: str,
        to: str | os.PathLike[str] | None = None,
        *,
        with_: str | None = None,
        **options: Any,
    ) -> bool:
        """Download *source*, saving it to *to* (see :func:`target_path`)."""
        return self.dispatch("download", source, to, with_=with_, **options)


__all__ = ["DownloadManager", "UrllibDriver", "target_path"]
