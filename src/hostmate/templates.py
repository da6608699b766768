"""Template manager: render files from Jinja2 templates only when needed."""
from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined

from .driver import Dependencies, Driver
from .manager import Manager

LOGGER = logging.getLogger(__name__)

CHECK_MODES = ("exists", "compare", "timestamp")


def render_string(text: str, variables: Mapping[str, object] | None = None) -> str:
    """Render *text* as a Jinja2 template with strict undefined handling."""
    environment = Environment(  # noqa: S701 - output is config files, not HTML
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    return environment.from_string(text).render(**dict(variables or {}))


class Jinja2Driver(Driver):
    """Render templates with Jinja2.

    File access goes through :meth:`_exists`, :meth:`_read`, :meth:`_write`
    and :meth:`_mtime` so tests can intercept it.
    """

    name = "jinja2"
    role = "templates"
    depends_on = Dependencies(libraries=("jinja2",))

    def __init__(self, *, default_check: str = "compare") -> None:
        """Create the driver with the check used when none is given."""
        super().__init__()
        if default_check not in CHECK_MODES:
            raise ValueError(f"Unknown template check '{default_check}'.")
        self.default_check = default_check

    def render(
        self,
        source: str | os.PathLike[str] | None = None,
        target: str | os.PathLike[str] | None = None,
        *,
        text: str | None = None,
        locals: Mapping[str, object] | None = None,  # noqa: A002
        check: str | None = None,
        force: bool = False,
        dependencies: Iterable[str | os.PathLike[str]] = (),
        mode: int | None = None,
        **options: Any,
    ) -> bool:
        """Render *source* (or *text*) into *target*.

        Returns ``True`` when the target was written (or would be in preview
        mode) and ``False`` when it is already up to date.
        """
        if target is None:
            raise ValueError("No target specified.")
        if source is None and text is None:
            raise ValueError("No source or text specified.")
        check = check or self.default_check
        if check not in CHECK_MODES:
            allowed = ", ".join(CHECK_MODES)
            raise ValueError(f"Unknown template check '{check}'. Allowed: {allowed}.")

        target_path = Path(target)
        exists = self._exists(target_path)

        if exists and not force:
            if check == "exists":
                return False
            if check == "timestamp" and not self._updated(source, target_path, dependencies):
                return False

        body = text if text is not None else self._read(Path(source))  # type: ignore[arg-type]
        output = render_string(body, locals)

        if exists and not force and self._read(target_path) == output:
            return False

        if not self.context.quiet:
            LOGGER.info("Rendering %s", target_path)
        if self.context.writing:
            self._write(target_path, output, mode=mode)
        return True

    def _updated(
        self,
        source: str | os.PathLike[str] | None,
        target: Path,
        dependencies: Iterable[str | os.PathLike[str]],
    ) -> bool:
        inputs = [Path(dep) for dep in dependencies]
        if source is not None:
            inputs.append(Path(source))
        if not inputs:
            return True
        newest = max(self._mtime(path) for path in inputs)
        return newest > self._mtime(target)

    # File access --------------------------------------------------------
    def _exists(self, path: Path) -> bool:
        return path.exists()

    def _read(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def _mtime(self, path: Path) -> float:
        return path.stat().st_mtime

    def _write(self, path: Path, content: str, *, mode: int | None = None) -> bool:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            if mode is not None:
                os.chmod(tmp_path, mode)
            elif path.exists():
                os.chmod(tmp_path, path.stat().st_mode & 0o7777)
            os.replace(tmp_path, path)
        finally:
            tmp_path.unlink(missing_ok=True)
        return True


class TemplateManager(Manager):
    """Render templates into files.

    ``check`` selects when an existing target is re-rendered:

    * ``exists`` -- only when the target is missing;
    * ``compare`` -- when the rendered output differs from the target;
    * ``timestamp`` -- when the source or a dependency is newer than the
      target and the output differs.

    ``force=True`` always writes.
    """

    role = "templates"

    def __init__(self, *, default_check: str = "compare", **kwargs: Any) -> None:
        """Create the manager; *default_check* applies to the default driver."""
        self.default_check = default_check
        super().__init__(**kwargs)

    def default_drivers(self) -> list[Driver]:
        """Return the bundled template driver."""
        return [Jinja2Driver(default_check=self.default_check)]

    def render(
        self,
        source: str | os.PathLike[str] | None = None,
        target: str | os.PathLike[str] | None = None,
        *,
        with_: str | None = None,
        **options: Any,
    ) -> bool:
        """Render *source* into *target* (see :meth:`Jinja2Driver.render`)."""
        return self.dispatch("render", source, target, with_=with_, **options)


__all__ = ["CHECK_MODES", "Jinja2Driver", "TemplateManager", "render_string"]
