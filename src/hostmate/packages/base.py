"""Package manager facade and the shared base driver."""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

from ..commands import CommandRunner
from ..driver import Driver
from ..manager import Manager
from ..mutation import converge, query_state


class PackageDriver(Driver, ABC):
    """Base for package drivers.

    Subclasses implement three primitives and inherit the idempotent
    ``install``/``uninstall``/``installed``/``not_installed`` operations:

    * :meth:`installed_names` reports which of the given names are installed;
    * :meth:`install_values` installs names (or source paths);
    * :meth:`uninstall_values` removes them.
    """

    role = "packages"
    # Whether uninstall receives mapping sources (paths) instead of names.
    uninstall_uses_sources = True

    def __init__(self, *, runner: CommandRunner | None = None) -> None:
        """Create the driver with an optional command *runner*."""
        super().__init__()
        self.runner = runner or CommandRunner()

    @abstractmethod
    def installed_names(self, names: list[str], options: Mapping[str, Any]) -> Iterable[str]:
        """Return the subset of *names* that is currently installed."""

    @abstractmethod
    def install_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Install *values*: package names, or source paths for mapping targets."""

    @abstractmethod
    def uninstall_values(self, values: list[str], options: Mapping[str, Any]) -> None:
        """Remove *values*; names or sources depending on :attr:`uninstall_uses_sources`."""

    # ------------------------------------------------------------------
    def installed(self, targets: object, **options: Any) -> bool | tuple[bool, list[str]]:
        """See :meth:`PackageManager.installed`."""
        return query_state(
            targets, self.installed_names, options, desired=True, label="installed?"
        )

    def not_installed(self, targets: object, **options: Any) -> bool | tuple[bool, list[str]]:
        """See :meth:`PackageManager.not_installed`."""
        return query_state(
            targets, self.installed_names, options, desired=False, label="not_installed?"
        )

    def install(self, targets: object, **options: Any) -> bool | tuple[bool, list[str]]:
        """See :meth:`PackageManager.install`."""
        return converge(
            targets,
            check=self.installed_names,
            act=self.install_values,
            context=self.context,
            options=options,
            desired=True,
            action="install",
        )

    def uninstall(self, targets: object, **options: Any) -> bool | tuple[bool, list[str]]:
        """See :meth:`PackageManager.uninstall`."""
        return converge(
            targets,
            check=self.installed_names,
            act=self.uninstall_values,
            context=self.context,
            options=options,
            desired=False,
            action="uninstall",
            translate=self.uninstall_uses_sources,
        )


class PackageManager(Manager):
    """Install, uninstall and query packages.

    Targets may be a name, a list, an annotated manifest string or a mapping
    of names to installable paths::

        packages.install('''
            # web stack
            nginx curl
        ''', with_="apt")
        packages.install({"tractags": "/tmp/tractags.whl"}, with_="pip")

    Options: ``details`` (or ``list``) returns ``(bool, names)``; ``with_``
    forces a driver by name.
    """

    role = "packages"

    def __init__(self, *, runner: CommandRunner | None = None, **kwargs: Any) -> None:
        """Create the manager; *runner* is shared by the default drivers."""
        self.runner = runner or CommandRunner()
        super().__init__(**kwargs)

    def default_drivers(self) -> list[Driver]:
        """Return the bundled package drivers in ranking order."""
        from .apt import AptDriver
        from .gem import GemDriver
        from .pip import PipDriver
        from .yum import YumDriver

        return [
            AptDriver(runner=self.runner),
            YumDriver(runner=self.runner),
            PipDriver(runner=self.runner),
            GemDriver(runner=self.runner),
        ]

    def installed(
        self, targets: object, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Are all *targets* installed?

        With ``details=True`` returns ``(truth, installed_subset)``.
        """
        return self.dispatch("installed", targets, with_=with_, **options)

    def not_installed(
        self, targets: object, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Are none of *targets* installed?

        With ``details=True`` returns ``(truth, missing_subset)``.
        """
        return self.dispatch("not_installed", targets, with_=with_, **options)

    def install(
        self, targets: object, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Install *targets*; ``False`` if all were already installed."""
        return self.dispatch("install", targets, with_=with_, **options)

    def uninstall(
        self, targets: object, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Uninstall *targets*; ``False`` if none were installed."""
        return self.dispatch("uninstall", targets, with_=with_, **options)

    add = install
    remove = uninstall


__all__ = ["PackageDriver", "PackageManager"]
