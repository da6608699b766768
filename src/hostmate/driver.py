"""Base class for host-specific implementations of a manager role."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from .context import ExecutionContext

if TYPE_CHECKING:
    from .manager import Manager


@dataclass(frozen=True, slots=True)
class Dependencies:
    """Host requirements a driver declares up front."""

    programs: tuple[str, ...] = ()
    libraries: tuple[str, ...] = ()
    callbacks: tuple[Callable[[], bool], ...] = ()

    def describe(self) -> list[str]:
        """Return a flat, human-readable list of the requirements."""
        described = [f"program:{name}" for name in self.programs]
        described.extend(f"library:{name}" for name in self.libraries)
        described.extend(
            f"check:{getattr(callback, '__name__', repr(callback))}" for callback in self.callbacks
        )
        return described


class Driver:
    """A named implementation bound to exactly one manager.

    Subclasses set :attr:`name`, :attr:`role` and :attr:`depends_on` and
    implement the role's operations as ordinary methods. The dispatcher only
    considers a driver for methods it actually defines.
    """

    name: ClassVar[str] = ""
    role: ClassVar[str] = ""
    depends_on: ClassVar[Dependencies] = Dependencies()

    def __init__(self) -> None:
        """Create an unbound driver; :meth:`Manager.register` binds it."""
        self._manager: Manager | None = None

    def bind(self, manager: Manager) -> None:
        """Attach this driver to *manager* (only once)."""
        if self._manager is not None and self._manager is not manager:
            raise ValueError(f"Driver '{self.name}' is already bound to another manager.")
        self._manager = manager

    @property
    def manager(self) -> Manager:
        """Return the owning manager."""
        if self._manager is None:
            raise RuntimeError(f"Driver '{self.name}' is not registered with a manager.")
        return self._manager

    @property
    def context(self) -> ExecutionContext:
        """Return the execution context of the owning manager."""
        if self._manager is None:
            return ExecutionContext()
        return self._manager.context

    @property
    def available(self) -> bool:
        """Return ``True`` when every declared dependency is present."""
        return self.manager.registry.available(self)

    def supports(self, method: str) -> bool:
        """Return ``True`` when this driver implements *method*."""
        return callable(getattr(self, method, None)) and not method.startswith("_")

    def suitability(self, method: str, *args: object, **kwargs: object) -> int:
        """Return how well this driver handles *method*; ``0`` means unsuitable.

        Only called for available drivers that implement *method*.
        """
        return 1

    def __repr__(self) -> str:
        """Return a short debugging representation."""
        return f"<{type(self).__name__} {self.role}:{self.name}>"


__all__ = ["Dependencies", "Driver"]
