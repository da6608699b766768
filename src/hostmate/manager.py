"""Manager facade: rank registered drivers and dispatch calls to the best one."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, ClassVar

from .context import ExecutionContext
from .driver import Driver
from .errors import NoSuitableDriver
from .registry import CapabilityRegistry

LOGGER = logging.getLogger(__name__)


class Manager:
    """Uniform interface for one role (``packages``, ``accounts``, ...).

    Driver selection:

    1. An explicit ``with_`` driver name (or the configured default) wins
       outright, provided it is registered, available and implements the
       method.
    2. Otherwise every driver registered for the role is scored with
       :meth:`suitability`; the highest positive score wins and ties go to
       the driver registered first.
    3. If no driver scores above zero, :class:`NoSuitableDriver` is raised.

    The winner is cached per method and call arguments until :meth:`reset_selection` or
    :meth:`refresh` is called.
    """

    role: ClassVar[str] = ""

    def __init__(
        self,
        *,
        registry: CapabilityRegistry | None = None,
        context: ExecutionContext | None = None,
        default: str | None = None,
        drivers: Iterable[Driver] | None = None,
    ) -> None:
        """Create the manager and register *drivers* (or the role defaults)."""
        self.registry = registry or CapabilityRegistry()
        self.context = context or ExecutionContext()
        self.default = default
        self._selection: dict[tuple[str, str], Driver] = {}
        initial = self.default_drivers() if drivers is None else drivers
        for driver in initial:
            self.register(driver)

    def default_drivers(self) -> list[Driver]:
        """Return the drivers registered when none are passed explicitly."""
        return []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register(self, driver: Driver) -> Driver:
        """Bind *driver* to this manager and add it to the registry."""
        if driver.role != self.role:
            raise ValueError(
                f"Driver '{driver.name}' has role '{driver.role}', expected '{self.role}'."
            )
        driver.bind(self)
        self.registry.register(self.role, driver)
        self._selection.clear()
        return driver

    @property
    def drivers(self) -> tuple[Driver, ...]:
        """Return the registered drivers in registration order."""
        return self.registry.drivers_for(self.role)

    def __getitem__(self, name: str) -> Driver:
        """Return the registered driver called *name*."""
        driver = self.registry.driver(self.role, name)
        if driver is None:
            raise KeyError(f"No {self.role} driver named '{name}'.")
        return driver

    def available_drivers(self) -> list[Driver]:
        """Return registered drivers whose dependencies are all present."""
        return [driver for driver in self.drivers if self.registry.available(driver)]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def suitability(self, driver: Driver, method: str, *args: object, **kwargs: object) -> int:
        """Score *driver* for *method*; unavailable drivers score ``0`` unasked."""
        if not driver.supports(method):
            return 0
        if not self.registry.available(driver):
            return 0
        score = int(driver.suitability(method, *args, **kwargs) or 0)
        return max(score, 0)

    def resolve(
        self,
        method: str,
        *args: object,
        with_: str | None = None,
        **kwargs: object,
    ) -> Driver:
        """Return the driver that will handle *method*."""
        forced = with_ or self.default
        if forced:
            return self._forced(forced, method)

        key = _selection_key(method, args, kwargs)
        cached = self._selection.get(key)
        if cached is not None:
            return cached

        best: Driver | None = None
        best_score = 0
        for driver in self.drivers:
            score = self.suitability(driver, method, *args, **kwargs)
            LOGGER.debug("%s.%s: driver %s scored %d", self.role, method, driver.name, score)
            # Strict comparison keeps the first registered driver on ties.
            if score > best_score:
                best, best_score = driver, score

        if best is None:
            raise NoSuitableDriver(self.role, method, missing=self._missing_report(method))
        self._selection[key] = best
        return best

    def dispatch(
        self,
        method: str,
        *args: object,
        with_: str | None = None,
        **kwargs: object,
    ) -> Any:
        """Forward *method* to the selected driver with the original arguments."""
        driver = self.resolve(method, *args, with_=with_, **kwargs)
        LOGGER.debug("Dispatching %s.%s to %s", self.role, method, driver.name)
        return getattr(driver, method)(*args, **kwargs)

    def reset_selection(self) -> None:
        """Forget cached driver selections."""
        self._selection.clear()

    def refresh(self) -> None:
        """Re-probe driver availability and forget cached selections."""
        for driver in self.drivers:
            self.registry.invalidate(driver)
        self.reset_selection()

    def _forced(self, name: str, method: str) -> Driver:
        driver = self.registry.driver(self.role, name)
        if driver is None:
            raise NoSuitableDriver(
                self.role,
                method,
                reason=f"No {self.role} driver named '{name}' is registered.",
            )
        if not driver.supports(method):
            raise NoSuitableDriver(
                self.role,
                method,
                reason=f"The {self.role} driver '{name}' does not implement '{method}'.",
            )
        if not self.registry.available(driver):
            raise NoSuitableDriver(
                self.role,
                method,
                missing={name: self.registry.missing(driver)},
                reason=f"The {self.role} driver '{name}' is not available on this host.",
            )
        return driver

    def _missing_report(self, method: str) -> dict[str, list[str]]:
        report: dict[str, list[str]] = {}
        for driver in self.drivers:
            if driver.supports(method):
                report[driver.name] = self.registry.missing(driver)
        return report


def _selection_key(
    method: str, args: tuple[object, ...], kwargs: dict[str, object]
) -> tuple[str, str]:
    # Suitability may depend on the arguments; repr keeps unhashable targets usable.
    return method, repr((args, sorted(kwargs.items())))


__all__ = ["Manager"]
