"""Capability registry: which drivers exist per role and whether they can run here."""
from __future__ import annotations

import concurrent.futures
import importlib.util
import logging
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import AvailabilityCheckFailed

if TYPE_CHECKING:
    from .driver import Driver

LOGGER = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 5.0


class DependencyProbe:
    """Inspect the host for programs, libraries and custom conditions.

    Every check runs on a worker thread bounded by *timeout*; a check that
    hangs or raises is reported as :class:`AvailabilityCheckFailed`.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        which: Callable[[str], str | None] = shutil.which,
        find_spec: Callable[[str], object | None] | None = None,
    ) -> None:
        """Configure the probe with lookup functions (overridable in tests)."""
        if timeout <= 0:
            raise ValueError("Probe timeout must be greater than zero.")
        self.timeout = timeout
        self._which = which
        self._find_spec = find_spec or _find_library

    def has_program(self, name: str) -> bool:
        """Return ``True`` when *name* resolves on the execution path."""
        return self._which(name) is not None

    def has_library(self, name: str) -> bool:
        """Return ``True`` when the Python module *name* is importable."""
        return self._find_spec(name) is not None

    def missing(self, driver: Driver) -> list[str]:
        """Return the declared dependencies of *driver* absent from the host."""
        deps = driver.depends_on
        missing: list[str] = []
        for program in deps.programs:
            if not self._run(driver.name, program, lambda p=program: self.has_program(p)):
                missing.append(program)
        for library in deps.libraries:
            if not self._run(driver.name, library, lambda lib=library: self.has_library(lib)):
                missing.append(library)
        for callback in deps.callbacks:
            label = getattr(callback, "__name__", repr(callback))
            if not self._run(driver.name, label, callback):
                missing.append(label)
        return missing

    def _run(self, driver: str, label: str, check: Callable[[], object]) -> bool:
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        future = executor.submit(check)
        try:
            return bool(future.result(timeout=self.timeout))
        except concurrent.futures.TimeoutError as exc:
            raise AvailabilityCheckFailed(
                driver, label, f"timed out after {self.timeout:g}s"
            ) from exc
        except Exception as exc:
            raise AvailabilityCheckFailed(driver, label, str(exc) or type(exc).__name__) from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


def _find_library(name: str) -> object | None:
    try:
        return importlib.util.find_spec(name)
    except (ImportError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class AvailabilityEntry:
    """Memoised probe outcome for one driver."""

    available: bool
    missing: tuple[str, ...]
    checked_at: float


class AvailabilityCache:
    """Explicit cache of availability entries keyed by ``(role, driver)``."""

    def __init__(self) -> None:
        """Start with no entries."""
        self._entries: dict[tuple[str, str], AvailabilityEntry] = {}

    def get(self, key: tuple[str, str]) -> AvailabilityEntry | None:
        """Return the cached entry for *key*, if any."""
        return self._entries.get(key)

    def store(self, key: tuple[str, str], entry: AvailabilityEntry) -> None:
        """Remember *entry* for *key*."""
        self._entries[key] = entry

    def invalidate(self, key: tuple[str, str] | None = None) -> None:
        """Drop one entry, or every entry when *key* is ``None``."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        """Return the number of cached entries."""
        return len(self._entries)


class CapabilityRegistry:
    """Drivers registered per role, in registration order."""

    def __init__(self, probe: DependencyProbe | None = None) -> None:
        """Create an empty registry using *probe* for availability checks."""
        self.probe = probe or DependencyProbe()
        self.cache = AvailabilityCache()
        self._drivers: dict[str, list[Driver]] = {}

    def register(self, role: str, driver: Driver) -> Driver:
        """Associate *driver* with *role*; names must be unique per role."""
        drivers = self._drivers.setdefault(role, [])
        if any(existing.name == driver.name for existing in drivers):
            raise ValueError(f"A {role} driver named '{driver.name}' is already registered.")
        drivers.append(driver)
        LOGGER.debug("Registered %s driver %s", role, driver.name)
        return driver

    def roles(self) -> tuple[str, ...]:
        """Return every role with at least one registered driver."""
        return tuple(self._drivers)

    def drivers_for(self, role: str) -> tuple[Driver, ...]:
        """Return the drivers registered for *role* in registration order."""
        return tuple(self._drivers.get(role, ()))

    def driver(self, role: str, name: str) -> Driver | None:
        """Return the *role* driver called *name*, or ``None``."""
        for driver in self._drivers.get(role, ()):
            if driver.name == name:
                return driver
        return None

    def entry(self, driver: Driver) -> AvailabilityEntry:
        """Return the cached availability entry for *driver*, probing if needed."""
        key = (driver.role, driver.name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        missing = tuple(self.probe.missing(driver))
        entry = AvailabilityEntry(
            available=not missing,
            missing=missing,
            checked_at=time.time(),
        )
        self.cache.store(key, entry)
        LOGGER.debug(
            "Probed %s driver %s: available=%s missing=%s",
            driver.role,
            driver.name,
            entry.available,
            list(missing),
        )
        return entry

    def available(self, driver: Driver) -> bool:
        """Return ``True`` when every dependency of *driver* is present."""
        return self.entry(driver).available

    def missing(self, driver: Driver) -> list[str]:
        """Return the dependencies of *driver* absent from the host."""
        return list(self.entry(driver).missing)

    def invalidate(self, driver: Driver | None = None) -> None:
        """Forget availability for *driver* (or all drivers) so it is re-probed."""
        if driver is None:
            self.cache.invalidate()
        else:
            self.cache.invalidate((driver.role, driver.name))


__all__ = [
    "AvailabilityCache",
    "AvailabilityEntry",
    "CapabilityRegistry",
    "DependencyProbe",
]
