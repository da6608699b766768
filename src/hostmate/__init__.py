"""hostmate: idempotent host automation through pluggable drivers.

Managers (packages, accounts, downloads, templates, fields) pick the most
suitable registered driver for the current host and apply changes only where
the host differs from the requested state.
"""
from __future__ import annotations

__all__ = ["__version__", "get_version"]

# NOTE: Hatch reads the package version from this assignment.
__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
