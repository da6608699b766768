"""Package management role."""
from __future__ import annotations

from .apt import AptDriver
from .base import PackageDriver, PackageManager
from .gem import GemDriver
from .pip import PipDriver
from .yum import YumDriver

__all__ = [
    "AptDriver",
    "GemDriver",
    "PackageDriver",
    "PackageManager",
    "PipDriver",
    "YumDriver",
]
