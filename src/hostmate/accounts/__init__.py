"""Account management role."""
from __future__ import annotations

from .base import AccountManager, AccountQuery, GroupRecord, UserRecord
from .linux import LinuxDriver
from .portable import PortableDriver

__all__ = [
    "AccountManager",
    "AccountQuery",
    "GroupRecord",
    "LinuxDriver",
    "PortableDriver",
    "UserRecord",
]
