"""Read-only account driver backed by the ``pwd`` and ``grp`` modules."""
from __future__ import annotations

import grp
import pwd

from ..driver import Dependencies, Driver
from .base import AccountQuery, GroupRecord, UserRecord


def _user_record(entry: pwd.struct_passwd) -> UserRecord:
    return UserRecord(
        name=entry.pw_name,
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        gecos=entry.pw_gecos,
        home=entry.pw_dir,
        shell=entry.pw_shell,
    )


def _group_record(entry: grp.struct_group) -> GroupRecord:
    return GroupRecord(name=entry.gr_name, gid=entry.gr_gid, members=tuple(entry.gr_mem))


class PortableDriver(Driver):
    """Query accounts through the C library; cannot modify them."""

    name = "portable"
    role = "accounts"
    depends_on = Dependencies(libraries=("pwd", "grp"))

    def find_user(self, name: str) -> UserRecord | None:
        """Return the record for user *name*, or ``None``."""
        try:
            return _user_record(pwd.getpwnam(name))
        except KeyError:
            return None

    def find_group(self, name: str) -> GroupRecord | None:
        """Return the record for group *name*, or ``None``."""
        try:
            return _group_record(grp.getgrnam(name))
        except KeyError:
            return None

    def users(self) -> AccountQuery[UserRecord]:
        """Return the user query helper."""
        return AccountQuery(self.find_user)

    def groups(self) -> AccountQuery[GroupRecord]:
        """Return the group query helper."""
        return AccountQuery(self.find_group)

    def has_user(self, name: str) -> bool:
        """Is user *name* present?"""
        return self.find_user(name) is not None

    def has_group(self, name: str) -> bool:
        """Does group *name* exist?"""
        return self.find_group(name) is not None

    def groups_for_user(self, user: str) -> list[str]:
        """Return the groups of *user*: primary first, then supplementary."""
        record = self.find_user(user)
        if record is None:
            return []
        names: list[str] = []
        try:
            names.append(grp.getgrgid(record.gid).gr_name)
        except KeyError:
            pass
        for entry in grp.getgrall():
            if user in entry.gr_mem and entry.gr_name not in names:
                names.append(entry.gr_name)
        return names

    def users_for_group(self, group: str) -> list[str]:
        """Return the explicit members of *group* plus users with it as primary."""
        record = self.find_group(group)
        if record is None:
            return []
        names = list(record.members)
        for entry in pwd.getpwall():
            if entry.pw_gid == record.gid and entry.pw_name not in names:
                names.append(entry.pw_name)
        return names

    def users_to_groups(self) -> dict[str, list[str]]:
        """Return every user mapped to its group names."""
        return {entry.pw_name: self.groups_for_user(entry.pw_name) for entry in pwd.getpwall()}


__all__ = ["PortableDriver"]
