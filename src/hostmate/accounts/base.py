"""Account manager facade and record types."""
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..commands import CommandRunner
from ..driver import Driver
from ..manager import Manager

RecordT = TypeVar("RecordT")


@dataclass(frozen=True, slots=True)
class UserRecord:
    """A user account as reported by the passwd database."""

    name: str
    uid: int
    gid: int
    gecos: str = ""
    home: str = ""
    shell: str = ""


@dataclass(frozen=True, slots=True)
class GroupRecord:
    """A group as reported by the group database."""

    name: str
    gid: int
    members: tuple[str, ...] = ()


class AccountQuery(Generic[RecordT]):
    """Index-style lookup helper: ``users["root"]`` returns a record or ``None``."""

    def __init__(self, finder: Callable[[str], RecordT | None]) -> None:
        """Wrap *finder*, which returns ``None`` for unknown names."""
        self._finder = finder

    def __getitem__(self, name: str) -> RecordT | None:
        """Return the record for *name*, or ``None`` when absent."""
        if not isinstance(name, str) or not name:
            raise ValueError(f"Account names must be non-empty strings. Got {name!r}.")
        return self._finder(name)

    def __contains__(self, name: object) -> bool:
        """Return ``True`` when *name* exists."""
        return isinstance(name, str) and bool(name) and self._finder(name) is not None

    def get(self, name: str, default: RecordT | None = None) -> RecordT | None:
        """Return the record for *name*, or *default*."""
        record = self[name]
        return default if record is None else record


class AccountManager(Manager):
    """Manage UNIX users, groups and group memberships.

    ``users`` and ``groups`` are query helpers::

        accounts.users["root"]          # UserRecord(name="root", uid=0, ...)
        accounts.users["does-not-exist"]  # None
    """

    role = "accounts"

    def __init__(self, *, runner: CommandRunner | None = None, **kwargs: Any) -> None:
        """Create the manager; *runner* is shared by the default drivers."""
        self.runner = runner or CommandRunner()
        super().__init__(**kwargs)

    def default_drivers(self) -> list[Driver]:
        """Return the bundled account drivers in ranking order."""
        from .linux import LinuxDriver
        from .portable import PortableDriver

        return [PortableDriver(), LinuxDriver(runner=self.runner)]

    # Queries ------------------------------------------------------------
    @property
    def users(self) -> AccountQuery[UserRecord]:
        """Return the user query helper."""
        return self.dispatch("users")

    @property
    def groups(self) -> AccountQuery[GroupRecord]:
        """Return the group query helper."""
        return self.dispatch("groups")

    def has_user(self, name: str, *, with_: str | None = None) -> bool:
        """Is the user *name* present?"""
        return self.dispatch("has_user", name, with_=with_)

    def has_group(self, name: str, *, with_: str | None = None) -> bool:
        """Does the group *name* exist?"""
        return self.dispatch("has_group", name, with_=with_)

    def groups_for_user(self, user: str, *, with_: str | None = None) -> list[str]:
        """Return the group names *user* belongs to (primary group first)."""
        return self.dispatch("groups_for_user", user, with_=with_)

    def users_for_group(self, group: str, *, with_: str | None = None) -> list[str]:
        """Return the user names in *group*, including primary members."""
        return self.dispatch("users_for_group", group, with_=with_)

    def users_to_groups(self, *, with_: str | None = None) -> Mapping[str, list[str]]:
        """Return a mapping of every user name to its group names."""
        return self.dispatch("users_to_groups", with_=with_)

    # Users --------------------------------------------------------------
    def add_user(
        self, name: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Create *name* unless it exists.

        Options: ``description``, ``home``, ``create_home`` (default
        ``True``), ``groups``, ``shell``, ``uid``, ``gid``.
        """
        return self.dispatch("add_user", name, with_=with_, **options)

    def update_user(self, name: str, *, with_: str | None = None, **options: Any) -> bool:
        """Change attributes of *name*; ``False`` when nothing differs."""
        return self.dispatch("update_user", name, with_=with_, **options)

    def remove_user(
        self, name: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Remove *name* if present. Option ``remove_home`` defaults to ``True``."""
        return self.dispatch("remove_user", name, with_=with_, **options)

    # Groups -------------------------------------------------------------
    def add_group(
        self, name: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Create *name* unless it exists. Options: ``members``, ``gid``."""
        return self.dispatch("add_group", name, with_=with_, **options)

    def update_group(self, name: str, *, with_: str | None = None, **options: Any) -> bool:
        """Change the gid or add ``members`` of *name*."""
        return self.dispatch("update_group", name, with_=with_, **options)

    def remove_group(
        self, name: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Remove *name* if it exists."""
        return self.dispatch("remove_group", name, with_=with_, **options)

    # Memberships --------------------------------------------------------
    def add_groups_to_user(
        self, groups: object, user: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Add *groups* to *user*; ``False`` if already a member of all."""
        return self.dispatch("add_groups_to_user", groups, user, with_=with_, **options)

    def remove_groups_from_user(
        self, groups: object, user: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Remove *groups* from *user*; ``False`` if a member of none."""
        return self.dispatch("remove_groups_from_user", groups, user, with_=with_, **options)

    def add_users_to_group(
        self, users: object, group: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Add *users* to *group*."""
        return self.dispatch("add_users_to_group", users, group, with_=with_, **options)

    def remove_users_from_group(
        self, users: object, group: str, *, with_: str | None = None, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Remove *users* from *group*."""
        return self.dispatch("remove_users_from_group", users, group, with_=with_, **options)


__all__ = ["AccountManager", "AccountQuery", "GroupRecord", "UserRecord"]
