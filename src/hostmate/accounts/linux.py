"""Account driver using the shadow-utils commands found on Linux."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..commands import CommandRunner
from ..driver import Dependencies
from ..mutation import converge, was_changed
from ..targets import normalize_targets
from .portable import PortableDriver


class LinuxDriver(PortableDriver):
    """Create, modify and delete accounts with ``useradd`` and friends.

    Queries are inherited from :class:`PortableDriver`; this driver outranks
    it whenever the commands are installed.
    """

    name = "linux"
    depends_on = Dependencies(
        programs=("useradd", "usermod", "userdel", "groupadd", "groupmod", "groupdel", "gpasswd"),
        libraries=("pwd", "grp"),
    )

    def __init__(self, *, runner: CommandRunner | None = None) -> None:
        """Create the driver with an optional command *runner*."""
        super().__init__()
        self.runner = runner or CommandRunner()

    def suitability(self, method: str, *args: object, **kwargs: object) -> int:
        """Prefer this driver over the portable one."""
        return 2

    # Users --------------------------------------------------------------
    def add_user(
        self,
        name: str,
        *,
        description: str | None = None,
        home: str | None = None,
        create_home: bool = True,
        groups: object = None,
        shell: str | None = None,
        uid: int | None = None,
        gid: int | str | None = None,
        **options: Any,
    ) -> bool | tuple[bool, list[str]]:
        """Create user *name* (see :meth:`AccountManager.add_user`)."""
        command = ["useradd", "--comment", description or name]
        if home:
            command.extend(["--home-dir", str(home)])
        command.append("--create-home" if create_home else "--no-create-home")
        if shell:
            command.extend(["--shell", str(shell)])
        if uid is not None:
            command.extend(["--uid", str(uid)])
        if gid is not None:
            command.extend(["--gid", str(gid)])
        else:
            command.append("--user-group")
        command.append(name)

        result = converge(
            [name],
            check=self._existing_users,
            act=lambda _values, _opts: self.runner.run(command),
            context=self.context,
            options=options,
            action="add user",
        )
        # Preview skips the membership step along with the user itself.
        if was_changed(result) and groups and self.context.writing:
            self.add_groups_to_user(groups, name)
        return result

    def update_user(
        self,
        name: str,
        *,
        description: str | None = None,
        home: str | None = None,
        shell: str | None = None,
        uid: int | None = None,
        gid: int | str | None = None,
        **options: Any,
    ) -> bool:
        """Apply attribute changes to *name*; ``False`` when already matching."""
        record = self.find_user(name)
        if record is None:
            raise ValueError(f"User '{name}' does not exist.")
        changes: list[str] = []
        if description is not None and record.gecos != description:
            changes.extend(["--comment", description])
        if home is not None and record.home != str(home):
            changes.extend(["--home", str(home)])
        if shell is not None and record.shell != str(shell):
            changes.extend(["--shell", str(shell)])
        if uid is not None and record.uid != uid:
            changes.extend(["--uid", str(uid)])
        if gid is not None and str(record.gid) != str(gid) and not self._is_primary(record.gid, gid):
            changes.extend(["--gid", str(gid)])
        if not changes:
            return False
        if self.context.preview:
            return True
        self.runner.run(["usermod", *changes, name])
        return True

    def remove_user(
        self, name: str, *, remove_home: bool = True, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Delete user *name* if present."""
        command = ["userdel"]
        if remove_home:
            command.append("--remove")
        command.append(name)
        return converge(
            [name],
            check=self._existing_users,
            act=lambda _values, _opts: self.runner.run(command),
            context=self.context,
            options=options,
            desired=False,
            action="remove user",
        )

    # Groups -------------------------------------------------------------
    def add_group(
        self,
        name: str,
        *,
        members: object = None,
        gid: int | None = None,
        **options: Any,
    ) -> bool | tuple[bool, list[str]]:
        """Create group *name* and optionally add *members*."""
        command = ["groupadd"]
        if gid is not None:
            command.extend(["--gid", str(gid)])
        command.append(name)
        result = converge(
            [name],
            check=self._existing_groups,
            act=lambda _values, _opts: self.runner.run(command),
            context=self.context,
            options=options,
            action="add group",
        )
        if was_changed(result) and members and self.context.writing:
            self.add_users_to_group(members, name)
        return result

    def update_group(
        self,
        name: str,
        *,
        gid: int | None = None,
        members: object = None,
        **options: Any,
    ) -> bool:
        """Change the gid of *name* and add missing *members*."""
        record = self.find_group(name)
        if record is None:
            raise ValueError(f"Group '{name}' does not exist.")
        changed = False
        if gid is not None and record.gid != gid:
            changed = True
            if self.context.writing:
                self.runner.run(["groupmod", "--gid", str(gid), name])
        if members:
            changed = was_changed(self.add_users_to_group(members, name)) or changed
        return changed

    def remove_group(self, name: str, **options: Any) -> bool | tuple[bool, list[str]]:
        """Delete group *name* if it exists."""
        return converge(
            [name],
            check=self._existing_groups,
            act=lambda _values, _opts: self.runner.run(["groupdel", name]),
            context=self.context,
            options=options,
            desired=False,
            action="remove group",
        )

    # Memberships --------------------------------------------------------
    def add_groups_to_user(
        self, groups: object, user: str, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Add *user* to each of *groups* it is not already in."""
        self._require_user(user)

        def act(values: list[str], _opts: Mapping[str, Any]) -> None:
            self.runner.run(["usermod", "--append", "--groups", ",".join(values), user])

        return converge(
            groups,
            check=lambda names, _opts: self._member_groups(user, names),
            act=act,
            context=self.context,
            options=options,
            action=f"add groups to user '{user}'",
        )

    def remove_groups_from_user(
        self, groups: object, user: str, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Remove *user* from each of *groups* it is a supplementary member of.

        A primary group cannot be dropped this way; change it with
        :meth:`update_user` first.
        """
        self._require_user(user)
        self._refuse_primary(user, normalize_targets(groups).names)

        def act(values: list[str], _opts: Mapping[str, Any]) -> None:
            for group in values:
                self.runner.run(["gpasswd", "--delete", user, group])

        return converge(
            groups,
            check=lambda names, _opts: self._supplementary_groups(user, names),
            act=act,
            context=self.context,
            options=options,
            desired=False,
            action=f"remove groups from user '{user}'",
        )

    def add_users_to_group(
        self, users: object, group: str, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Add each of *users* to *group*."""
        self._require_group(group)

        def act(values: list[str], _opts: Mapping[str, Any]) -> None:
            for user in values:
                self.runner.run(["gpasswd", "--add", user, group])

        return converge(
            users,
            check=lambda names, _opts: self._group_members(group, names),
            act=act,
            context=self.context,
            options=options,
            action=f"add users to group '{group}'",
        )

    def remove_users_from_group(
        self, users: object, group: str, **options: Any
    ) -> bool | tuple[bool, list[str]]:
        """Remove each of *users* from *group*."""
        self._require_group(group)
        for user in normalize_targets(users).names:
            self._refuse_primary(user, [group])

        def act(values: list[str], _opts: Mapping[str, Any]) -> None:
            for user in values:
                self.runner.run(["gpasswd", "--delete", user, group])

        return converge(
            users,
            check=lambda names, _opts: self._supplementary_members(group, names),
            act=act,
            context=self.context,
            options=options,
            desired=False,
            action=f"remove users from group '{group}'",
        )

    # ------------------------------------------------------------------
    def _existing_users(self, names: list[str], _options: Mapping[str, Any]) -> list[str]:
        return [name for name in names if self.has_user(name)]

    def _existing_groups(self, names: list[str], _options: Mapping[str, Any]) -> list[str]:
        return [name for name in names if self.has_group(name)]

    def _member_groups(self, user: str, names: list[str]) -> list[str]:
        current = set(self.groups_for_user(user))
        return [name for name in names if name in current]

    def _group_members(self, group: str, names: list[str]) -> list[str]:
        current = set(self.users_for_group(group))
        return [name for name in names if name in current]

    def _supplementary_groups(self, user: str, names: list[str]) -> list[str]:
        return [name for name in names if user in self._explicit_members(name)]

    def _supplementary_members(self, group: str, names: list[str]) -> list[str]:
        current = set(self._explicit_members(group))
        return [name for name in names if name in current]

    def _explicit_members(self, group: str) -> tuple[str, ...]:
        record = self.find_group(group)
        return record.members if record is not None else ()

    def _refuse_primary(self, user: str, groups: tuple[str, ...] | list[str]) -> None:
        record = self.find_user(user)
        if record is None:
            return
        for group in groups:
            if self._is_primary(record.gid, group):
                raise ValueError(
                    f"Group '{group}' is the primary group of user '{user}'"
                    " and cannot be removed."
                )

    def _require_user(self, user: str) -> None:
        if not self.has_user(user):
            raise ValueError(f"User '{user}' does not exist.")

    def _require_group(self, group: str) -> None:
        if not self.has_group(group):
            raise ValueError(f"Group '{group}' does not exist.")

    def _is_primary(self, current_gid: int, wanted: int | str) -> bool:
        if isinstance(wanted, int):
            return current_gid == wanted
        record = self.find_group(str(wanted))
        return record is not None and record.gid == current_gid


__all__ = ["LinuxDriver"]
