"""Typer-powered command line for ``hostmate``.

Every command builds (or reuses) a :class:`~hostmate.session.Session`,
records its outcome in the structured operations log and maps failures to
the exit codes in :mod:`hostmate.exit_codes`.
"""
from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import asdict
from pathlib import Path
from typing import Any, NoReturn

import typer
from jinja2 import TemplateError
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigError, load_config
from .context import ExecutionMode
from .errors import HostmateError
from .exit_codes import ExitCode, exit_code_for
from .logging import OperationScope
from .session import Session
from .templates import CHECK_MODES

console = Console()

app = typer.Typer(help="Idempotent host automation: packages, accounts, files and fields.")
packages_app = typer.Typer(help="Install, uninstall and query packages.")
accounts_app = typer.Typer(help="Manage users, groups and memberships.")
fields_app = typer.Typer(help="Look up structured configuration values.")
config_app = typer.Typer(help="Inspect hostmate configuration.")
app.add_typer(packages_app, name="packages")
app.add_typer(accounts_app, name="accounts")
app.add_typer(fields_app, name="fields")
app.add_typer(config_app, name="config")

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to hostmate's YAML config file.",
)
PREVIEW_OPTION = typer.Option(
    False,
    "--preview",
    "-n",
    help="Report what would change without changing anything.",
)
QUIET_OPTION = typer.Option(False, "--quiet", "-q", help="Suppress progress messages.")
WITH_OPTION = typer.Option(
    None,
    "--with",
    help="Use this driver instead of the best-suited one.",
)
JSON_OPTION = typer.Option(False, "--json", help="Emit JSON instead of a table.")
TARGETS_ARGUMENT = typer.Argument(None, help="Package names.")
MANIFEST_OPTION = typer.Option(
    None,
    "--manifest",
    "-m",
    exists=True,
    dir_okay=False,
    help="Read additional names from a manifest file ('#' starts a comment).",
)


def _ensure_session(
    ctx: typer.Context,
    config_file: Path | None,
    *,
    preview: bool = False,
    quiet: bool = False,
) -> Session:
    session = ctx.obj
    if isinstance(session, Session):
        return session

    overrides: dict[str, object] = {}
    if preview:
        overrides["mode"] = ExecutionMode.PREVIEW.value
    if quiet:
        overrides["quiet"] = True
    try:
        config = load_config(config_file=config_file, overrides=overrides)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=ExitCode.VALIDATION) from exc

    session = Session.from_config(config)
    ctx.obj = session
    return session


def _get_session(ctx: typer.Context) -> Session:
    session = ctx.obj
    if isinstance(session, Session):
        return session
    return _ensure_session(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the hostmate version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    preview: bool = PREVIEW_OPTION,
    quiet: bool = QUIET_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    session = _ensure_session(ctx, config_file, preview=preview, quiet=quiet)
    if version:
        with session.logger.operation(
            "root --version",
            args={"version": True},
            target={"kind": "meta", "scope": "version"},
        ) as op:
            console.print(f"hostmate {__version__}")
            op.success("Reported CLI version.", changed=0)
        raise typer.Exit(code=ExitCode.OK)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=ExitCode.OK)


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------
def _command_error(op: OperationScope, message: str, *, rc: int) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]{message}[/red]")
    op.error(message, errors=[message], rc=rc)
    raise typer.Exit(code=rc)


def _guarded(op: OperationScope, func: Callable[[], Any]) -> Any:
    """Run *func*, turning hostmate failures into logged exits."""
    try:
        return func()
    except (HostmateError, ValueError, OSError, TemplateError) as exc:
        _command_error(op, str(exc), rc=int(exit_code_for(exc)))


def _report_change(
    session: Session,
    op: OperationScope,
    verb: str,
    result: bool | tuple[bool, list[str]],
    *,
    subject: str = "",
) -> None:
    if isinstance(result, tuple):
        changed, names = result
    else:
        changed, names = result, []
    detail = " ".join(names) or subject
    if not changed:
        if not session.context.quiet:
            console.print(f"Nothing to {verb}; {detail or 'targets'} already in place.")
        op.success(f"Nothing to {verb}.", changed=0)
        return
    if session.context.preview:
        console.print(f"[yellow]Preview[/yellow]: would {verb} {detail}".rstrip())
        op.success(f"Preview of {verb} complete.", changed=0, context={"targets": names})
        return
    if not session.context.quiet:
        console.print(f"[green]{verb.capitalize()}[/green]: {detail}".rstrip())
    op.success(f"{verb.capitalize()} complete.", changed=len(names) or 1, context={"targets": names})


def _targets_from(names: Sequence[str] | None, manifest: Path | None) -> list[str]:
    targets = list(names or [])
    if manifest is not None:
        targets.append(manifest.read_text(encoding="utf-8"))
    return targets


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


# ----------------------------------------------------------------------
# drivers
# ----------------------------------------------------------------------
@app.command("drivers")
def drivers_list(
    ctx: typer.Context,
    role: str | None = typer.Option(None, "--role", help="Only show drivers for this role."),
    json_output: bool = JSON_OPTION,
) -> None:
    """List registered drivers and whether they can run on this host."""
    session = _get_session(ctx)
    with session.logger.operation(
        "drivers",
        args={"role": role, "json": json_output},
        target={"kind": "drivers"},
    ) as op:
        managers = session.managers()
        if role is not None and role not in managers:
            _command_error(op, f"Unknown role '{role}'.", rc=ExitCode.VALIDATION)
        rows: list[dict[str, object]] = []
        for name, manager in managers.items():
            if role is not None and name != role:
                continue
            for driver in manager.drivers:
                missing = _guarded(op, lambda d=driver, m=manager: m.registry.missing(d))
                rows.append(
                    {
                        "role": name,
                        "driver": driver.name,
                        "available": not missing,
                        "missing": missing,
                        "default": manager.default == driver.name,
                    }
                )

        if json_output:
            console.print_json(data={"drivers": rows})
            op.success("Reported drivers as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Role", style="bold")
        table.add_column("Driver")
        table.add_column("Available")
        table.add_column("Missing")
        for row in rows:
            name = f"{row['driver']} (default)" if row["default"] else str(row["driver"])
            table.add_row(
                str(row["role"]),
                name,
                "[green]yes[/green]" if row["available"] else "[red]no[/red]",
                ", ".join(row["missing"]),  # type: ignore[arg-type]
            )
        console.print(table)
        op.success("Reported drivers.", changed=0)


# ----------------------------------------------------------------------
# packages
# ----------------------------------------------------------------------
def _package_mutation(
    ctx: typer.Context,
    method: str,
    verb: str,
    names: list[str] | None,
    manifest: Path | None,
    driver: str | None,
) -> None:
    session = _get_session(ctx)
    targets = _targets_from(names, manifest)
    with session.logger.operation(
        f"packages {method}",
        args={"targets": targets, "with": driver, "preview": session.context.preview},
        target={"kind": "packages"},
    ) as op:
        if not targets:
            _command_error(op, "No packages specified.", rc=ExitCode.VALIDATION)
        selected = _guarded(op, lambda: session.packages.resolve(method, targets, with_=driver))
        op.add_step("driver.select", detail=selected.name)
        result = _guarded(
            op,
            lambda: getattr(session.packages, method)(targets, with_=driver, details=True),
        )
        _report_change(session, op, verb, result)


@packages_app.command("install")
def packages_install(
    ctx: typer.Context,
    names: list[str] | None = TARGETS_ARGUMENT,
    manifest: Path | None = MANIFEST_OPTION,
    driver: str | None = WITH_OPTION,
) -> None:
    """Install packages that are not installed yet."""
    _package_mutation(ctx, "install", "install", names, manifest, driver)


@packages_app.command("uninstall")
def packages_uninstall(
    ctx: typer.Context,
    names: list[str] | None = TARGETS_ARGUMENT,
    manifest: Path | None = MANIFEST_OPTION,
    driver: str | None = WITH_OPTION,
) -> None:
    """Uninstall packages that are currently installed."""
    _package_mutation(ctx, "uninstall", "uninstall", names, manifest, driver)


@packages_app.command("status")
def packages_status(
    ctx: typer.Context,
    names: list[str] | None = TARGETS_ARGUMENT,
    manifest: Path | None = MANIFEST_OPTION,
    driver: str | None = WITH_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Report which packages are installed."""
    session = _get_session(ctx)
    targets = _targets_from(names, manifest)
    with session.logger.operation(
        "packages status",
        args={"targets": targets, "with": driver, "json": json_output},
        target={"kind": "packages"},
    ) as op:
        if not targets:
            _command_error(op, "No packages specified.", rc=ExitCode.VALIDATION)
        truth, installed = _guarded(
            op, lambda: session.packages.installed(targets, with_=driver, details=True)
        )
        _, missing = _guarded(
            op, lambda: session.packages.not_installed(targets, with_=driver, details=True)
        )
        if json_output:
            console.print_json(
                data={"installed": installed, "missing": missing, "all_installed": truth}
            )
        else:
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Package", style="bold")
            table.add_column("State")
            for name in installed:
                table.add_row(name, "[green]installed[/green]")
            for name in missing:
                table.add_row(name, "[yellow]missing[/yellow]")
            console.print(table)
        op.success("Reported package status.", changed=0, context={"missing": missing})


# ----------------------------------------------------------------------
# accounts
# ----------------------------------------------------------------------
@accounts_app.command("show")
def accounts_show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="User or group name."),
    json_output: bool = JSON_OPTION,
) -> None:
    """Show the user and/or group called NAME."""
    session = _get_session(ctx)
    with session.logger.operation(
        "accounts show",
        args={"name": name, "json": json_output},
        target={"kind": "account", "name": name},
    ) as op:
        user = _guarded(op, lambda: session.accounts.users[name])
        group = _guarded(op, lambda: session.accounts.groups[name])
        payload: dict[str, object] = {
            "user": asdict(user) if user is not None else None,
            "group": asdict(group) if group is not None else None,
        }
        if user is not None:
            payload["groups"] = _guarded(op, lambda: session.accounts.groups_for_user(name))
        if json_output:
            console.print_json(data=payload)
        elif user is None and group is None:
            console.print(f"[yellow]No user or group named '{name}'.[/yellow]")
        else:
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Key", style="bold")
            table.add_column("Value")
            for key, value in payload.items():
                if value is None:
                    continue
                rendered = json.dumps(value, indent=2) if isinstance(value, (dict, list)) else str(value)
                table.add_row(key, rendered)
            console.print(table)
        op.success("Reported account.", changed=0)


def _account_mutation(
    ctx: typer.Context,
    command: str,
    verb: str,
    subject: str,
    call: Callable[[Session], bool | tuple[bool, list[str]]],
    *,
    args: dict[str, object],
) -> None:
    session = _get_session(ctx)
    with session.logger.operation(
        f"accounts {command}",
        args={**args, "preview": session.context.preview},
        target={"kind": "account", "name": subject},
    ) as op:
        result = _guarded(op, lambda: call(session))
        _report_change(session, op, verb, result, subject=subject)


@accounts_app.command("user-add")
def accounts_user_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="User name."),
    description: str | None = typer.Option(None, "--description", help="Full name."),
    home: str | None = typer.Option(None, "--home", help="Home directory."),
    no_create_home: bool = typer.Option(False, "--no-create-home", help="Skip the home dir."),
    shell: str | None = typer.Option(None, "--shell", help="Login shell."),
    uid: int | None = typer.Option(None, "--uid", help="User id."),
    gid: str | None = typer.Option(None, "--gid", help="Primary group name or id."),
    groups: str | None = typer.Option(None, "--groups", help="Comma-separated groups."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Create a user unless it already exists."""
    options: dict[str, object] = {
        "description": description,
        "home": home,
        "create_home": not no_create_home,
        "shell": shell,
        "uid": uid,
        "gid": gid,
        "groups": _split_csv(groups),
    }
    _account_mutation(
        ctx,
        "user-add",
        "add user",
        name,
        lambda session: session.accounts.add_user(name, with_=driver, **options),
        args={"name": name, **options},
    )


@accounts_app.command("user-remove")
def accounts_user_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="User name."),
    keep_home: bool = typer.Option(False, "--keep-home", help="Keep the home directory."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Remove a user if present."""
    _account_mutation(
        ctx,
        "user-remove",
        "remove user",
        name,
        lambda session: session.accounts.remove_user(
            name, with_=driver, remove_home=not keep_home
        ),
        args={"name": name, "keep_home": keep_home},
    )


@accounts_app.command("group-add")
def accounts_group_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name."),
    gid: int | None = typer.Option(None, "--gid", help="Group id."),
    members: str | None = typer.Option(None, "--members", help="Comma-separated users."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Create a group unless it already exists."""
    member_list = _split_csv(members)
    _account_mutation(
        ctx,
        "group-add",
        "add group",
        name,
        lambda session: session.accounts.add_group(
            name, with_=driver, gid=gid, members=member_list
        ),
        args={"name": name, "gid": gid, "members": member_list},
    )


@accounts_app.command("group-remove")
def accounts_group_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Remove a group if it exists."""
    _account_mutation(
        ctx,
        "group-remove",
        "remove group",
        name,
        lambda session: session.accounts.remove_group(name, with_=driver),
        args={"name": name},
    )


@accounts_app.command("user-groups-add")
def accounts_user_groups_add(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="User name."),
    groups: list[str] = typer.Argument(..., help="Groups to join."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Add USER to GROUPS it is not yet a member of."""
    _account_mutation(
        ctx,
        "user-groups-add",
        f"add {user} to",
        user,
        lambda session: session.accounts.add_groups_to_user(
            groups, user, with_=driver, details=True
        ),
        args={"user": user, "groups": groups},
    )


@accounts_app.command("user-groups-remove")
def accounts_user_groups_remove(
    ctx: typer.Context,
    user: str = typer.Argument(..., help="User name."),
    groups: list[str] = typer.Argument(..., help="Groups to leave."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Remove USER from GROUPS it belongs to."""
    _account_mutation(
        ctx,
        "user-groups-remove",
        f"remove {user} from",
        user,
        lambda session: session.accounts.remove_groups_from_user(
            groups, user, with_=driver, details=True
        ),
        args={"user": user, "groups": groups},
    )


# ----------------------------------------------------------------------
# fields
# ----------------------------------------------------------------------
@fields_app.command("lookup")
def fields_lookup(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key path such as 'hash#leafkey' ('*' for all)."),
    driver: str | None = WITH_OPTION,
    json_output: bool = JSON_OPTION,
) -> None:
    """Print the value stored under KEY."""
    session = _get_session(ctx)
    with session.logger.operation(
        "fields lookup",
        args={"key": key, "with": driver},
        target={"kind": "fields", "key": key},
    ) as op:
        found = _guarded(op, lambda: session.fields.has_key(key, with_=driver))
        if not found:
            _command_error(op, f"Key '{key}' not found.", rc=ExitCode.VALIDATION)
        value = _guarded(op, lambda: session.fields.fetch(key, with_=driver))
        if json_output or isinstance(value, (dict, list)):
            console.print_json(data={"key": key, "value": value})
        else:
            console.print(str(value))
        op.success("Looked up field.", changed=0)


# ----------------------------------------------------------------------
# templates and downloads
# ----------------------------------------------------------------------
@app.command("render")
def render(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Template file."),
    target: Path = typer.Argument(..., help="File to write."),
    variables: list[str] | None = typer.Option(
        None, "--set", help="Template variable as KEY=VALUE (repeatable)."
    ),
    check: str | None = typer.Option(
        None, "--check", help=f"When to re-render ({', '.join(CHECK_MODES)})."
    ),
    force: bool = typer.Option(False, "--force", help="Render even when up to date."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Render SOURCE into TARGET when TARGET is out of date."""
    session = _get_session(ctx)
    with session.logger.operation(
        "render",
        args={"source": source, "target": target, "check": check, "force": force},
        target={"kind": "file", "path": target},
    ) as op:
        local_vars: dict[str, object] = {}
        for item in variables or []:
            key, sep, value = item.partition("=")
            if not sep or not key:
                _command_error(op, f"Invalid --set value '{item}'.", rc=ExitCode.VALIDATION)
            local_vars[key] = value
        result = _guarded(
            op,
            lambda: session.templates.render(
                source, target, with_=driver, locals=local_vars, check=check, force=force
            ),
        )
        _report_change(session, op, "render", result, subject=str(target))


@app.command("download")
def download(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="URL to fetch."),
    to: Path | None = typer.Option(None, "--to", help="Destination file or directory."),
    driver: str | None = WITH_OPTION,
) -> None:
    """Download SOURCE."""
    session = _get_session(ctx)
    with session.logger.operation(
        "download",
        args={"source": source, "to": to},
        target={"kind": "file", "source": source},
    ) as op:
        result = _guarded(op, lambda: session.downloads.download(source, to, with_=driver))
        _report_change(session, op, "download", result, subject=source)


# ----------------------------------------------------------------------
# config
# ----------------------------------------------------------------------
@config_app.command("show")
def config_show(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit configuration as JSON instead of a table.",
    ),
) -> None:
    """Display the effective configuration after merges."""
    session = _get_session(ctx)
    data = session.config.to_dict()

    with session.logger.operation(
        "config show",
        args={"json": json_output},
        target={"kind": "config"},
    ) as op:
        if json_output:
            console.print_json(data=data)
            op.success("Rendered configuration as JSON.", changed=0)
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Key", style="bold")
        table.add_column("Value")

        for key, value in data.items():
            if isinstance(value, dict):
                rendered = json.dumps(value, indent=2, sort_keys=True)
            else:
                rendered = str(value)
            table.add_row(key, rendered)

        console.print(table)
        op.success("Rendered configuration table.", changed=0)


def main() -> None:  # pragma: no cover - console script entry point
    """Run the hostmate CLI."""
    app()


__all__ = ["app", "main"]
