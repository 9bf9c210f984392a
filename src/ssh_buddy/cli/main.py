"""CLI entry point — the `sshb` command."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ssh_buddy.core import fileio
from ssh_buddy.core.base import (
    IssueSeverity,
    ScanStatus,
    SecurityIssue,
    ValidationResult,
)
from ssh_buddy.core.config import Settings, get_settings, resolve_settings
from ssh_buddy.core.errors import SSHBuddyError
from ssh_buddy.security.keys import discover_keys
from ssh_buddy.security.known_hosts import (
    parse_known_hosts,
    remove_known_host_by_name,
    remove_known_host_entry,
)
from ssh_buddy.security.permissions import (
    PermissionFixResult,
    check_ssh_dir_permissions,
    fix_key_permissions,
    fix_ssh_dir_permissions,
    format_mode,
    is_owner_only,
)
from ssh_buddy.security.scanner import get_scan_summary, run_security_scan
from ssh_buddy.sshconfig.directives import coerce_value, is_option_key, normalize_key
from ssh_buddy.sshconfig.document import SSHHostConfig, get_host_display_name
from ssh_buddy.sshconfig.mutations import add_host, remove_host, update_host
from ssh_buddy.sshconfig.store import SSHConfigStore
from ssh_buddy.sshconfig.validation import validate_config, validate_host

console = Console()
err_console = Console(stderr=True)

SEVERITY_COLORS: dict[str, str] = {
    IssueSeverity.ERROR: "red",
    IssueSeverity.WARNING: "yellow",
    IssueSeverity.INFO: "dim",
}

STATUS_COLORS = {
    ScanStatus.HEALTHY: "green",
    ScanStatus.WARNING: "yellow",
    ScanStatus.ERROR: "red bold",
}


def _fail(error: SSHBuddyError) -> NoReturn:
    console.print(f"[red]{escape(str(error))}[/red]")
    raise SystemExit(1) from error


def _run_async(coro: Any) -> Any:
    """Run an async coroutine from sync Click commands; typed failures exit with 1."""
    try:
        return asyncio.run(coro)
    except SSHBuddyError as e:
        _fail(e)


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj


def _store(ctx: click.Context) -> SSHConfigStore:
    settings = _settings(ctx)
    return SSHConfigStore(settings.config_path, backup=settings.backup)


def _parse_option(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise click.BadParameter(f"expected KEY=VALUE, got {raw!r}", param_hint="--option")
    return key.strip(), value.strip()


def _host_pairs(
    hostname: str | None,
    user: str | None,
    port: str | None,
    identity_file: str | None,
    options: tuple[str, ...],
) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for key, value in (
        ("HostName", hostname),
        ("User", user),
        ("Port", port),
        ("IdentityFile", identity_file),
    ):
        if value is not None:
            pairs.append((key, value))
    pairs.extend(_parse_option(raw) for raw in options)
    return pairs


def _apply_changes(
    host: SSHHostConfig,
    new_name: str,
    pairs: list[tuple[str, str]],
    unset: tuple[str, ...],
) -> SSHHostConfig:
    """Return a copy of ``host`` with ``pairs`` set and ``unset`` removed."""
    options = dict(host.options)
    extras = list(host.extra_options)

    for key in unset:
        canonical = normalize_key(key)
        options.pop(canonical, None)
        extras = [(k, v) for k, v in extras if k.lower() != key.lower()]

    for key, value in pairs:
        canonical = normalize_key(key)
        if is_option_key(canonical):
            options[canonical] = coerce_value(canonical, value)
            continue
        for i, (extra_key, _old) in enumerate(extras):
            if extra_key.lower() == key.lower():
                extras[i] = (extra_key, value)
                break
        else:
            extras.append((key, value))

    return SSHHostConfig(host=new_name, options=options, extra_options=extras)


def _render_validation(result: ValidationResult) -> None:
    for issue in result.issues:
        style = SEVERITY_COLORS.get(issue.severity, "")
        field = f" ({issue.field})" if issue.field else ""
        console.print(
            f"  [{style}][{issue.severity.value.upper()}][/{style}] "
            f"{escape(issue.message)}{escape(field)}"
        )
        if issue.hint:
            console.print(f"    [dim]Hint:[/dim] {escape(issue.hint)}")


def _render_security_issue(issue: SecurityIssue) -> None:
    style = SEVERITY_COLORS.get(issue.severity, "")
    console.print(f"  [{style}][{issue.severity.value.upper()}][/{style}] {escape(issue.title)}")
    console.print(f"    {escape(issue.description)}")
    if issue.suggestion:
        console.print(f"    [dim]Suggestion:[/dim] {escape(issue.suggestion)}")


def _report_save(result: ValidationResult, done: str) -> None:
    """Print validation output for add/edit; exit 1 if the write was refused."""
    if result.issues:
        _render_validation(result)
    if result.has_blocking_errors:
        console.print("[red]Not saved: fix the errors above first.[/red]")
        raise SystemExit(1)
    console.print(f"[green]{escape(done)}[/green]")


@click.group()
@click.version_option(package_name="ssh-buddy")
@click.option(
    "--ssh-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="SSH directory to work on (default: $SSHB_SSH_DIR or ~/.ssh).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, ssh_dir: Path | None, verbose: bool) -> None:
    """sshb — manage ~/.ssh/config hosts and audit SSH key hygiene."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    ctx.obj = resolve_settings(ssh_dir) if ssh_dir is not None else get_settings()


@cli.command("hosts")
@click.pass_context
def hosts_cmd(ctx: click.Context) -> None:
    """List the hosts defined in the SSH config."""
    doc = _run_async(_store(ctx).load())

    if not doc.hosts:
        console.print("[yellow]No hosts configured.[/yellow]")
        return

    table = Table(title=str(_settings(ctx).config_path))
    table.add_column("Host", style="bold")
    table.add_column("HostName")
    table.add_column("User")
    table.add_column("Port", justify="right")
    table.add_column("IdentityFile")

    for host in doc.hosts:
        table.add_row(
            escape(get_host_display_name(host)),
            escape(host.hostname or ""),
            escape(host.user or ""),
            str(host.port) if host.port is not None else "",
            escape(host.identity_file or ""),
        )

    console.print(table)


@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str) -> None:
    """Show every directive of one host."""
    doc = _run_async(_store(ctx).load())
    host = doc.get_host(name)
    if host is None:
        console.print(f"[red]Unknown host: {escape(name)}[/red]")
        raise SystemExit(1)

    lines = [f"{key} {value}" for key, value in host.option_items()]
    body = escape("\n".join(lines)) if lines else "(no options)"
    console.print(Panel(body, title=f"[bold]Host {escape(host.host)}[/bold]", style="blue"))

    result = validate_host(host)
    if result.issues:
        console.print(f"\n[bold]Validation:[/bold] {result.summary()}")
        _render_validation(result)


@cli.command()
@click.argument("name")
@click.option("--hostname", help="Server address (HostName).")
@click.option("--user", help="Login user (User).")
@click.option("--port", help="Port number (Port).")
@click.option("--identity-file", help="Private key path (IdentityFile).")
@click.option("--option", "-o", "options", multiple=True, help="Extra directive as KEY=VALUE.")
@click.pass_context
def add(
    ctx: click.Context,
    name: str,
    hostname: str | None,
    user: str | None,
    port: str | None,
    identity_file: str | None,
    options: tuple[str, ...],
) -> None:
    """Add a new host block."""
    store = _store(ctx)
    host = SSHHostConfig.from_pairs(name, _host_pairs(hostname, user, port, identity_file, options))

    async def _add() -> ValidationResult:
        doc = await store.load()
        result = validate_host(host, doc.host_names, is_new_host=True)
        if not result.has_blocking_errors:
            await store.save(add_host(doc, host))
        return result

    _report_save(_run_async(_add()), f"Added host {name}")


@cli.command()
@click.argument("name")
@click.option("--rename", help="New alias for the host.")
@click.option("--hostname", help="Server address (HostName).")
@click.option("--user", help="Login user (User).")
@click.option("--port", help="Port number (Port).")
@click.option("--identity-file", help="Private key path (IdentityFile).")
@click.option("--option", "-o", "options", multiple=True, help="Directive to set as KEY=VALUE.")
@click.option("--unset", multiple=True, help="Directive to remove.")
@click.pass_context
def edit(
    ctx: click.Context,
    name: str,
    rename: str | None,
    hostname: str | None,
    user: str | None,
    port: str | None,
    identity_file: str | None,
    options: tuple[str, ...],
    unset: tuple[str, ...],
) -> None:
    """Change an existing host block. Comments inside the block are kept."""
    store = _store(ctx)
    pairs = _host_pairs(hostname, user, port, identity_file, options)

    async def _edit() -> ValidationResult | None:
        doc = await store.load()
        existing = doc.get_host(name)
        if existing is None:
            return None

        new_host = _apply_changes(existing, rename or name, pairs, unset)
        others = [h for h in doc.host_names if h != name]
        result = validate_host(new_host, others, is_new_host=rename is not None)
        if not result.has_blocking_errors:
            await store.save(update_host(doc, name, new_host))
        return result

    result = _run_async(_edit())
    if result is None:
        console.print(f"[red]Unknown host: {escape(name)}[/red]")
        raise SystemExit(1)
    _report_save(result, f"Updated host {rename or name}")


@cli.command()
@click.argument("name")
@click.pass_context
def remove(ctx: click.Context, name: str) -> None:
    """Remove a host block."""
    store = _store(ctx)

    async def _remove() -> bool:
        doc = await store.load()
        if doc.get_host(name) is None:
            return False
        await store.save(remove_host(doc, name))
        return True

    if _run_async(_remove()):
        console.print(f"[green]Removed host {escape(name)}[/green]")
    else:
        console.print(f"[yellow]No host named {escape(name)}; nothing changed.[/yellow]")


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check the whole SSH config. Exits with 1 when errors are found."""
    doc = _run_async(_store(ctx).load())
    result = validate_config(doc)

    color = "red" if result.has_blocking_errors else "yellow" if result.issues else "green"
    console.print(f"[{color}]{result.summary()}[/{color}]")
    _render_validation(result)

    if result.has_blocking_errors:
        raise SystemExit(1)


@cli.command()
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def scan(ctx: click.Context, output_format: str) -> None:
    """Scan SSH keys and known_hosts for security issues."""
    settings = _settings(ctx)

    async def _scan() -> Any:
        keys = await discover_keys(settings.ssh_dir)
        return await run_security_scan(keys, settings.known_hosts_path)

    result = _run_async(_scan())

    if output_format == "json":
        click.echo(result.model_dump_json(indent=2))
        return

    console.print(Panel("[bold]SSH Security Scan[/bold]", style="blue"))
    for kh in result.key_health:
        bits = f", {kh.key.bit_size} bit" if kh.key.bit_size else ""
        console.print(f"\n[bold]{escape(kh.key.name)}[/bold] ({kh.key.type}{bits})")
        if not kh.issues:
            console.print("  [green]No issues found.[/green]")
        for issue in kh.issues:
            _render_security_issue(issue)

    console.print(
        f"\n[bold]known_hosts[/bold] ({len(result.known_hosts.entries)} entries)"
    )
    if not result.known_hosts.issues:
        console.print("  [green]No issues found.[/green]")
    for issue in result.known_hosts.issues:
        _render_security_issue(issue)

    color = STATUS_COLORS[result.status]
    console.print(f"\n[bold]Status:[/bold] [{color}]{get_scan_summary(result)}[/{color}]\n")


@cli.command()
@click.pass_context
def keys(ctx: click.Context) -> None:
    """List the private keys found in the SSH directory."""
    found = _run_async(discover_keys(_settings(ctx).ssh_dir))

    if not found:
        console.print("[yellow]No SSH keys found.[/yellow]")
        return

    table = Table(title="SSH Keys")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Bits", justify="right")
    table.add_column("Public key", justify="center")
    table.add_column("Mode", justify="right")

    for key in found:
        table.add_row(
            key.name,
            key.type,
            str(key.bit_size) if key.bit_size else "?",
            "[green]yes[/green]" if key.has_public_key else "[red]no[/red]",
            format_mode(key.mode) if key.mode is not None else "?",
        )

    console.print(table)


@cli.group("known-hosts")
def known_hosts() -> None:
    """Inspect and clean up known_hosts."""


@known_hosts.command("list")
@click.pass_context
def known_hosts_list(ctx: click.Context) -> None:
    """List known_hosts entries with their line numbers."""
    path = _settings(ctx).known_hosts_path
    entries = parse_known_hosts(_run_async(fileio.read_text(path)))

    table = Table(title=str(path))
    table.add_column("Line", justify="right")
    table.add_column("Hosts", style="bold")
    table.add_column("Key type")

    for entry in entries:
        table.add_row(str(entry.line_number), escape(",".join(entry.hosts)), entry.key_type)

    console.print(table)


@known_hosts.command("remove")
@click.option("--line", "line_number", type=int, help="Remove this line number.")
@click.option("--host", "host_name", help="Remove every entry matching this host.")
@click.pass_context
def known_hosts_remove(ctx: click.Context, line_number: int | None, host_name: str | None) -> None:
    """Remove entries by line number or host name."""
    if (line_number is None) == (host_name is None):
        raise click.UsageError("Pass exactly one of --line or --host.")

    path = _settings(ctx).known_hosts_path
    if line_number is not None:
        removed = _run_async(remove_known_host_entry(line_number, path))
        if removed:
            console.print(f"[green]Removed line {line_number}[/green]")
        else:
            console.print(f"[yellow]No line {line_number} in {path}[/yellow]")
        return

    count = _run_async(remove_known_host_by_name(host_name, path))
    console.print(f"[green]Removed {count} entr{'y' if count == 1 else 'ies'} for {escape(host_name)}[/green]")


@cli.command("fix-permissions")
@click.option(
    "--apply",
    "apply_",
    is_flag=True,
    help="Actually change permissions (default is dry-run).",
)
@click.pass_context
def fix_permissions(ctx: click.Context, apply_: bool) -> None:
    """Restrict the SSH directory to 700 and private keys to 600."""
    settings = _settings(ctx)
    actions: list[tuple[str, Path, Callable[[Path], PermissionFixResult]]] = []

    try:
        dir_check = check_ssh_dir_permissions(settings.ssh_dir)
    except SSHBuddyError as e:
        _fail(e)
    if dir_check.current_mode is not None and not dir_check.is_valid:
        actions.append((dir_check.message, settings.ssh_dir, fix_ssh_dir_permissions))

    for key in _run_async(discover_keys(settings.ssh_dir)):
        if key.mode is not None and not is_owner_only(key.mode):
            actions.append(
                (
                    f"{key.name}: mode {format_mode(key.mode)} should be 600",
                    Path(key.private_key_path),
                    fix_key_permissions,
                )
            )

    if not actions:
        console.print("[green]Permissions are already correct.[/green]")
        return

    if not apply_:
        console.print(
            "[yellow]Dry-run mode — no changes will be made. Use --apply to execute.[/yellow]\n"
        )
        for description, _target, _fix in actions:
            console.print(f"  [yellow]- {escape(description)}[/yellow]")
        return

    for description, target, fix in actions:
        try:
            result = fix(target)
        except SSHBuddyError as e:
            console.print(f"  [red]- {escape(description)}: {escape(str(e))}[/red]")
            continue
        console.print(f"  [green]- {escape(description)}: {result.message}[/green]")
