"""Command Line Interface for unbloat."""

import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from .adb import (
    ADBDevice,
    ADBError,
    CommandExecutor,
    PackageStateReader,
    check_adb_available,
    get_device_by_serial,
    list_devices,
)
from .backup import (
    BackupStore,
    RestoreReconciler,
    backup_phone,
    list_users_in_backup,
    refresh_backup_selection,
    restore_backup,
    select_backup,
)
from .config import UnbloatConfig, load_config, save_config
from .packages import Action, PackageCommand, PackageState, User, change_package_state
from .util import format_stem, get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

STATE_CHOICES = click.Choice([state.value for state in PackageState.concrete()], case_sensitive=False)


def setup_cli_logging(verbose: bool = False, level: str = "INFO"):
    """Setup logging for CLI."""
    setup_logging(level="DEBUG" if verbose else level)


def _parse_state(value: Optional[str]) -> Optional[PackageState]:
    if value is None:
        return None
    return next(state for state in PackageState.concrete() if state.value.lower() == value.lower())


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), help="Configuration file path")
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[Path]):
    """unbloat - disable, uninstall and restore Android system packages over ADB."""
    ctx.ensure_object(dict)
    config = load_config(config_path)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.obj["store"] = BackupStore(config.backup_root)
    setup_cli_logging(verbose, config.log_level)


def _get_target_device(config: UnbloatConfig, serial: Optional[str]) -> Optional[ADBDevice]:
    """Get target device for operations."""
    if not check_adb_available(config.adb_path):
        console.print("[red]Error: ADB is not available or not in PATH[/red]")
        console.print("Please ensure Android Debug Bridge (ADB) is installed and accessible.")
        sys.exit(1)

    try:
        if serial:
            device = get_device_by_serial(serial, config.adb_path)
            if not device:
                console.print(f"[red]Device with serial {serial} not found[/red]")
            return device

        devices = list_devices(config.adb_path)
    except ADBError as e:
        console.print(f"[red]ADB Error: {e}[/red]")
        return None

    if not devices:
        console.print("[red]No devices found[/red]")
        return None

    if len(devices) == 1:
        return devices[0]

    console.print("[yellow]Multiple devices found. Please specify --serial[/yellow]")
    _list_devices(devices)
    return None


def _select_user(users: List[User], user_id: Optional[int]) -> Optional[User]:
    if user_id is None:
        return users[0] if users else None

    user = next((u for u in users if u.id == user_id), None)
    if user is None:
        console.print(f"[red]User {user_id} not found on device[/red]")
    return user


def _list_devices(devices: List[ADBDevice]):
    """Helper to display device list."""
    if not devices:
        console.print("[yellow]No devices found[/yellow]")
        return

    table = Table(title="Connected Devices")
    table.add_column("Serial", style="cyan")
    table.add_column("Model", style="white")
    table.add_column("Android", style="white")
    table.add_column("API", style="white")
    table.add_column("Users", style="green")

    for device in devices:
        try:
            info = device.get_device_info()
            users = ", ".join(str(u.id) for u in device.list_users())
            table.add_row(info.serial, info.model, info.android_version, str(info.api_level), users)
        except ADBError:
            table.add_row(device.serial, "Unknown", "Unknown", "-", "-")

    console.print(table)


def _show_plan(commands: List[PackageCommand], title: str):
    """Display a command plan."""
    if not commands:
        console.print("[green]Nothing to do[/green]")
        return

    table = Table(title=title)
    table.add_column("Package", style="cyan")
    table.add_column("User", style="white")
    table.add_column("Command", style="white")

    for command in commands:
        style = "bold" if command.state_defining else "dim"
        table.add_row(
            command.package,
            "-" if command.user_id is None else str(command.user_id),
            f"[{style}]{command.shell}[/{style}]",
        )

    console.print(table)


def _apply(device: ADBDevice, commands: List[PackageCommand]):
    """Execute a plan and report the outcome."""
    result = CommandExecutor(device).run(commands)

    console.print(f"[bold green]Applied {result['success_count']}/{result['total']} changes[/bold green]")
    if result["failed_count"] > 0:
        console.print(f"[yellow]Failed: {result['failed_count']}[/yellow]")
        for command in result["failed"][:10]:
            console.print(f"  {command}")


@cli.command("devices")
@click.pass_context
def devices_cmd(ctx):
    """List connected devices."""
    config = ctx.obj["config"]
    try:
        _list_devices(list_devices(config.adb_path))
    except ADBError as e:
        console.print(f"[red]ADB Error: {e}[/red]")


@cli.command("state")
@click.argument("package")
@click.argument("desired", type=STATE_CHOICES)
@click.option("--serial", "-s", help="Device serial number")
@click.option("--user", "-u", "user_id", type=int, help="Selected user id (default: first user)")
@click.option("--current", type=STATE_CHOICES, help="Current state (read from the device if omitted)")
@click.option("--dry-run", is_flag=True, help="Only show the commands")
@click.pass_context
def state_cmd(ctx, package: str, desired: str, serial: Optional[str], user_id: Optional[int],
              current: Optional[str], dry_run: bool):
    """Change the state of a package."""
    config = ctx.obj["config"]
    adb_device = _get_target_device(config, serial)
    if not adb_device:
        return

    try:
        device = adb_device.to_device()
        settings = config.settings_for(device)
        user = _select_user(device.user_list, user_id)
        if user is None:
            return

        current_state = _parse_state(current)
        if current_state is None:
            states = PackageStateReader(adb_device).list_package_states(user.id, device.api_level)
            current_state = states.get(package)
            if current_state is None:
                console.print(f"[red]Package {package} not found for user {user.id}[/red]")
                return

        commands = change_package_state(
            package, current_state, _parse_state(desired), user, device, settings, Action.MISC
        )
        _show_plan(commands, f"{package}: {current_state} -> {_parse_state(desired)}")

        if commands and not dry_run:
            _apply(adb_device, commands)

    except ADBError as e:
        console.print(f"[red]ADB Error: {e}[/red]")


@cli.group()
def backup():
    """Backup management commands."""
    pass


@backup.command("run")
@click.option("--serial", "-s", help="Device serial number")
@click.pass_context
def backup_run(ctx, serial: Optional[str]):
    """Save the state of every package of every user."""
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    adb_device = _get_target_device(config, serial)
    if not adb_device:
        return

    try:
        device = adb_device.to_device()
        console.print(f"[bold cyan]Backing up {device.display_name}[/bold cyan]")
        listing = PackageStateReader(adb_device).read_listing(device.user_list, device.api_level)
    except ADBError as e:
        console.print(f"[red]ADB Error: {e}[/red]")
        return

    result = backup_phone(store, device.user_list, device.device_id, listing)
    if not result.ok:
        console.print(f"[red]Backup failed: {result.error}[/red]")
        return

    console.print("[bold green]Backup completed successfully![/bold green]")
    console.print(f"Location: {result.value}")


@backup.command("list")
@click.option("--serial", "-s", help="Device serial number")
@click.pass_context
def backup_list(ctx, serial: Optional[str]):
    """List available backups."""
    store = ctx.obj["store"]

    if serial:
        device_ids = [serial]
    else:
        try:
            device_ids = sorted(d.name for d in store.backup_root.iterdir() if d.is_dir())
        except OSError:
            device_ids = []

    table = Table(title="Available Backups")
    table.add_column("Device", style="cyan")
    table.add_column("Backup", style="white")
    table.add_column("Created", style="white")
    table.add_column("Users", style="white")

    for device_id in device_ids:
        for path in store.list(device_id):
            users = ", ".join(str(u) for u in list_users_in_backup(store, path)) or "?"
            table.add_row(device_id, path.stem, format_stem(path.stem), users)

    if not table.rows:
        console.print("[yellow]No backups found[/yellow]")
        return

    console.print(table)


@backup.command("users")
@click.argument("backup_id")
@click.option("--serial", "-s", help="Device serial number (to resolve bare backup names)")
@click.pass_context
def backup_users(ctx, backup_id: str, serial: Optional[str]):
    """List the users recorded in a backup."""
    store = ctx.obj["store"]
    path = store.resolve(serial or "", backup_id)

    users = list_users_in_backup(store, path)
    if not users:
        console.print(f"[red]No users found in backup: {backup_id}[/red]")
        return

    for user_id in users:
        console.print(f"user {user_id}")


@cli.command("restore")
@click.argument("backup_id", required=False)
@click.option("--serial", "-s", help="Device serial number")
@click.option("--user", "-u", "user_id", type=int, help="Recorded user to restore (default: first user)")
@click.option("--dry-run", is_flag=True, help="Only show the commands")
@click.pass_context
def restore_cmd(ctx, backup_id: Optional[str], serial: Optional[str], user_id: Optional[int], dry_run: bool):
    """Restore package states from a backup (latest by default)."""
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    adb_device = _get_target_device(config, serial)
    if not adb_device:
        return

    try:
        device = adb_device.to_device()
        settings = refresh_backup_selection(config.settings_for(device), store, device)

        if backup_id:
            select_backup(settings, store, store.resolve(device.device_id, backup_id))
        if user_id is not None:
            settings.backup.selected_user = user_id

        target_user = settings.backup.selected_user
        live_listing = {}
        if target_user is not None:
            live_listing = PackageStateReader(adb_device).list_package_states(target_user, device.api_level)

    except ADBError as e:
        console.print(f"[red]ADB Error: {e}[/red]")
        return

    result = restore_backup(
        store,
        settings.backup.selected,
        target_user,
        live_listing,
        device,
        settings,
        RestoreReconciler(),
    )
    if not result.ok:
        console.print(f"[red]Restore failed: {result.error}[/red]")
        return

    _show_plan(result.value, f"Restore {settings.backup.selected.stem} (user {target_user})")

    if result.value and not dry_run:
        _apply(adb_device, result.value)


@cli.command("settings")
@click.option("--serial", "-s", help="Device serial number")
@click.option("--multi-user/--no-multi-user", default=None, help="Affect all users of the device")
@click.option("--disable-mode/--no-disable-mode", default=None, help="Disable packages instead of uninstalling")
@click.pass_context
def settings_cmd(ctx, serial: Optional[str], multi_user: Optional[bool], disable_mode: Optional[bool]):
    """Show or change settings of the current device."""
    config = ctx.obj["config"]

    adb_device = _get_target_device(config, serial)
    if not adb_device:
        return

    try:
        device = adb_device.to_device()
    except ADBError as e:
        console.print(f"[red]ADB Error: {e}[/red]")
        return

    settings = config.settings_for(device)
    changed = False

    if multi_user is not None:
        settings.multi_user_mode = multi_user
        changed = True

    if disable_mode is not None:
        if settings.set_disable_mode(disable_mode, device.api_level):
            changed = True
        else:
            console.print(f"[yellow]Disable mode is unavailable on API {device.api_level}[/yellow]")

    if changed:
        config.update_device(settings)
        save_config(config, ctx.obj["config_path"])
        logger.debug(f"Config change: {settings}")

    table = Table(title=f"Settings - {device.display_name}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Multi-user mode", "Yes" if settings.multi_user_mode else "No")
    table.add_row("Disable mode", "Yes" if settings.disable_mode else "No")
    table.add_row("Backups", str(config.backup_root / settings.device_id))
    console.print(table)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
