"""Backup and restore operations exposed to the application layer.

These never raise for backup errors: failures come back as an
:class:`OperationResult` carrying a human-readable message, and the caller
decides how to present it.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, Iterable, List, Mapping, Optional, TypeVar

from ..config import DeviceSettings
from ..errors import BackupError
from ..packages.models import Device, PackageListing, PackageState, User
from ..packages.transitions import PackageCommand
from ..util.logging import get_logger
from .restore import RestoreReconciler
from .snapshot import capture
from .storage import BackupStore, Identifier, list_available_backups

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of an application-level operation."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "OperationResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "OperationResult[T]":
        return cls(ok=False, error=error)


def backup_phone(
    store: BackupStore,
    users: Iterable[User],
    device_id: str,
    listing: PackageListing,
) -> OperationResult[Path]:
    """Capture and persist the package states of every user.

    On failure no snapshot file is created.
    """
    try:
        snapshot = capture(device_id, users, listing)
        path = store.write(snapshot)
    except BackupError as e:
        logger.error(f"[BACKUP]: {e}")
        return OperationResult.failure(str(e))

    return OperationResult.success(path)


async def backup_phone_async(
    store: BackupStore,
    users: Iterable[User],
    device_id: str,
    listing: PackageListing,
) -> OperationResult[Path]:
    """Run :func:`backup_phone` in a worker thread."""
    return await asyncio.to_thread(backup_phone, store, list(users), device_id, listing)


def list_users_in_backup(store: BackupStore, identifier: Optional[Identifier]) -> List[int]:
    """List the user ids recorded in a backup; empty if it cannot be read."""
    try:
        return store.users_in(identifier)
    except BackupError as e:
        logger.error(f"[BACKUP]: Selected backup file unusable: {e}")
        return []


def restore_backup(
    store: BackupStore,
    identifier: Optional[Identifier],
    target_user_id: Optional[int],
    live_listing: Mapping[str, PackageState],
    device: Device,
    settings: DeviceSettings,
    reconciler: Optional[RestoreReconciler] = None,
) -> OperationResult[List[PackageCommand]]:
    """Compute the commands that restore a backup on a device.

    Args:
        store: Backup store holding the snapshot
        identifier: Selected snapshot (None if nothing is selected)
        target_user_id: Recorded user to restore (None if nothing is selected)
        live_listing: Current package states of that user on the device
        device: Target device
        settings: Target device settings
        reconciler: Reconciler to use (a default one if None)
    """
    if target_user_id is None:
        return OperationResult.failure("[BACKUP]: No user selected")

    reconciler = reconciler or RestoreReconciler()

    try:
        snapshot = store.read(identifier)
        commands = reconciler.plan(snapshot, target_user_id, live_listing, device, settings)
    except BackupError as e:
        logger.error(f"[BACKUP]: {e}")
        return OperationResult.failure(f"[BACKUP]: {e}")

    return OperationResult.success(commands)


def select_backup(settings: DeviceSettings, store: BackupStore, identifier: Optional[Identifier]) -> DeviceSettings:
    """Select a backup and offer the users recorded in it.

    The selected user becomes the first recorded user, or None if the backup
    cannot be read.
    """
    if identifier is None:
        settings.backup.selected = None
        settings.backup.users = []
        settings.backup.selected_user = None
        return settings

    users = list_users_in_backup(store, identifier)
    settings.backup.selected = Path(identifier)
    settings.backup.users = users
    settings.backup.selected_user = users[0] if users else None
    return settings


def refresh_backup_selection(settings: DeviceSettings, store: BackupStore, device: Device) -> DeviceSettings:
    """Fill a device's backup selection from the store.

    Selects the newest backup and the first user recorded in it.
    """
    backups = store.list(device.device_id)
    settings.backup.backups = backups
    return select_backup(settings, store, backups[0] if backups else None)


__all__ = [
    "OperationResult",
    "backup_phone",
    "backup_phone_async",
    "list_available_backups",
    "list_users_in_backup",
    "refresh_backup_selection",
    "select_backup",
    "restore_backup",
]
