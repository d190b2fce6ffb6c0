"""Backup module initialization."""

from .operations import (
    OperationResult,
    backup_phone,
    backup_phone_async,
    list_users_in_backup,
    refresh_backup_selection,
    restore_backup,
    select_backup,
)
from .restore import RestoreReconciler
from .snapshot import DeviceSnapshot, PackageRecord, UserSnapshot, capture
from .storage import BackupStore, list_available_backups

__all__ = [
    # snapshot
    "DeviceSnapshot",
    "PackageRecord",
    "UserSnapshot",
    "capture",
    # storage
    "BackupStore",
    "list_available_backups",
    # restore
    "RestoreReconciler",
    # operations
    "OperationResult",
    "backup_phone",
    "backup_phone_async",
    "list_users_in_backup",
    "refresh_backup_selection",
    "select_backup",
    "restore_backup",
]
