"""Backup storage layout and snapshot persistence."""

import os
import typing as t
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ..errors import BackupIOError, SnapshotNotFoundError, SnapshotParseError
from ..util.logging import get_logger
from ..util.paths import ensure_directory, safe_filename
from ..util.timeutil import parse_snapshot_stem, snapshot_stamp
from .snapshot import DeviceSnapshot

logger = get_logger(__name__)

SNAPSHOT_SUFFIX = ".json"

# Upper bound on same-minute captures for one device
MAX_COLLISIONS = 10000

Identifier = t.Union[str, Path]


def _snapshot_sort_key(path: Path) -> t.Tuple[datetime, int, str]:
    parsed = parse_snapshot_stem(path.stem)
    if parsed is None:
        return datetime.min, 0, path.name
    return parsed[0], parsed[1], path.name


def list_available_backups(device_dir: Path) -> t.List[Path]:
    """List snapshot files in a device backup directory.

    Args:
        device_dir: Device backup directory

    Returns:
        Snapshot paths sorted newest first; empty if the directory is missing
        or unreadable
    """
    try:
        entries = [
            entry for entry in Path(device_dir).iterdir()
            if entry.is_file()
            and entry.suffix == SNAPSHOT_SUFFIX
            and not entry.name.startswith(".")
        ]
    except OSError as e:
        logger.debug(f"No backups in {device_dir}: {e}")
        return []

    return sorted(entries, key=_snapshot_sort_key, reverse=True)


class BackupStore:
    """Reads and writes package state snapshots under one backup root.

    Layout: ``<backup_root>/<device_id>/<YYYY-MM-DD-HH-MM>[-N].json``. Snapshot
    files are never modified once written.
    """

    def __init__(self, backup_root: Path) -> None:
        """Initialize backup store.

        Args:
            backup_root: Directory holding one sub-directory per device
        """
        self.backup_root = Path(backup_root)

    def device_dir(self, device_id: str) -> Path:
        """Get backup directory for a specific device."""
        return self.backup_root / safe_filename(device_id)

    def write(self, snapshot: DeviceSnapshot, timestamp: t.Optional[datetime] = None) -> Path:
        """Persist a snapshot.

        Two writes within the same minute get distinct ``-N`` suffixed names.

        Args:
            snapshot: Snapshot to store
            timestamp: Capture time (uses current local time if None)

        Returns:
            Path of the new snapshot file

        Raises:
            BackupIOError: If the directory or file could not be written; no
                snapshot file is left behind in that case
        """
        device_dir = self.device_dir(snapshot.device_id)

        try:
            ensure_directory(device_dir)
        except OSError as e:
            logger.error(f"[BACKUP]: could not create backup dir {device_dir}: {e}")
            raise BackupIOError(f"Could not create backup directory {device_dir}: {e}") from e

        payload = snapshot.to_json()
        path = self._reserve(device_dir, snapshot_stamp(timestamp))
        tmp_path = path.with_name(f".{path.name}.tmp")

        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        except BaseException as e:
            self._discard(tmp_path, path)
            if isinstance(e, OSError):
                logger.error(f"[BACKUP]: could not write {path}: {e}")
                raise BackupIOError(f"Could not write backup {path}: {e}") from e
            raise

        logger.info(f"Saved backup of {snapshot.device_id} to {path}")
        return path

    def _reserve(self, device_dir: Path, stamp: str) -> Path:
        """Claim an unused snapshot file name with an exclusive create."""
        for counter in range(MAX_COLLISIONS):
            stem = stamp if counter == 0 else f"{stamp}-{counter}"
            path = device_dir / f"{stem}{SNAPSHOT_SUFFIX}"
            try:
                with open(path, "x"):
                    pass
                return path
            except FileExistsError:
                continue
            except OSError as e:
                logger.error(f"[BACKUP]: could not create {path}: {e}")
                raise BackupIOError(f"Could not create backup file {path}: {e}") from e

        raise BackupIOError(f"Too many backups for {stamp} in {device_dir}")

    @staticmethod
    def _discard(*paths: Path) -> None:
        """Remove the files of an unfinished write."""
        for leftover in paths:
            try:
                leftover.unlink()
            except FileNotFoundError:
                pass

    def list(self, device_id: str) -> t.List[Path]:
        """List snapshots of a device, newest first."""
        return list_available_backups(self.device_dir(device_id))

    def latest(self, device_id: str) -> t.Optional[Path]:
        """Get the most recent snapshot of a device."""
        backups = self.list(device_id)
        return backups[0] if backups else None

    def resolve(self, device_id: str, identifier: Identifier) -> Path:
        """Turn a snapshot name or path into a path.

        Bare names such as ``2024-05-01-10-30`` are looked up in the device
        directory.
        """
        path = Path(identifier)
        if path.exists() or path.parent != Path("."):
            return path

        name = path.name if path.suffix == SNAPSHOT_SUFFIX else f"{path.name}{SNAPSHOT_SUFFIX}"
        return self.device_dir(device_id) / name

    def read(self, identifier: t.Optional[Identifier]) -> DeviceSnapshot:
        """Load a snapshot.

        Raises:
            SnapshotNotFoundError: If no snapshot is selected or the file is missing
            SnapshotParseError: If the content is not a valid snapshot
            BackupIOError: If the file could not be read
        """
        if identifier is None:
            raise SnapshotNotFoundError("No backup selected")

        path = Path(identifier)

        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise SnapshotNotFoundError(f"Backup not found: {path}") from e
        except UnicodeDecodeError as e:
            raise SnapshotParseError(f"Backup {path} is not valid UTF-8 text") from e
        except OSError as e:
            raise BackupIOError(f"Could not read backup {path}: {e}") from e

        try:
            return DeviceSnapshot.model_validate_json(data)
        except ValidationError as e:
            raise SnapshotParseError(f"Unable to parse backup file {path}: {e}") from e

    def users_in(self, identifier: t.Optional[Identifier]) -> t.List[int]:
        """List the user ids recorded in a snapshot."""
        return self.read(identifier).user_ids
