"""Error types shared across unbloat."""


class UnbloatError(Exception):
    """Base class for all unbloat errors."""
    pass


class InvalidTransitionError(UnbloatError):
    """Requested state transition is invalid or unreachable on the device tier."""
    pass


class BackupError(UnbloatError):
    """Backup capture or storage error."""
    pass


class BackupIOError(BackupError):
    """Backup directory or file could not be created, written or read."""
    pass


class SnapshotParseError(BackupError):
    """Snapshot content does not match the expected schema."""
    pass


class SnapshotNotFoundError(BackupError):
    """No backup selected, or the referenced snapshot (or user) is missing."""
    pass
