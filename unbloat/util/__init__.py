"""Utility module initialization."""

from .logging import get_logger, setup_logging
from .paths import ensure_directory, safe_filename
from .timeutil import format_stem, parse_snapshot_stem, snapshot_stamp

__all__ = [
    # logging
    "get_logger",
    "setup_logging",
    # paths
    "ensure_directory",
    "safe_filename",
    # timeutil
    "format_stem",
    "parse_snapshot_stem",
    "snapshot_stamp",
]
