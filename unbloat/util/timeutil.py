"""Utility functions for snapshot timestamps."""

import re
from datetime import datetime
from typing import Optional, Tuple

# Snapshot file stems: minute timestamp plus an optional collision counter
SNAPSHOT_STAMP_FORMAT = "%Y-%m-%d-%H-%M"
_SNAPSHOT_STEM = re.compile(r"^(\d{4}-\d{2}-\d{2}-\d{2}-\d{2})(?:-(\d+))?$")


def snapshot_stamp(timestamp: Optional[datetime] = None) -> str:
    """Format a local timestamp at minute granularity."""
    if timestamp is None:
        timestamp = datetime.now()
    return timestamp.strftime(SNAPSHOT_STAMP_FORMAT)


def parse_snapshot_stem(stem: str) -> Optional[Tuple[datetime, int]]:
    """Split a snapshot file stem into its timestamp and collision counter.

    Returns None for names that are not snapshot stems.
    """
    match = _SNAPSHOT_STEM.match(stem)
    if not match:
        return None

    try:
        stamp = datetime.strptime(match.group(1), SNAPSHOT_STAMP_FORMAT)
    except ValueError:
        return None

    return stamp, int(match.group(2) or 0)


def format_stem(stem: str) -> str:
    """Format a snapshot stem for display."""
    parsed = parse_snapshot_stem(stem)
    if parsed is None:
        return stem

    stamp, counter = parsed
    text = stamp.strftime("%Y-%m-%d %H:%M")
    if counter:
        text += f" (#{counter + 1})"
    return text
