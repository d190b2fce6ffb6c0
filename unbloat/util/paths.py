"""Utility functions for path operations."""

import re
from pathlib import Path

# Serials are alphanumeric, ``host:port`` for network devices, or mDNS
# service names; only the separators need replacing.
_UNSAFE_SERIAL_CHARS = re.compile(r"[/\\:\s]")


def ensure_directory(path: Path) -> Path:
    """Ensure directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_filename(device_id: str) -> str:
    """Turn a device serial into a directory name."""
    name = _UNSAFE_SERIAL_CHARS.sub("_", device_id).strip(" .")
    return name or "unknown"
