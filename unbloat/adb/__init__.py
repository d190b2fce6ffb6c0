"""ADB module initialization."""

from .device import ADBDevice, ADBError, DeviceInfo, check_adb_available, get_device_by_serial, list_devices
from .executor import CommandExecutor, split_sequences
from .package import PackageStateReader, parse_package_list

__all__ = [
    # device
    "ADBDevice",
    "ADBError",
    "DeviceInfo",
    "check_adb_available",
    "get_device_by_serial",
    "list_devices",
    # executor
    "CommandExecutor",
    "split_sequences",
    # package
    "PackageStateReader",
    "parse_package_list",
]
