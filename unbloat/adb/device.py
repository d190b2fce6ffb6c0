"""ADB device management and communication."""

import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import UnbloatError
from ..packages.models import Device, User
from ..util.logging import get_logger

logger = get_logger(__name__)

# Multi-user support (`pm list users`) appeared in Android 4.2
MULTI_USER_API = 17

_USER_INFO = re.compile(r"UserInfo\{(\d+):")


@dataclass
class DeviceInfo:
    """Information about an Android device."""

    serial: str
    model: str
    brand: str
    android_version: str
    sdk_version: str
    state: str = "device"

    @property
    def display_name(self) -> str:
        """Get a human-readable device name."""
        return f"{self.brand} {self.model} ({self.serial})"

    @property
    def api_level(self) -> int:
        """SDK version as an integer (0 if unknown)."""
        try:
            return int(self.sdk_version)
        except ValueError:
            return 0


class ADBError(UnbloatError):
    """ADB command execution error."""
    pass


class ADBDevice:
    """Represents an ADB-connected Android device."""

    def __init__(self, serial: str, adb_path: str = "adb"):
        self.serial = serial
        self.adb_path = adb_path
        self._device_info: Optional[DeviceInfo] = None

    @retry(
        retry=retry_if_exception_type(ADBError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _run_command(self, command: List[str], timeout: int = 30) -> str:
        """Run an ADB command with retry logic."""
        cmd = [self.adb_path, "-s", self.serial] + command

        try:
            logger.debug(f"Running ADB command: {' '.join(cmd)}")
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=True
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            error_msg = f"ADB command failed: {' '.join(cmd)}\nError: {e.stderr}"
            logger.error(error_msg)
            raise ADBError(error_msg) from e
        except subprocess.TimeoutExpired as e:
            error_msg = f"ADB command timed out: {' '.join(cmd)}"
            logger.error(error_msg)
            raise ADBError(error_msg) from e
        except FileNotFoundError as e:
            raise ADBError("ADB not found. Please install Android platform tools.") from e

    def shell(self, command: str, timeout: int = 30) -> str:
        """Execute a shell command on the device."""
        return self._run_command(["shell", command], timeout=timeout)

    def get_device_info(self) -> DeviceInfo:
        """Get detailed device information."""
        if self._device_info is not None:
            return self._device_info

        try:
            props = {
                "model": self.shell("getprop ro.product.model"),
                "brand": self.shell("getprop ro.product.brand"),
                "android_version": self.shell("getprop ro.build.version.release"),
                "sdk_version": self.shell("getprop ro.build.version.sdk"),
            }
        except ADBError as e:
            logger.error(f"Failed to get device info for {self.serial}: {e}")
            raise

        self._device_info = DeviceInfo(serial=self.serial, state="device", **props)
        logger.info(f"Device info: {self._device_info.display_name} (API {self._device_info.api_level})")
        return self._device_info

    @property
    def api_level(self) -> int:
        return self.get_device_info().api_level

    def list_users(self) -> List[User]:
        """List user profiles; ``index`` follows the device's order."""
        if self.api_level < MULTI_USER_API:
            return [User(id=0, index=0)]

        try:
            output = self.shell("pm list users")
        except ADBError as e:
            logger.warning(f"Could not list users of {self.serial}, assuming user 0: {e}")
            return [User(id=0, index=0)]

        user_ids = [int(match) for match in _USER_INFO.findall(output)]
        if not user_ids:
            return [User(id=0, index=0)]

        return [User(id=user_id, index=i) for i, user_id in enumerate(user_ids)]

    def to_device(self) -> Device:
        """Snapshot the device identity used by the state manager."""
        info = self.get_device_info()
        return Device(
            device_id=self.serial,
            api_level=info.api_level,
            user_list=self.list_users(),
            model=info.model,
        )


def check_adb_available(adb_path: str = "adb") -> bool:
    """Check if ADB is available and working."""
    try:
        result = subprocess.run(
            [adb_path, "version"],
            capture_output=True,
            text=True,
            timeout=10
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return False


def list_devices(adb_path: str = "adb") -> List[ADBDevice]:
    """List all connected ADB devices."""
    if not check_adb_available(adb_path):
        raise ADBError("ADB is not available or not in PATH")

    try:
        result = subprocess.run(
            [adb_path, "devices"],
            capture_output=True,
            text=True,
            timeout=10,
            check=True
        )
    except subprocess.CalledProcessError as e:
        raise ADBError(f"Failed to list devices: {e.stderr}") from e

    devices = []
    lines = result.stdout.strip().split("\n")[1:]  # Skip header

    for line in lines:
        if line.strip():
            parts = line.split("\t")
            if len(parts) >= 2 and parts[1] == "device":
                devices.append(ADBDevice(parts[0], adb_path))

    return devices


def get_device_by_serial(serial: str, adb_path: str = "adb") -> Optional[ADBDevice]:
    """Get a specific device by serial number."""
    for device in list_devices(adb_path):
        if device.serial == serial:
            return device

    return None
