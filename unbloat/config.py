"""Configuration management for unbloat."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from ruamel.yaml import YAML

from .packages.capabilities import LOLLIPOP, capabilities
from .packages.models import Device
from .util.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config/unbloat/config.yaml"


class BackupSelection(BaseModel):
    """Backups available for the current device and what is selected.

    Runtime state only; never written to the configuration file.
    """

    backups: List[Path] = Field(default_factory=list, description="Available snapshots, newest first")
    selected: Optional[Path] = Field(default=None, description="Snapshot chosen for restore")
    users: List[int] = Field(default_factory=list, description="User ids offered for restore")
    selected_user: Optional[int] = Field(default=None, description="User chosen for restore")


class DeviceSettings(BaseModel):
    """Settings that only affect one device."""

    model_config = ConfigDict(validate_assignment=True)

    device_id: str = Field(default="", description="ADB serial of the device")
    multi_user_mode: bool = Field(default=True, description="Affect all users, not only the selected one")
    disable_mode: bool = Field(default=False, description="Disable packages instead of uninstalling them")
    backup: BackupSelection = Field(default_factory=BackupSelection, exclude=True)

    def set_disable_mode(self, toggled: bool, api_level: int) -> bool:
        """Change disable mode if the device supports it.

        Returns:
            True if the setting was changed
        """
        if not capabilities(api_level).supports_disable_mode:
            logger.warning(f"Disable mode is unavailable on API {api_level}")
            return False

        self.disable_mode = toggled
        return True


class UnbloatConfig(BaseModel):
    """Main configuration for unbloat."""

    model_config = ConfigDict(validate_assignment=True)

    cache_root: Path = Field(
        default_factory=lambda: Path.home() / ".cache/unbloat",
        description="Cache directory holding backups"
    )
    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config/unbloat",
        description="Configuration directory"
    )

    adb_path: str = Field(default="adb", description="Path to ADB binary")
    log_level: str = Field(default="INFO", description="Logging level")

    devices: List[DeviceSettings] = Field(default_factory=list, description="Per-device settings")

    @property
    def backup_root(self) -> Path:
        """Root directory of all device backups."""
        return self.cache_root / "backups"

    def settings_for(self, device: Device) -> DeviceSettings:
        """Get stored settings for a device, or the defaults for its API level."""
        for settings in self.devices:
            if settings.device_id == device.device_id:
                return settings.model_copy(deep=True)

        return DeviceSettings(
            device_id=device.device_id,
            multi_user_mode=device.api_level > LOLLIPOP,
            disable_mode=False,
        )

    def update_device(self, settings: DeviceSettings) -> None:
        """Store settings for a device, replacing any previous entry."""
        devices = [d for d in self.devices if d.device_id != settings.device_id]
        devices.append(settings)
        self.devices = devices


def load_config(config_path: Optional[Path] = None) -> UnbloatConfig:
    """Load configuration from file or create default."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        yaml = YAML(typ="safe")
        with open(config_path, "r") as f:
            data = yaml.load(f) or {}
        return UnbloatConfig(**data)

    config = UnbloatConfig()
    save_config(config, config_path)
    return config


def save_config(config: UnbloatConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config_path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.default_flow_style = False

    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(mode="json"), f)
