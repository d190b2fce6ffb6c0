"""Live package state listing over ADB."""

from typing import Dict, Iterable, List, Set

from ..packages.capabilities import capabilities
from ..packages.models import PackageState, User
from ..util.logging import get_logger
from .device import ADBDevice, ADBError

logger = get_logger(__name__)


def parse_package_list(output: str) -> Set[str]:
    """Parse ``pm list packages`` output into package names."""
    packages = set()
    for line in output.split("\n"):
        line = line.strip()
        if line.startswith("package:"):
            packages.add(line[len("package:"):].strip())
    return packages


class PackageStateReader:
    """Reads the state of system packages on a device."""

    def __init__(self, device: ADBDevice):
        self.device = device

    def _list(self, flags: str, user_id: int, per_user: bool) -> Set[str]:
        cmd = f"pm list packages -s {flags}"
        if per_user:
            cmd += f" --user {user_id}"
        return parse_package_list(self.device.shell(cmd))

    def list_package_states(self, user_id: int, api_level: int) -> Dict[str, PackageState]:
        """Get the state of every system package of a user.

        Packages reported neither enabled nor disabled but still known to the
        package manager are uninstalled for that user.

        Raises:
            ADBError: If the device could not be queried
        """
        per_user = capabilities(api_level).supports_per_user

        try:
            enabled = self._list("-e", user_id, per_user)
            disabled = self._list("-d", user_id, per_user)
            known = self._list("-u", user_id, per_user)
        except ADBError as e:
            logger.error(f"Failed to list packages for user {user_id}: {e}")
            raise

        states: Dict[str, PackageState] = {}
        for name in sorted(known | enabled | disabled):
            if name in disabled:
                states[name] = PackageState.DISABLED
            elif name in enabled:
                states[name] = PackageState.ENABLED
            else:
                states[name] = PackageState.UNINSTALLED

        logger.debug(f"Found {len(states)} system packages for user {user_id}")
        return states

    def read_listing(self, users: Iterable[User], api_level: int) -> List[Dict[str, PackageState]]:
        """Read the per-user listing, addressed by ``User.index``."""
        users = list(users)
        size = max((user.index for user in users), default=-1) + 1
        listing: List[Dict[str, PackageState]] = [{} for _ in range(size)]

        for user in users:
            listing[user.index] = self.list_package_states(user.id, api_level)

        return listing
