"""Reconcile a package state snapshot against live device state."""

from typing import List, Mapping, Tuple

from ..config import DeviceSettings
from ..errors import SnapshotNotFoundError
from ..packages.models import Action, Device, PackageState
from ..packages.transitions import PackageCommand, build, select_scope
from ..util.logging import get_logger
from .snapshot import DeviceSnapshot, UserSnapshot

logger = get_logger(__name__)

# Packages missing from the live listing are assumed never modified
DEFAULT_LIVE_STATE = PackageState.ENABLED

Change = Tuple[str, PackageState, PackageState]


class RestoreReconciler:
    """Computes the commands that bring a device back to a snapshot."""

    def pending_changes(
        self,
        snapshot: DeviceSnapshot,
        target_user_id: int,
        live_listing: Mapping[str, PackageState],
    ) -> List[Change]:
        """List ``(package, live state, recorded state)`` for packages that differ.

        Raises:
            SnapshotNotFoundError: If the user is not part of the snapshot
        """
        changes = []
        for record in self._user(snapshot, target_user_id).packages:
            live_state = live_listing.get(record.name, DEFAULT_LIVE_STATE)
            if live_state != record.state:
                changes.append((record.name, live_state, record.state))
        return changes

    def plan(
        self,
        snapshot: DeviceSnapshot,
        target_user_id: int,
        live_listing: Mapping[str, PackageState],
        device: Device,
        settings: DeviceSettings,
    ) -> List[PackageCommand]:
        """Build the restore plan for one recorded user.

        Packages are visited in snapshot order; each one whose live state
        differs from the recorded state contributes its transition commands,
        fanned out to every user of the device.

        Args:
            snapshot: Snapshot to restore
            target_user_id: Recorded user whose package states are replayed
            live_listing: Current package states of that user, keyed by name
            device: Target device
            settings: Target device settings

        Returns:
            Ordered commands; empty when the device already matches

        Raises:
            SnapshotNotFoundError: If the user is not part of the snapshot
        """
        scope = select_scope(Action.RESTORE, None, device, settings)
        commands: List[PackageCommand] = []
        changed = 0

        for name, live_state, recorded_state in self.pending_changes(
            snapshot, target_user_id, live_listing
        ):
            package_commands = build(
                current=live_state,
                desired=recorded_state,
                api_level=device.api_level,
                package_name=name,
                scope=scope,
            )
            if package_commands:
                changed += 1
                logger.debug(f"Restore {name}: {live_state} -> {recorded_state}")
            commands.extend(package_commands)

        logger.info(
            f"Restore plan for user {target_user_id}: {changed} packages, {len(commands)} commands"
        )
        return commands

    @staticmethod
    def _user(snapshot: DeviceSnapshot, user_id: int) -> UserSnapshot:
        try:
            return snapshot.user(user_id)
        except KeyError as e:
            raise SnapshotNotFoundError(
                f"User {user_id} is not recorded in the backup of {snapshot.device_id}"
            ) from e
