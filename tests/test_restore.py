"""Tests for restore planning and backup operations."""

import asyncio
import tempfile
from pathlib import Path

import pytest

from unbloat.backup import (
    BackupStore,
    RestoreReconciler,
    backup_phone,
    backup_phone_async,
    list_available_backups,
    list_users_in_backup,
    refresh_backup_selection,
    restore_backup,
    select_backup,
)
from unbloat.backup.snapshot import DeviceSnapshot, PackageRecord, UserSnapshot
from unbloat.config import DeviceSettings
from unbloat.errors import SnapshotNotFoundError
from unbloat.packages import Device, PackageState, User, Verb, build

ENABLED = PackageState.ENABLED
DISABLED = PackageState.DISABLED
UNINSTALLED = PackageState.UNINSTALLED


def make_device(api_level=25):
    return Device(
        device_id="serial123",
        api_level=api_level,
        user_list=[User(0, 0), User(10, 1)],
        model="Pixel",
    )


def make_snapshot(*records, user_id=0):
    return DeviceSnapshot(
        device_id="serial123",
        users=[UserSnapshot(id=user_id, packages=[PackageRecord(name=n, state=s) for n, s in records])],
    )


class TestRestoreReconciler:
    """Test diffing snapshots against live state."""

    def setup_method(self):
        self.reconciler = RestoreReconciler()
        self.device = make_device()
        self.settings = DeviceSettings(device_id="serial123", multi_user_mode=False)

    def test_uninstall_recorded_package(self):
        """Test restoring a package recorded as uninstalled."""
        snapshot = make_snapshot(("com.foo", UNINSTALLED))

        plan = self.reconciler.plan(snapshot, 0, {"com.foo": ENABLED}, self.device, self.settings)

        assert plan == build(ENABLED, UNINSTALLED, 25, "com.foo", [0, 10])
        assert [(c.user_id, c.verb) for c in plan] == [
            (0, Verb.DISABLE_USER),
            (0, Verb.FORCE_STOP),
            (0, Verb.CLEAR),
            (10, Verb.DISABLE_USER),
            (10, Verb.FORCE_STOP),
            (10, Verb.CLEAR),
        ]

    def test_absent_package_defaults_to_enabled(self):
        """Test that packages missing from the live listing count as enabled."""
        snapshot = make_snapshot(("com.foo", DISABLED), ("com.bar", ENABLED))

        plan = self.reconciler.plan(snapshot, 0, {}, self.device, self.settings)

        assert [c.verb for c in plan] == [Verb.DISABLE_USER, Verb.DISABLE_USER]
        assert {c.package for c in plan} == {"com.foo"}

    def test_matching_state_skipped(self):
        """Test that nothing is done when the device already matches."""
        snapshot = make_snapshot(("com.foo", DISABLED), ("com.bar", UNINSTALLED))
        live = {"com.foo": DISABLED, "com.bar": UNINSTALLED}

        assert self.reconciler.plan(snapshot, 0, live, self.device, self.settings) == []

    def test_reinstall_recorded_enabled(self):
        """Test that an enabled record reinstalls an uninstalled package."""
        snapshot = make_snapshot(("com.foo", ENABLED))

        plan = self.reconciler.plan(snapshot, 0, {"com.foo": UNINSTALLED}, self.device, self.settings)

        assert [c.verb for c in plan] == [Verb.INSTALL_EXISTING, Verb.INSTALL_EXISTING]
        assert all(c.state_defining for c in plan)

    @pytest.mark.parametrize("api_level,expected", [
        (22, [Verb.UNHIDE]),
        (19, [Verb.UNBLOCK, Verb.CLEAR]),
    ])
    def test_reinstall_older_tiers(self, api_level, expected):
        """Test reinstall commands on pre-Marshmallow devices."""
        snapshot = make_snapshot(("com.foo", ENABLED))
        device = make_device(api_level)

        plan = self.reconciler.plan(snapshot, 0, {"com.foo": UNINSTALLED}, device, self.settings)

        if api_level >= 21:
            assert [c.verb for c in plan] == expected * 2
        else:
            assert [c.verb for c in plan] == expected

    def test_restore_ignores_multi_user_mode(self):
        """Test that restore plans target every user of the device."""
        snapshot = make_snapshot(("com.foo", DISABLED))

        for multi_user_mode in (True, False):
            settings = DeviceSettings(device_id="serial123", multi_user_mode=multi_user_mode)
            plan = self.reconciler.plan(snapshot, 0, {}, self.device, settings)

            assert [c.user_id for c in plan] == [0, 10]

    def test_snapshot_order_preserved(self):
        """Test that package sequences follow snapshot order."""
        snapshot = make_snapshot(
            ("com.b", DISABLED),
            ("com.a", UNINSTALLED),
            ("com.c", ENABLED),
        )
        live = {"com.a": ENABLED, "com.b": ENABLED, "com.c": DISABLED}
        device = Device(device_id="serial123", api_level=30, user_list=[User(0, 0)])

        plan = self.reconciler.plan(snapshot, 0, live, device, self.settings)

        assert [c.shell for c in plan] == [
            "pm disable-user --user 0 com.b",
            "pm disable-user --user 0 com.a",
            "am force-stop --user 0 com.a",
            "pm clear --user 0 com.a",
            "pm enable --user 0 com.c",
        ]

    def test_target_user_selects_records(self):
        """Test that only the target user's records are replayed."""
        snapshot = DeviceSnapshot(device_id="serial123", users=[
            UserSnapshot(id=0, packages=[PackageRecord(name="com.owner", state=DISABLED)]),
            UserSnapshot(id=10, packages=[PackageRecord(name="com.work", state=DISABLED)]),
        ])

        plan = self.reconciler.plan(snapshot, 10, {}, self.device, self.settings)

        assert {c.package for c in plan} == {"com.work"}

    def test_unknown_target_user(self):
        """Test restoring a user that is not in the snapshot."""
        snapshot = make_snapshot(("com.foo", DISABLED))

        with pytest.raises(SnapshotNotFoundError):
            self.reconciler.plan(snapshot, 99, {}, self.device, self.settings)

    def test_pending_changes(self):
        """Test listing the differing packages."""
        snapshot = make_snapshot(("com.foo", DISABLED), ("com.bar", ENABLED))

        changes = self.reconciler.pending_changes(snapshot, 0, {"com.foo": ENABLED})

        assert changes == [("com.foo", ENABLED, DISABLED)]


class TestBackupOperations:
    """Test the application-level operations."""

    def setup_method(self):
        self.device = make_device(30)
        self.settings = DeviceSettings(device_id="serial123")
        self.listing = [
            {"com.foo": UNINSTALLED, "com.bar": ENABLED},
            {"com.foo": DISABLED},
        ]

    def test_backup_and_restore(self):
        """Test a full backup then restore cycle."""
        with tempfile.TemporaryDirectory() as temp_dir:
            store = BackupStore(Path(temp_dir))

            result = backup_phone(store, self.device.user_list, "serial123", self.listing)

            assert result.ok
            assert result.value.exists()
            assert list_available_backups(store.device_dir("serial123")) == [result.value]
            assert list_users_in_backup(store, result.value) == [0, 10]

            restored = restore_backup(
                store, result.value, 0, {"com.foo": ENABLED, "com.bar": ENABLED},
                self.device, self.settings,
            )

            assert restored.ok
            assert [c.shell for c in restored.value if c.state_defining] == [
                "pm disable-user --user 0 com.foo",
                "pm disable-user --user 10 com.foo",
            ]

    def test_backup_async(self):
        """Test the awaitable backup."""
        with tempfile.TemporaryDirectory() as temp_dir:
            store = BackupStore(Path(temp_dir))

            result = asyncio.run(
                backup_phone_async(store, self.device.user_list, "serial123", self.listing)
            )

            assert result.ok
            assert store.list("serial123") == [result.value]

    def test_backup_failure_writes_nothing(self):
        """Test that a failed capture reports an error and writes no file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            store = BackupStore(Path(temp_dir))
            users = [User(0, 0), User(11, 7)]

            result = backup_phone(store, users, "serial123", self.listing)

            assert not result.ok
            assert "user 11" in result.error
            assert store.list("serial123") == []

    def test_backup_directory_failure(self):
        """Test that directory errors become failed results."""
        with tempfile.TemporaryDirectory() as temp_dir:
            blocker = Path(temp_dir) / "file"
            blocker.write_text("x")
            store = BackupStore(blocker)

            result = backup_phone(store, self.device.user_list, "serial123", self.listing)

            assert not result.ok
            assert result.error

    def test_users_in_unparseable_backup(self):
        """Test that broken backups list no users."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "broken.json"
            path.write_text("{{{")

            assert list_users_in_backup(BackupStore(Path(temp_dir)), path) == []
            assert list_users_in_backup(BackupStore(Path(temp_dir)), None) == []

    def test_restore_without_selection(self):
        """Test restoring with no backup or user selected."""
        store = BackupStore(Path("/nonexistent"))

        no_backup = restore_backup(store, None, 0, {}, self.device, self.settings)
        no_user = restore_backup(store, Path("/nonexistent/x.json"), None, {}, self.device, self.settings)

        assert not no_backup.ok
        assert "No backup selected" in no_backup.error
        assert not no_user.ok

    def test_restore_malformed_backup(self):
        """Test that parse errors are returned, not raised."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "broken.json"
            path.write_text('{"device_id": "abc", "users": 5}')

            result = restore_backup(BackupStore(Path(temp_dir)), path, 0, {}, self.device, self.settings)

            assert not result.ok
            assert result.value is None

    def test_refresh_backup_selection(self):
        """Test selecting the newest backup and the first user."""
        with tempfile.TemporaryDirectory() as temp_dir:
            store = BackupStore(Path(temp_dir))
            backup_phone(store, self.device.user_list, "serial123", self.listing)

            settings = refresh_backup_selection(self.settings, store, self.device)

            assert settings.backup.selected == store.latest("serial123")
            assert settings.backup.users == [0, 10]
            assert settings.backup.selected_user == 0

    def test_refresh_without_backups(self):
        """Test the selection for a device that was never backed up."""
        with tempfile.TemporaryDirectory() as temp_dir:
            settings = refresh_backup_selection(self.settings, BackupStore(Path(temp_dir)), self.device)

            assert settings.backup.backups == []
            assert settings.backup.selected is None

    def test_refresh_offers_recorded_users(self):
        """Test that restore users come from the backup, not the device."""
        with tempfile.TemporaryDirectory() as temp_dir:
            store = BackupStore(Path(temp_dir))
            backup_phone(store, [User(10, 0)], "serial123", [{"com.foo": DISABLED}])

            settings = refresh_backup_selection(self.settings, store, self.device)

            assert settings.backup.users == [10]
            assert settings.backup.selected_user == 10

            result = restore_backup(
                store, settings.backup.selected, settings.backup.selected_user,
                {"com.foo": ENABLED}, self.device, settings,
            )

            assert result.ok
            assert [c.shell for c in result.value if c.state_defining] == [
                "pm disable-user --user 0 com.foo",
                "pm disable-user --user 10 com.foo",
            ]

    def test_select_backup_updates_users(self):
        """Test that choosing another backup refreshes the offered users."""
        with tempfile.TemporaryDirectory() as temp_dir:
            store = BackupStore(Path(temp_dir))
            owner_only = store.write(make_snapshot(("com.foo", DISABLED), user_id=0))
            work_only = store.write(make_snapshot(("com.foo", DISABLED), user_id=11))

            settings = select_backup(self.settings, store, owner_only)
            assert settings.backup.users == [0]

            settings = select_backup(settings, store, work_only)

            assert settings.backup.selected == work_only
            assert settings.backup.users == [11]
            assert settings.backup.selected_user == 11

    def test_select_unreadable_backup(self):
        """Test that an unreadable backup offers no users."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "broken.json"
            path.write_text("{{{")

            settings = select_backup(self.settings, BackupStore(Path(temp_dir)), path)

            assert settings.backup.selected == path
            assert settings.backup.users == []
            assert settings.backup.selected_user is None
