"""Package state snapshot models and capture."""

from typing import Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import BackupError
from ..packages.models import Package, PackageListing, PackageState, User
from ..util.logging import get_logger

logger = get_logger(__name__)


class PackageRecord(BaseModel):
    """Recorded state of one package."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Package name")
    state: PackageState = Field(description="Package state at capture time")

    @field_validator("state")
    @classmethod
    def _concrete_state(cls, value: PackageState) -> PackageState:
        if value == PackageState.ALL:
            raise ValueError("'All' is a query wildcard, not a package state")
        return value

    def to_package(self) -> Package:
        return Package(self.name, self.state)


class UserSnapshot(BaseModel):
    """Recorded packages of one user profile."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=0, le=65535, description="Device user id")
    packages: Tuple[PackageRecord, ...] = Field(default=(), description="Packages in listing order")

    @field_validator("packages")
    @classmethod
    def _unique_names(cls, value: Tuple[PackageRecord, ...]) -> Tuple[PackageRecord, ...]:
        seen = set()
        for record in value:
            if record.name in seen:
                raise ValueError(f"Duplicate package {record.name}")
            seen.add(record.name)
        return value


class DeviceSnapshot(BaseModel):
    """Point-in-time package states of every user of a device."""

    model_config = ConfigDict(frozen=True)

    device_id: str = Field(description="ADB serial of the captured device")
    users: Tuple[UserSnapshot, ...] = Field(default=(), description="Captured users")

    @field_validator("users")
    @classmethod
    def _unique_users(cls, value: Tuple[UserSnapshot, ...]) -> Tuple[UserSnapshot, ...]:
        ids = [user.id for user in value]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate user id")
        return value

    @property
    def user_ids(self) -> List[int]:
        return [user.id for user in self.users]

    def user(self, user_id: int) -> UserSnapshot:
        """Find a user snapshot by id.

        Raises:
            KeyError: If the user was not captured
        """
        for user in self.users:
            if user.id == user_id:
                return user
        raise KeyError(user_id)

    def to_json(self) -> str:
        """Serialize to the canonical on-disk form."""
        return self.model_dump_json(indent=2)


def capture(device_id: str, users: Iterable[User], listing: PackageListing) -> DeviceSnapshot:
    """Copy the state of every package of every user.

    No state filter is applied so restore can later move packages in any
    direction.

    Raises:
        BackupError: If a user's listing is missing
    """
    user_snapshots = []

    for user in users:
        if not 0 <= user.index < len(listing):
            raise BackupError(f"No package listing for user {user.id} (index {user.index})")

        try:
            records = tuple(
                PackageRecord(name=name, state=state)
                for name, state in listing[user.index].items()
            )
            user_snapshots.append(UserSnapshot(id=user.id, packages=records))
        except ValueError as e:
            raise BackupError(f"Invalid package listing for user {user.id}: {e}") from e

    try:
        snapshot = DeviceSnapshot(device_id=device_id, users=tuple(user_snapshots))
    except ValueError as e:
        raise BackupError(f"Invalid snapshot for {device_id}: {e}") from e

    logger.debug(
        f"Captured {sum(len(u.packages) for u in snapshot.users)} packages "
        f"for {len(snapshot.users)} users of {device_id}"
    )
    return snapshot
