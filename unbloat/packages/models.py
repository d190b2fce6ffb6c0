"""Package, user and device models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Sequence


class PackageState(str, Enum):
    """Lifecycle state of a package for one user."""

    ENABLED = "Enabled"
    DISABLED = "Disabled"
    UNINSTALLED = "Uninstalled"
    # Query wildcard, never held by a package
    ALL = "All"

    @classmethod
    def concrete(cls) -> List["PackageState"]:
        """States a package can actually be in."""
        return [cls.ENABLED, cls.DISABLED, cls.UNINSTALLED]

    def __str__(self) -> str:
        return self.value


class Action(str, Enum):
    """Origin of a state change request, used to pick the user scope."""

    MISC = "misc"
    RESTORE = "restore"


@dataclass(frozen=True)
class Package:
    """A package and its state within one user profile."""

    name: str
    state: PackageState

    def __post_init__(self) -> None:
        if self.state == PackageState.ALL:
            raise ValueError(f"Package {self.name} cannot hold the 'All' state")


@dataclass(frozen=True)
class User:
    """An on-device user profile.

    ``index`` addresses the in-memory per-device listing and is never persisted.
    """

    id: int
    index: int = 0


@dataclass
class Device:
    """A connected device as seen by the state manager."""

    device_id: str
    api_level: int
    user_list: List[User] = field(default_factory=lambda: [User(0, 0)])
    model: str = ""

    @property
    def user_ids(self) -> List[int]:
        """Ordered user ids known for the device."""
        return [user.id for user in self.user_list]

    @property
    def display_name(self) -> str:
        """Get a human-readable device name."""
        if self.model:
            return f"{self.model} ({self.device_id})"
        return self.device_id


# One name-keyed mapping per user, addressed by ``User.index``
PackageListing = Sequence[Mapping[str, PackageState]]
