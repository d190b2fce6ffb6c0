"""Package state transition command builder.

Transitions are looked up by the ``(current, desired)`` pair, then by the
device tier from :func:`~unbloat.packages.capabilities.capabilities`. Each
entry is the ordered verb list for one user: the first verb flips the persisted
state, the others are best-effort cleanup.

Below API 21 there are no per-user primitives, so the verb list is emitted once
without ``--user``. Otherwise it is repeated for every user in scope.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple, Union

from ..errors import InvalidTransitionError
from ..util.logging import get_logger
from .capabilities import Capabilities, Tier, capabilities
from .models import Action, Device, PackageState, User

if TYPE_CHECKING:
    from ..config import DeviceSettings

logger = get_logger(__name__)

Scope = Union[int, User, Sequence[Union[int, User]]]


class Verb(str, Enum):
    """Shell primitives used to change package state."""

    DISABLE_USER = "pm disable-user"
    FORCE_STOP = "am force-stop"
    CLEAR = "pm clear"
    ENABLE = "pm enable"
    INSTALL_EXISTING = "cmd package install-existing"
    HIDE = "pm hide"
    UNHIDE = "pm unhide"
    BLOCK = "pm block"
    UNBLOCK = "pm unblock"
    UNINSTALL = "pm uninstall"


@dataclass(frozen=True)
class PackageCommand:
    """A fully-formed shell command for one package (and optionally one user)."""

    verb: Verb
    package: str
    user_id: Optional[int] = None
    state_defining: bool = False

    @property
    def shell(self) -> str:
        """Command line to run through ``adb shell``."""
        if self.user_id is None:
            return f"{self.verb.value} {self.package}"
        return f"{self.verb.value} --user {self.user_id} {self.package}"

    def __str__(self) -> str:
        return self.shell


_REMOVE: Dict[Tier, Tuple[Verb, ...]] = {
    Tier.MODERN: (Verb.DISABLE_USER, Verb.FORCE_STOP, Verb.CLEAR),
    Tier.LOLLIPOP: (Verb.HIDE, Verb.CLEAR),
    Tier.KITKAT: (Verb.BLOCK, Verb.CLEAR),
    Tier.LEGACY: (Verb.UNINSTALL,),
}

# Same primitives as removal, without cleanup since the package stays present
_DISABLE: Dict[Tier, Tuple[Verb, ...]] = {
    Tier.MODERN: (Verb.DISABLE_USER,),
    Tier.LOLLIPOP: (Verb.HIDE,),
    Tier.KITKAT: (Verb.BLOCK,),
}

_ENABLE: Dict[Tier, Tuple[Verb, ...]] = {tier: (Verb.ENABLE,) for tier in Tier}

# Not reachable on LEGACY: the interface must not offer it
_REINSTALL: Dict[Tier, Tuple[Verb, ...]] = {
    Tier.MODERN: (Verb.INSTALL_EXISTING,),
    Tier.LOLLIPOP: (Verb.UNHIDE,),
    Tier.KITKAT: (Verb.UNBLOCK, Verb.CLEAR),
}

TRANSITIONS: Dict[Tuple[PackageState, PackageState], Dict[Tier, Tuple[Verb, ...]]] = {
    (PackageState.ENABLED, PackageState.UNINSTALLED): _REMOVE,
    (PackageState.DISABLED, PackageState.UNINSTALLED): _REMOVE,
    (PackageState.ENABLED, PackageState.DISABLED): _DISABLE,
    (PackageState.DISABLED, PackageState.ENABLED): _ENABLE,
    (PackageState.UNINSTALLED, PackageState.ENABLED): _REINSTALL,
    (PackageState.UNINSTALLED, PackageState.DISABLED): _REINSTALL,
}


def resolve_verbs(
    current: PackageState, desired: PackageState, caps: Capabilities
) -> Tuple[Verb, ...]:
    """Return the ordered verbs moving a package from ``current`` to ``desired``.

    Raises:
        InvalidTransitionError: If either state is ``All`` or the pair has no
            entry for the device tier.
    """
    if PackageState.ALL in (current, desired):
        raise InvalidTransitionError(f"'All' is not a valid state ({current} -> {desired})")

    if current == desired:
        return ()

    verbs = TRANSITIONS.get((current, desired), {}).get(caps.tier)
    if verbs is None:
        raise InvalidTransitionError(
            f"{current} -> {desired} is unreachable on API {caps.api_level}"
        )
    return verbs


def scope_user_ids(scope: Scope) -> List[int]:
    """Normalize a scope to an ordered list of unique user ids."""
    if isinstance(scope, (int, User)):
        scope = [scope]

    user_ids: List[int] = []
    for entry in scope:
        user_id = entry.id if isinstance(entry, User) else int(entry)
        if user_id not in user_ids:
            user_ids.append(user_id)
    return user_ids


def build(
    current: PackageState,
    desired: PackageState,
    api_level: int,
    package_name: str,
    scope: Scope,
) -> List[PackageCommand]:
    """Build the ordered commands moving ``package_name`` to ``desired``.

    Invalid transitions (``All``, or unreachable on the tier) are logged and
    yield an empty list.
    """
    caps = capabilities(api_level)

    try:
        verbs = resolve_verbs(current, desired, caps)
    except InvalidTransitionError as e:
        logger.warning(f"Skipping {package_name}: {e}")
        return []

    if not verbs:
        return []

    if not caps.supports_per_user:
        return _sequence(verbs, package_name, None)

    commands: List[PackageCommand] = []
    for user_id in scope_user_ids(scope):
        commands.extend(_sequence(verbs, package_name, user_id))
    return commands


def _sequence(
    verbs: Sequence[Verb], package_name: str, user_id: Optional[int]
) -> List[PackageCommand]:
    return [
        PackageCommand(verb=verb, package=package_name, user_id=user_id, state_defining=(i == 0))
        for i, verb in enumerate(verbs)
    ]


def select_scope(
    action: Action,
    selected_user: Optional[User],
    device: Device,
    settings: "DeviceSettings",
) -> List[User]:
    """Pick the users a state change applies to.

    Interactive actions affect the selected user unless multi-user mode is on.
    Restores always affect every user of the device.
    """
    if action == Action.RESTORE or settings.multi_user_mode:
        return list(device.user_list)

    if selected_user is None:
        return list(device.user_list[:1])
    return [selected_user]


def change_package_state(
    package_name: str,
    current: PackageState,
    desired: PackageState,
    selected_user: Optional[User],
    device: Device,
    settings: "DeviceSettings",
    action: Action = Action.MISC,
) -> List[PackageCommand]:
    """Build the commands for a state change requested from the interface."""
    scope = select_scope(action, selected_user, device, settings)
    return build(current, desired, device.api_level, package_name, scope)
