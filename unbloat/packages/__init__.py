"""Package state module initialization."""

from .capabilities import Capabilities, Tier, capabilities
from .models import Action, Device, Package, PackageListing, PackageState, User
from .transitions import (
    PackageCommand,
    Verb,
    build,
    change_package_state,
    resolve_verbs,
    scope_user_ids,
    select_scope,
)

__all__ = [
    # models
    "Action",
    "Device",
    "Package",
    "PackageListing",
    "PackageState",
    "User",
    # capabilities
    "Capabilities",
    "Tier",
    "capabilities",
    # transitions
    "PackageCommand",
    "Verb",
    "build",
    "change_package_state",
    "resolve_verbs",
    "scope_user_ids",
    "select_scope",
]
