"""Privileged package-manager primitives available per API level."""

from dataclasses import dataclass
from enum import Enum

# Android 6.0 (Marshmallow)
MARSHMALLOW = 23
# Android 5.x (Lollipop)
LOLLIPOP = 21
# Android 4.4 (KitKat)
KITKAT = 19


class Tier(str, Enum):
    """Groups of API levels sharing the same primitives."""

    MODERN = "modern"
    LOLLIPOP = "lollipop"
    KITKAT = "kitkat"
    LEGACY = "legacy"


@dataclass(frozen=True)
class Capabilities:
    """Which state transition verbs exist on a device."""

    api_level: int
    tier: Tier
    supports_disable_user: bool = False
    supports_install_existing: bool = False
    supports_hide: bool = False
    supports_block: bool = False
    supports_clear: bool = False
    supports_per_user: bool = False
    # `pm enable` is accepted on every tier
    supports_enable: bool = True

    @property
    def supports_disable_mode(self) -> bool:
        """Whether packages can be disabled instead of uninstalled."""
        return self.supports_disable_user


def capabilities(api_level: int) -> Capabilities:
    """Return the capability record for an API level."""
    if api_level >= MARSHMALLOW:
        return Capabilities(
            api_level=api_level,
            tier=Tier.MODERN,
            supports_disable_user=True,
            supports_install_existing=True,
            supports_clear=True,
            supports_per_user=True,
        )
    if api_level >= LOLLIPOP:
        return Capabilities(
            api_level=api_level,
            tier=Tier.LOLLIPOP,
            supports_hide=True,
            supports_clear=True,
            supports_per_user=True,
        )
    if api_level >= KITKAT:
        return Capabilities(
            api_level=api_level,
            tier=Tier.KITKAT,
            supports_block=True,
            supports_clear=True,
        )
    # Anything privileged needs root here; only a plain uninstall is possible
    return Capabilities(api_level=api_level, tier=Tier.LEGACY)
