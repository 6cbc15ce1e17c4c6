"""Map an NFT count to the highest configured tier."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from .models import Tier

# Highest first; iteration order matters.
TIER_FLOORS: Dict[Tier, int] = {
    Tier.MYTHICAL: 50,
    Tier.LEGENDARY: 36,
    Tier.EPIC: 21,
    Tier.RARE: 11,
    Tier.UNCOMMON: 4,
    Tier.COMMON: 1,
}

TIER_ORDER = list(TIER_FLOORS)


def tier_for(asset_count: int, tier_role_ids: Mapping[Tier, Optional[int]]) -> Optional[Tier]:
    """Return the highest tier whose floor is met and whose role is configured.

    Tiers without a role fall through to the next lower one. Zero assets never
    earn a tier.
    """
    if asset_count <= 0:
        return None
    for tier, floor in TIER_FLOORS.items():
        if asset_count >= floor and tier_role_ids.get(tier):
            return tier
    return None


def floor_label(tier: Tier) -> str:
    """Bracket text such as ``"11-20"`` or ``"50+"``."""
    index = TIER_ORDER.index(tier)
    floor = TIER_FLOORS[tier]
    if index == 0:
        return f"{floor}+"
    ceiling = TIER_FLOORS[TIER_ORDER[index - 1]] - 1
    return f"{floor}-{ceiling}"


def next_tier(tier: Optional[Tier]) -> Optional[Tier]:
    """Tier after ``tier`` in setup order; the first tier when ``tier`` is None."""
    if tier is None:
        return TIER_ORDER[0]
    index = TIER_ORDER.index(tier)
    if index + 1 < len(TIER_ORDER):
        return TIER_ORDER[index + 1]
    return None
