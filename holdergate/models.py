"""Core data model. Everything here lives in process memory only."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set

RESTORED_ADDRESS = "restored"


class AssetType(str, Enum):
    NFT = "nft"
    TOKEN = "token"


class Tier(str, Enum):
    """Holding-count brackets, highest first."""

    MYTHICAL = "mythical"
    LEGENDARY = "legendary"
    EPIC = "epic"
    RARE = "rare"
    UNCOMMON = "uncommon"
    COMMON = "common"


class AttemptState(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    EXPIRED = "expired"


@dataclass
class GuildConfig:
    """One tracked policy in one guild."""

    guild_id: int
    policy_key: str
    base_role_id: int
    backup_channel_id: int
    setup_id: str
    asset_type: AssetType = AssetType.NFT
    # Tier -> role id; None means the admin skipped that tier.
    tier_role_ids: Dict[Tier, Optional[int]] = field(default_factory=dict)

    def configured_tier_roles(self) -> Dict[Tier, int]:
        return {tier: role_id for tier, role_id in self.tier_role_ids.items() if role_id}


@dataclass
class PendingSetup:
    setup_id: str
    guild_id: int
    policy_key: str
    base_role_id: int
    base_role_name: str
    backup_channel_id: int
    created_at: float


@dataclass
class VerificationAttempt:
    identity: int
    address: str
    challenge_amount: Decimal
    created_at: float
    guild_id: int
    state: AttemptState = AttemptState.PENDING


@dataclass
class VerifiedHolder:
    identity: int
    address: str
    # Roles this bot believes it granted; not ground truth.
    assigned_role_ids: Set[int] = field(default_factory=set)
    last_reconciled_at: Optional[float] = None
    # Role names read back from a backup; carried into the next dump.
    restored_role_names: List[str] = field(default_factory=list)

    @property
    def is_restored(self) -> bool:
        return self.address == RESTORED_ADDRESS
