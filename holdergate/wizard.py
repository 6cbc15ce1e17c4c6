"""The /setupverify dialogue as a small state machine.

Steps: ``begin`` (command options) -> ``choose_asset_type`` (select menu) ->
``select_tier_role`` once per tier. The GuildConfig is appended as soon as the
asset type resolves to NFT; tier answers then fill it in place.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Callable, Dict, Optional

from .config import SETUP_TIMEOUT
from .errors import InvalidPolicyKey, SetupExpired, UnsupportedAssetType
from .models import AssetType, GuildConfig, PendingSetup, Tier
from .store import GuildConfigStore

logger = logging.getLogger(__name__)

POLICY_KEY_PATTERN = re.compile(r"^[a-f0-9]{56}$")


def validate_policy_key(policy_key: str) -> str:
    if not POLICY_KEY_PATTERN.match(policy_key or ""):
        raise InvalidPolicyKey(policy_key)
    return policy_key


class SetupWizard:
    def __init__(
        self,
        configs: GuildConfigStore,
        timeout: float = SETUP_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.configs = configs
        self.timeout = timeout
        self._clock = clock
        self._pending: Dict[str, PendingSetup] = {}

    def begin(
        self,
        guild_id: int,
        policy_key: str,
        base_role_id: int,
        base_role_name: str,
        backup_channel_id: int,
    ) -> PendingSetup:
        policy_key = validate_policy_key(policy_key)
        pending = PendingSetup(
            setup_id=uuid.uuid4().hex,
            guild_id=guild_id,
            policy_key=policy_key,
            base_role_id=base_role_id,
            base_role_name=base_role_name,
            backup_channel_id=backup_channel_id,
            created_at=self._clock(),
        )
        self._pending[pending.setup_id] = pending
        logger.info(
            "setup_started guild=%s policy=%s base_role=%s setup=%s",
            guild_id, policy_key, base_role_name, pending.setup_id,
        )
        return pending

    def pending(self, setup_id: str) -> Optional[PendingSetup]:
        """The live session for ``setup_id``; expired sessions are dropped."""
        pending = self._pending.get(setup_id)
        if pending is None:
            return None
        if self._expired(pending, self._clock()):
            del self._pending[setup_id]
            logger.info("setup_expired setup=%s", setup_id)
            return None
        return pending

    def choose_asset_type(self, setup_id: str, asset_type: str) -> GuildConfig:
        pending = self.pending(setup_id)
        if pending is None:
            raise SetupExpired(setup_id)

        try:
            chosen = AssetType(asset_type)
        except ValueError:
            raise UnsupportedAssetType(asset_type) from None

        del self._pending[setup_id]
        if chosen is not AssetType.NFT:
            logger.info("setup_abandoned setup=%s asset_type=%s", setup_id, chosen.value)
            raise UnsupportedAssetType(chosen.value)

        config = GuildConfig(
            guild_id=pending.guild_id,
            policy_key=pending.policy_key,
            base_role_id=pending.base_role_id,
            backup_channel_id=pending.backup_channel_id,
            setup_id=setup_id,
            asset_type=AssetType.NFT,
        )
        self.configs.add(config)
        return config

    def select_tier_role(
        self, guild_id: int, setup_id: str, tier: Tier, role_id: Optional[int],
    ) -> GuildConfig:
        """Set (or skip, with ``role_id=None``) one tier's role on the session's config."""
        config = self.configs.find_by_setup(guild_id, setup_id)
        if config is None:
            raise SetupExpired(setup_id)
        config.tier_role_ids[tier] = role_id
        logger.info(
            "setup_tier_set policy=%s tier=%s role=%s",
            config.policy_key, tier.value, role_id if role_id else "skip",
        )
        return config

    def prune(self) -> int:
        """Forget every expired session. Returns how many were dropped."""
        now = self._clock()
        expired = [s for s, pending in self._pending.items() if self._expired(pending, now)]
        for setup_id in expired:
            del self._pending[setup_id]
        if expired:
            logger.info("setup_pruned sessions=%d", len(expired))
        return len(expired)

    def _expired(self, pending: PendingSetup, now: float) -> bool:
        return now - pending.created_at >= self.timeout

    def __len__(self) -> int:
        return len(self._pending)
