"""In-memory state containers shared by the bot's components.

Created once at startup and passed to each component. Nothing is persisted;
the backup channel is the only copy that survives a restart.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from .models import AssetType, GuildConfig, VerifiedHolder

logger = logging.getLogger(__name__)


class GuildConfigStore:
    """Per-guild tracked policies, kept in insertion order."""

    def __init__(self) -> None:
        self._configs: Dict[int, List[GuildConfig]] = {}

    def add(self, config: GuildConfig) -> None:
        self._configs.setdefault(config.guild_id, []).append(config)
        logger.info(
            "guild_config_added guild=%s policy=%s setup=%s",
            config.guild_id, config.policy_key, config.setup_id,
        )

    def for_guild(self, guild_id: int) -> List[GuildConfig]:
        return list(self._configs.get(guild_id, []))

    def nft_configs(self, guild_id: int) -> List[GuildConfig]:
        return [c for c in self._configs.get(guild_id, []) if c.asset_type is AssetType.NFT]

    def find_by_setup(self, guild_id: int, setup_id: str) -> Optional[GuildConfig]:
        for config in self._configs.get(guild_id, []):
            if config.setup_id == setup_id:
                return config
        return None

    def guild_ids(self) -> List[int]:
        return [guild_id for guild_id, configs in self._configs.items() if configs]

    def backup_channel_ids(self, guild_id: int) -> List[int]:
        """Distinct backup channels for a guild, first-configured first."""
        seen: Dict[int, None] = {}
        for config in self._configs.get(guild_id, []):
            if config.backup_channel_id:
                seen.setdefault(config.backup_channel_id, None)
        return list(seen)

    def has_configs(self, guild_id: int) -> bool:
        return bool(self._configs.get(guild_id))


class HolderRegistry:
    """Verified holders keyed by Discord user id."""

    def __init__(self) -> None:
        self._holders: Dict[int, VerifiedHolder] = {}

    def put(self, holder: VerifiedHolder) -> None:
        """Create or overwrite the record for ``holder.identity``."""
        self._holders[holder.identity] = holder

    def get(self, identity: int) -> Optional[VerifiedHolder]:
        return self._holders.get(identity)

    def __iter__(self) -> Iterator[VerifiedHolder]:
        return iter(list(self._holders.values()))

    def __len__(self) -> int:
        return len(self._holders)

    def __contains__(self, identity: object) -> bool:
        return identity in self._holders
