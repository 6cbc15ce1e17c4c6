"""Bring a holder's Discord roles in line with what their wallet holds."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Set

from .chain import HoldingsLookup
from .config import RECONCILE_TIMEOUT
from .models import GuildConfig, VerifiedHolder
from .store import GuildConfigStore, HolderRegistry
from .tiers import tier_for

logger = logging.getLogger(__name__)

class RoleAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"


class MemberRoles(Protocol):
    """Live role membership on the chat platform."""

    async def member_role_ids(self, guild_id: int, identity: int) -> Optional[Set[int]]:
        """Current role ids of the member, or None if the member can't be fetched."""

    async def add_role(self, guild_id: int, identity: int, role_id: int) -> None:
        ...

    async def remove_role(self, guild_id: int, identity: int, role_id: int) -> None:
        ...


@dataclass(frozen=True)
class RoleMutation:
    action: RoleAction
    guild_id: int
    identity: int
    role_id: int
    policy_key: str


class RoleReconciler:
    """Computes and applies the minimal role diff per tracked policy.

    Live membership from ``MemberRoles`` is the baseline for every diff, so
    roles changed by hand are corrected on the next pass. A failed mutation
    is logged and skipped; the rest still run.
    """

    def __init__(
        self,
        configs: GuildConfigStore,
        holders: HolderRegistry,
        holdings: HoldingsLookup,
        members: MemberRoles,
        reconcile_timeout: float = RECONCILE_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.configs = configs
        self.holders = holders
        self.holdings = holdings
        self.members = members
        self.reconcile_timeout = reconcile_timeout
        self._clock = clock

    async def reconcile(
        self,
        identity: int,
        guild_id: int,
        counts: Optional[Dict[str, int]] = None,
    ) -> List[RoleMutation]:
        """Reconcile one holder in one guild. Returns the mutations applied."""
        holder = self.holders.get(identity)
        if holder is None:
            logger.info("reconcile_skipped_unverified user=%s", identity)
            return []
        if holder.is_restored:
            logger.debug("reconcile_skipped_restored user=%s", identity)
            return []

        configs = self.configs.nft_configs(guild_id)
        if not configs:
            return []

        if counts is None:
            counts = await self.holdings.asset_counts_by_policy(holder.address)
        if not counts:
            # An empty page is indistinguishable from a failed scrape.
            logger.warning(
                "reconcile_holdings_unavailable user=%s address=%s", identity, holder.address,
            )
            return []

        current = await self.members.member_role_ids(guild_id, identity)
        if current is None:
            logger.info("reconcile_member_missing user=%s guild=%s", identity, guild_id)
            return []
        current = set(current)

        applied: List[RoleMutation] = []
        for config in configs:
            count = counts.get(config.policy_key, 0)
            logger.debug(
                "reconcile_policy user=%s policy=%s count=%d", identity, config.policy_key, count,
            )
            for mutation in self._diff(config, identity, count, current):
                if await self._apply(mutation, holder, current):
                    applied.append(mutation)

        holder.last_reconciled_at = self._clock()
        if applied:
            logger.info(
                "reconcile_applied user=%s guild=%s mutations=%d", identity, guild_id, len(applied),
            )
        return applied

    async def sweep(self) -> int:
        """Reconcile every holder in every configured guild. Returns mutation count."""
        guild_ids = self.configs.guild_ids()
        holders = list(self.holders)
        logger.info("sweep_started holders=%d guilds=%d", len(holders), len(guild_ids))

        total = 0
        for holder in holders:
            if holder.is_restored or not guild_ids:
                continue
            try:
                total += await asyncio.wait_for(
                    self._reconcile_everywhere(holder, guild_ids),
                    timeout=self.reconcile_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("sweep_holder_timeout user=%s", holder.identity)
            except Exception:
                logger.exception("sweep_holder_failed user=%s", holder.identity)

        logger.info("sweep_finished mutations=%d", total)
        return total

    async def _reconcile_everywhere(self, holder: VerifiedHolder, guild_ids: List[int]) -> int:
        counts = await self.holdings.asset_counts_by_policy(holder.address)
        if not counts:
            logger.warning(
                "reconcile_holdings_unavailable user=%s address=%s",
                holder.identity, holder.address,
            )
            return 0
        total = 0
        for guild_id in guild_ids:
            total += len(await self.reconcile(holder.identity, guild_id, counts=counts))
        return total

    @staticmethod
    def _diff(
        config: GuildConfig, identity: int, count: int, current: Set[int],
    ) -> List[RoleMutation]:
        has_any = count > 0
        desired_tier = tier_for(count, config.tier_role_ids)
        desired_role = config.tier_role_ids.get(desired_tier) if desired_tier else None

        def mutation(action: RoleAction, role_id: int) -> RoleMutation:
            return RoleMutation(action, config.guild_id, identity, role_id, config.policy_key)

        planned: List[RoleMutation] = []
        base = config.base_role_id
        if has_any and base not in current:
            planned.append(mutation(RoleAction.ADD, base))
        elif not has_any and base in current:
            planned.append(mutation(RoleAction.REMOVE, base))

        for role_id in config.configured_tier_roles().values():
            if role_id in current and (not has_any or role_id != desired_role):
                planned.append(mutation(RoleAction.REMOVE, role_id))

        if has_any and desired_role and desired_role not in current:
            planned.append(mutation(RoleAction.ADD, desired_role))
        return planned

    async def _apply(
        self, mutation: RoleMutation, holder: VerifiedHolder, current: Set[int],
    ) -> bool:
        try:
            if mutation.action is RoleAction.ADD:
                await self.members.add_role(mutation.guild_id, mutation.identity, mutation.role_id)
            else:
                await self.members.remove_role(mutation.guild_id, mutation.identity, mutation.role_id)
        except Exception:
            logger.exception(
                "role_mutation_failed action=%s user=%s role=%s",
                mutation.action.value, mutation.identity, mutation.role_id,
            )
            return False

        if mutation.action is RoleAction.ADD:
            current.add(mutation.role_id)
            holder.assigned_role_ids.add(mutation.role_id)
        else:
            current.discard(mutation.role_id)
            holder.assigned_role_ids.discard(mutation.role_id)
        logger.info(
            "role_%s user=%s role=%s policy=%s",
            "added" if mutation.action is RoleAction.ADD else "removed",
            mutation.identity, mutation.role_id, mutation.policy_key,
        )
        return True
