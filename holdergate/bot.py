"""Discord front end: slash commands, setup menus and the background timers.

Everything stateful lives in the core components; this module only turns
interactions into core calls and core results into ephemeral replies.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Dict, List, Optional, Set

import discord
from discord import app_commands
from discord.ext import commands, tasks

from . import backup
from .challenge import ChallengeGenerator
from .chain import CardanoChainClient
from .config import (
    BACKUP_INTERVAL,
    RECONCILE_INTERVAL,
    SETUP_TIMEOUT,
    VERIFICATION_POLL_INTERVAL,
    VERIFICATION_TIMEOUT,
    Settings,
)
from .errors import SetupExpired, UnsupportedAssetType, ValidationError
from .models import AssetType, Tier
from .ratelimit import RateLimiter
from .reconciler import RoleReconciler
from .store import GuildConfigStore, HolderRegistry
from .tiers import TIER_FLOORS, floor_label, next_tier
from .verification import VerificationQueue, validate_address
from .wizard import SetupWizard

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An error occurred while processing your request."
ADMIN_ONLY = "❌ Only administrators can use this command."
SKIP_VALUE = "skip"
# Discord allows 25 options per select; one is taken by "skip".
MAX_ROLE_OPTIONS = 24


# ---------------------------------------------------------------------------
# Live role membership
# ---------------------------------------------------------------------------

class DiscordMemberRoles:
    """Reads and edits member roles through the Discord API."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def member_role_ids(self, guild_id: int, identity: int) -> Optional[Set[int]]:
        try:
            member = await self._member(guild_id, identity)
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            logger.warning("member_fetch_failed guild=%s user=%s err=%s", guild_id, identity, exc)
            return None
        return {role.id for role in member.roles}

    async def add_role(self, guild_id: int, identity: int, role_id: int) -> None:
        member = await self._member(guild_id, identity)
        await member.add_roles(discord.Object(id=role_id), reason="Wallet holdings verified")

    async def remove_role(self, guild_id: int, identity: int, role_id: int) -> None:
        member = await self._member(guild_id, identity)
        await member.remove_roles(discord.Object(id=role_id), reason="Wallet holdings changed")

    async def _member(self, guild_id: int, identity: int) -> discord.Member:
        guild = self.client.get_guild(guild_id) or await self.client.fetch_guild(guild_id)
        return guild.get_member(identity) or await guild.fetch_member(identity)


# ---------------------------------------------------------------------------
# Setup menus
# ---------------------------------------------------------------------------

class AssetTypeSelect(discord.ui.Select):
    def __init__(self, bot: HolderGateBot, setup_id: str) -> None:
        super().__init__(
            custom_id=f"asset_type:{setup_id}",
            placeholder="Select asset type",
            options=[
                discord.SelectOption(
                    label="NFT",
                    value=AssetType.NFT.value,
                    description="Non-fungible tokens tracked via pool.pm",
                ),
                discord.SelectOption(
                    label="Token",
                    value=AssetType.TOKEN.value,
                    description="Fungible tokens tracked via CardanoScan",
                ),
            ],
        )
        self.bot = bot
        self.setup_id = setup_id

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            config = self.bot.wizard.choose_asset_type(self.setup_id, self.values[0])
        except SetupExpired as exc:
            await interaction.response.send_message(f"❌ {exc}", ephemeral=True)
            return
        except UnsupportedAssetType:
            await interaction.response.send_message(
                "🚧 **Token tracking coming soon!**\n\nPlease use NFT option for now.",
                ephemeral=True,
            )
            return

        brackets = "\n".join(
            f"**{floor_label(tier)} NFTs** = {tier.value.title()}" for tier in TIER_FLOORS
        )
        first = next_tier(None)
        await interaction.response.send_message(
            f"🎯 **NFT Rarity Setup for Policy ID:** {config.policy_key}\n\n"
            "Select roles for each rarity tier (you can skip tiers you don't need):\n\n"
            f"{brackets}",
            view=TierRoleView(self.bot, self.setup_id, first, _role_options(interaction.guild)),
            ephemeral=True,
        )


class AssetTypeView(discord.ui.View):
    def __init__(self, bot: HolderGateBot, setup_id: str) -> None:
        super().__init__(timeout=SETUP_TIMEOUT)
        self.add_item(AssetTypeSelect(bot, setup_id))


class TierRoleSelect(discord.ui.Select):
    def __init__(
        self, bot: HolderGateBot, setup_id: str, tier: Tier, roles: List[discord.Role],
    ) -> None:
        options = [
            discord.SelectOption(
                label="Skip this tier",
                value=SKIP_VALUE,
                description=f"Don't assign a role for {tier.value} tier",
            )
        ]
        options.extend(
            discord.SelectOption(
                label=role.name[:100],
                value=str(role.id),
                description=f"Assign {role.name} for {tier.value} tier"[:100],
            )
            for role in roles
        )
        super().__init__(
            custom_id=f"tier:{tier.value}:{setup_id}",
            placeholder=f"Select {tier.value} role (optional)",
            options=options,
        )
        self.bot = bot
        self.setup_id = setup_id
        self.tier = tier
        self.roles = roles

    async def callback(self, interaction: discord.Interaction) -> None:
        selected = self.values[0]
        role_id = None if selected == SKIP_VALUE else int(selected)
        try:
            config = self.bot.wizard.select_tier_role(
                interaction.guild_id, self.setup_id, self.tier, role_id,
            )
        except SetupExpired as exc:
            await interaction.response.send_message(f"❌ {exc}", ephemeral=True)
            return

        status = "skipped" if role_id is None else "configured"
        following = next_tier(self.tier)
        if following is None:
            configured = len(config.configured_tier_roles())
            await interaction.response.send_message(
                f"✅ {self.tier.value} tier {status}\n\n"
                f"Setup complete for policy {config.policy_key} "
                f"({configured} tier role(s) configured).",
                ephemeral=True,
            )
            return

        await interaction.response.send_message(
            f"✅ {self.tier.value} tier {status}",
            view=TierRoleView(self.bot, self.setup_id, following, self.roles),
            ephemeral=True,
        )


class TierRoleView(discord.ui.View):
    def __init__(
        self, bot: HolderGateBot, setup_id: str, tier: Tier, roles: List[discord.Role],
    ) -> None:
        super().__init__(timeout=SETUP_TIMEOUT)
        self.add_item(TierRoleSelect(bot, setup_id, tier, roles))


def _role_options(guild: Optional[discord.Guild]) -> List[discord.Role]:
    if guild is None:
        return []
    roles = [role for role in reversed(guild.roles) if not role.is_default()]
    return roles[:MAX_ROLE_OPTIONS]


# ---------------------------------------------------------------------------
# Bot
# ---------------------------------------------------------------------------

class HolderGateBot(commands.Bot):
    """Wallet verification bot.

    Owns the in-memory state containers and wires the core components
    together. Three task loops drive the verification poll, the
    reconciliation sweep and the backup dump.
    """

    def __init__(
        self,
        settings: Settings,
        chain: Optional[CardanoChainClient] = None,
    ) -> None:
        intents = discord.Intents.none()
        intents.guilds = True
        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            activity=discord.Activity(
                type=discord.ActivityType.watching, name="wallet verifications",
            ),
            status=discord.Status.online,
        )
        self.settings = settings
        self.chain = chain or CardanoChainClient()

        self.configs = GuildConfigStore()
        self.holders = HolderRegistry()
        self.rate_limiter = RateLimiter()
        self.wizard = SetupWizard(self.configs)
        self.members = DiscordMemberRoles(self)
        self.reconciler = RoleReconciler(self.configs, self.holders, self.chain, self.members)
        self.verifications = VerificationQueue(
            self.chain,
            self.holders,
            generator=ChallengeGenerator(),
            on_verified=self.reconciler.reconcile,
        )
        self._setup_commands()

    # -- Commands --

    def _setup_commands(self) -> None:
        @self.tree.command(name="setupverify", description="Setup wallet verification for policy ID")
        @app_commands.guild_only()
        @app_commands.default_permissions(administrator=True)
        @app_commands.describe(
            policy_id="Cardano policy ID to track",
            base_role="Role for holding any NFT from this policy",
            backup_channel="Channel for backup data",
        )
        async def setup_command(
            interaction: discord.Interaction,
            policy_id: str,
            base_role: discord.Role,
            backup_channel: discord.TextChannel,
        ) -> None:
            await self._handle_setup(interaction, policy_id, base_role, backup_channel)

        @self.tree.command(name="verify", description="Verify wallet ownership")
        @app_commands.guild_only()
        @app_commands.describe(wallet_address="Your Cardano wallet address (addr1...)")
        async def verify_command(interaction: discord.Interaction, wallet_address: str) -> None:
            await self._handle_verify(interaction, wallet_address)

        @self.tree.command(
            name="restoreverify",
            description="Restore verification data from backup channel (Admin only)",
        )
        @app_commands.guild_only()
        @app_commands.default_permissions(administrator=True)
        @app_commands.describe(backup_channel="Channel containing backup data")
        async def restore_command(
            interaction: discord.Interaction, backup_channel: discord.TextChannel,
        ) -> None:
            await self._handle_restore(interaction, backup_channel)

        @self.tree.error
        async def on_app_command_error(
            interaction: discord.Interaction, error: app_commands.AppCommandError,
        ) -> None:
            logger.error("interaction_error command=%s", interaction.command, exc_info=error)
            if not interaction.response.is_done():
                await interaction.response.send_message(GENERIC_ERROR, ephemeral=True)

    async def _handle_setup(
        self,
        interaction: discord.Interaction,
        policy_id: str,
        base_role: discord.Role,
        backup_channel: discord.TextChannel,
    ) -> None:
        if not _is_admin(interaction):
            await interaction.response.send_message(ADMIN_ONLY, ephemeral=True)
            return
        try:
            pending = self.wizard.begin(
                guild_id=interaction.guild_id,
                policy_key=policy_id,
                base_role_id=base_role.id,
                base_role_name=base_role.name,
                backup_channel_id=backup_channel.id,
            )
        except ValidationError as exc:
            await interaction.response.send_message(f"❌ {exc}", ephemeral=True)
            return

        await interaction.response.send_message(
            "Select the asset type to track:",
            view=AssetTypeView(self, pending.setup_id),
            ephemeral=True,
        )

    async def _handle_verify(self, interaction: discord.Interaction, wallet_address: str) -> None:
        try:
            wallet_address = validate_address(wallet_address)
        except ValidationError as exc:
            await interaction.response.send_message(f"❌ {exc}", ephemeral=True)
            return

        if not self.rate_limiter.try_acquire(interaction.user.id):
            minutes = max(1, math.ceil(self.rate_limiter.retry_after(interaction.user.id) / 60))
            await interaction.response.send_message(
                f"⏰ Rate limit exceeded. Please wait {minutes} minute(s) before trying again.",
                ephemeral=True,
            )
            return

        if not self.configs.has_configs(interaction.guild_id):
            await interaction.response.send_message(
                "❌ No verification configured. Ask an admin to run /setupverify first.",
                ephemeral=True,
            )
            return

        attempt = self.verifications.start(
            interaction.user.id, wallet_address, interaction.guild_id,
        )
        minutes = VERIFICATION_TIMEOUT // 60
        await interaction.response.send_message(
            "🔐 **Wallet Verification**\n\n"
            f"Send exactly **{attempt.challenge_amount} ADA** from your wallet to itself "
            "(same address).\n\n"
            f"**Your Address:** {attempt.address}\n"
            f"**Amount:** {attempt.challenge_amount} ADA\n\n"
            f"I'll monitor for this transaction for {minutes} minutes.",
            ephemeral=True,
        )

    async def _handle_restore(
        self, interaction: discord.Interaction, backup_channel: discord.TextChannel,
    ) -> None:
        if not _is_admin(interaction):
            await interaction.response.send_message(ADMIN_ONLY, ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True)
        try:
            channel = self.get_channel(backup_channel.id) or await self.fetch_channel(
                backup_channel.id
            )
            contents = [
                message.content
                async for message in channel.history(limit=backup.RESTORE_SCAN_LIMIT)
            ]
        except discord.HTTPException:
            logger.exception("restore_fetch_failed channel=%s", backup_channel.id)
            await interaction.followup.send("❌ Error restoring data. Check logs.", ephemeral=True)
            return

        messages = backup.select_backup(contents)
        if not messages:
            await interaction.followup.send(
                "❌ No backup data found in selected channel.", ephemeral=True,
            )
            return

        entries = backup.decode_backup(messages)
        restored = backup.restore_holders(self.holders, entries)
        await interaction.followup.send(
            f"✅ Restored verification data for {restored} users from backup.", ephemeral=True,
        )

    # -- Lifecycle --

    async def setup_hook(self) -> None:
        if self.settings.sync_guild_id:
            guild = discord.Object(id=self.settings.sync_guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
        else:
            await self.tree.sync()
        logger.info("slash_commands_synced guild=%s", self.settings.sync_guild_id or "global")

        self.verification_poll.start()
        self.reconcile_sweep.start()
        self.backup_dump.start()

    async def on_ready(self) -> None:
        logger.info("logged_in user=%s guilds=%d", self.user, len(self.guilds))

    async def close(self) -> None:
        for loop in (self.verification_poll, self.reconcile_sweep, self.backup_dump):
            loop.cancel()
        await self.chain.aclose()
        await super().close()

    # -- Timers --

    # An exception escaping a task loop stops it for good, hence the catch-alls.

    @tasks.loop(seconds=VERIFICATION_POLL_INTERVAL)
    async def verification_poll(self) -> None:
        if not len(self.verifications):
            return
        try:
            await self.verifications.process()
        except Exception:
            logger.exception("verification_poll_failed")

    @tasks.loop(seconds=RECONCILE_INTERVAL)
    async def reconcile_sweep(self) -> None:
        try:
            await self.reconciler.sweep()
        except Exception:
            logger.exception("reconcile_sweep_failed")
        self.rate_limiter.prune()
        self.wizard.prune()

    @tasks.loop(seconds=BACKUP_INTERVAL)
    async def backup_dump(self) -> None:
        try:
            await dump_backups(self, self.configs, self.holders)
        except Exception:
            logger.exception("backup_dump_failed")

    @verification_poll.before_loop
    async def _before_verification_poll(self) -> None:
        await self.wait_until_ready()

    # The sweep and the dump first fire one full interval after startup.

    @reconcile_sweep.before_loop
    async def _before_reconcile_sweep(self) -> None:
        await self.wait_until_ready()
        await asyncio.sleep(RECONCILE_INTERVAL)

    @backup_dump.before_loop
    async def _before_backup_dump(self) -> None:
        await self.wait_until_ready()
        await asyncio.sleep(BACKUP_INTERVAL)


# ---------------------------------------------------------------------------
# Backups
# ---------------------------------------------------------------------------

async def dump_backups(
    client: discord.Client, configs: GuildConfigStore, holders: HolderRegistry,
) -> int:
    """Post a backup to every configured backup channel. Returns messages sent."""
    if not len(holders):
        # Nothing verified since startup; an empty dump would hide the last real one.
        logger.info("backup_skipped_no_holders")
        return 0

    sent = 0
    for guild_id in configs.guild_ids():
        guild = client.get_guild(guild_id)
        if guild is None:
            logger.warning("backup_guild_unavailable guild=%s", guild_id)
            continue
        role_names: Dict[int, str] = {role.id: role.name for role in guild.roles}
        messages = backup.encode_backup(backup.holder_role_names(holders, role_names))

        for channel_id in configs.backup_channel_ids(guild_id):
            try:
                channel = client.get_channel(channel_id) or await client.fetch_channel(channel_id)
                for content in messages:
                    await channel.send(content)
                    sent += 1
            except discord.HTTPException:
                logger.exception("backup_channel_failed guild=%s channel=%s", guild_id, channel_id)
    logger.info("backup_dumped messages=%d", sent)
    return sent


def _is_admin(interaction: discord.Interaction) -> bool:
    permissions = getattr(interaction.user, "guild_permissions", None)
    return bool(permissions and permissions.administrator)
