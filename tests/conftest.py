"""Shared fixtures and fakes for the holdergate test suite."""

from decimal import Decimal

import pytest

from holdergate.models import GuildConfig, Tier
from holdergate.store import GuildConfigStore, HolderRegistry

GUILD_ID = 111
USER_ID = 222
POLICY = "a" * 56
BASE_ROLE = 1000
TIER_ROLES = {
    Tier.MYTHICAL: 1006,
    Tier.LEGENDARY: 1005,
    Tier.EPIC: 1004,
    Tier.RARE: 1003,
    Tier.UNCOMMON: 1002,
    Tier.COMMON: 1001,
}


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeObserver:
    """Self-transfer lookups keyed by address; an Exception value is raised."""

    def __init__(self):
        self.amounts = {}
        self.calls = []

    async def observe_self_transfer(self, address):
        self.calls.append(address)
        value = self.amounts.get(address)
        if isinstance(value, Exception):
            raise value
        return value


class FakeHoldings:
    def __init__(self):
        self.counts = {}
        self.calls = []

    async def asset_counts_by_policy(self, address):
        self.calls.append(address)
        value = self.counts.get(address, {})
        if isinstance(value, Exception):
            raise value
        return value


class FakeMembers:
    """Role membership per (guild, user). Role ids in ``failing`` raise on mutation."""

    def __init__(self):
        self.roles = {}
        self.failing = set()
        self.mutations = []

    async def member_role_ids(self, guild_id, identity):
        roles = self.roles.get((guild_id, identity))
        return None if roles is None else set(roles)

    async def add_role(self, guild_id, identity, role_id):
        if role_id in self.failing:
            raise RuntimeError(f"missing permissions for role {role_id}")
        self.mutations.append(("add", role_id))
        self.roles.setdefault((guild_id, identity), set()).add(role_id)

    async def remove_role(self, guild_id, identity, role_id):
        if role_id in self.failing:
            raise RuntimeError(f"missing permissions for role {role_id}")
        self.mutations.append(("remove", role_id))
        self.roles.setdefault((guild_id, identity), set()).discard(role_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def observer():
    return FakeObserver()


@pytest.fixture
def holdings():
    return FakeHoldings()


@pytest.fixture
def members():
    return FakeMembers()


@pytest.fixture
def holders():
    return HolderRegistry()


@pytest.fixture
def configs():
    return GuildConfigStore()


@pytest.fixture
def nft_config(configs):
    """A fully configured NFT policy for GUILD_ID, already in the store."""
    config = GuildConfig(
        guild_id=GUILD_ID,
        policy_key=POLICY,
        base_role_id=BASE_ROLE,
        backup_channel_id=555,
        setup_id="setup-1",
        tier_role_ids=dict(TIER_ROLES),
    )
    configs.add(config)
    return config


@pytest.fixture
def amount():
    return Decimal("1.2345")
