"""Tests for holdergate.tiers."""

import pytest

from holdergate.models import Tier
from holdergate.tiers import floor_label, next_tier, tier_for

ALL_CONFIGURED = {tier: index + 1 for index, tier in enumerate(Tier)}


class TestTierFor:
    @pytest.mark.parametrize(
        "count, expected",
        [
            (0, None),
            (1, Tier.COMMON),
            (3, Tier.COMMON),
            (4, Tier.UNCOMMON),
            (11, Tier.RARE),
            (21, Tier.EPIC),
            (36, Tier.LEGENDARY),
            (49, Tier.LEGENDARY),
            (50, Tier.MYTHICAL),
            (1000, Tier.MYTHICAL),
        ],
    )
    def test_all_configured(self, count, expected):
        assert tier_for(count, ALL_CONFIGURED) == expected

    def test_unconfigured_tier_falls_through(self):
        roles = dict(ALL_CONFIGURED)
        roles[Tier.RARE] = None
        assert tier_for(12, roles) == Tier.UNCOMMON

    def test_missing_tier_falls_through(self):
        roles = {Tier.COMMON: 5}
        assert tier_for(60, roles) == Tier.COMMON

    def test_nothing_configured(self):
        assert tier_for(60, {}) is None
        assert tier_for(60, {tier: None for tier in Tier}) is None

    def test_below_lowest_configured_floor(self):
        assert tier_for(3, {Tier.RARE: 9}) is None

    def test_negative_count(self):
        assert tier_for(-1, ALL_CONFIGURED) is None


class TestLabels:
    def test_floor_labels(self):
        assert floor_label(Tier.MYTHICAL) == "50+"
        assert floor_label(Tier.LEGENDARY) == "36-49"
        assert floor_label(Tier.RARE) == "11-20"
        assert floor_label(Tier.COMMON) == "1-3"

    def test_next_tier_walks_all_six(self):
        order = []
        tier = next_tier(None)
        while tier is not None:
            order.append(tier)
            tier = next_tier(tier)
        assert order == list(Tier)
