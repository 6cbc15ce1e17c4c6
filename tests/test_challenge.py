"""Tests for holdergate.challenge.ChallengeGenerator."""

import random
from decimal import Decimal

from holdergate.challenge import ChallengeGenerator


class TestGenerate:
    def test_range_and_precision(self):
        generator = ChallengeGenerator(rng=random.Random(7))
        for _ in range(2000):
            value = generator.generate()
            assert Decimal("1.0100") <= value < Decimal("1.7000")
            assert value.as_tuple().exponent == -4

    def test_bounds_are_reachable(self):
        class Edge:
            def __init__(self, pick):
                self.pick = pick

            def randint(self, a, b):
                return a if self.pick == "low" else b

        assert ChallengeGenerator(rng=Edge("low")).generate() == Decimal("1.0100")
        assert str(ChallengeGenerator(rng=Edge("low")).generate()) == "1.0100"
        assert ChallengeGenerator(rng=Edge("high")).generate() == Decimal("1.6999")

    def test_seeded_generators_repeat(self):
        first = ChallengeGenerator(rng=random.Random(42))
        second = ChallengeGenerator(rng=random.Random(42))
        assert [first.generate() for _ in range(5)] == [second.generate() for _ in range(5)]
