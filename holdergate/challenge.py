"""Challenge amounts for the self-transfer ownership proof."""

from __future__ import annotations

import random
from decimal import Decimal
from typing import Optional

# Bounds in ten-thousandths of an ADA: 1.0100 .. 1.6999 inclusive.
_LOW = 10100
_HIGH = 16999
_EXPONENT = -4


class ChallengeGenerator:
    """Draws amounts with exactly four fraction digits.

    Amounts are not checked against other pending challenges; two users can
    draw the same value.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.SystemRandom()

    def generate(self) -> Decimal:
        units = self._rng.randint(_LOW, _HIGH)
        return Decimal(units).scaleb(_EXPONENT)
