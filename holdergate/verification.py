"""Pending wallet verifications and the polling step that resolves them."""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional

from .challenge import ChallengeGenerator
from .chain import TransactionObserver
from .config import LOOKUP_TIMEOUT, VERIFICATION_TIMEOUT
from .errors import InvalidAddress
from .models import AttemptState, VerificationAttempt, VerifiedHolder
from .store import HolderRegistry

logger = logging.getLogger(__name__)

ADDRESS_PREFIX = "addr1"

OnVerified = Callable[[int, int], Awaitable[object]]


def validate_address(address: str) -> str:
    address = (address or "").strip()
    if not address.startswith(ADDRESS_PREFIX):
        raise InvalidAddress(address)
    return address


class VerificationQueue:
    """One in-flight attempt per user, polled until matched or expired.

    ``process`` is meant to run on a fixed cadence. Each pending attempt is
    checked in its own task with a bounded wait, so a slow lookup for one
    address never holds up the rest.
    """

    def __init__(
        self,
        observer: TransactionObserver,
        holders: HolderRegistry,
        generator: Optional[ChallengeGenerator] = None,
        on_verified: Optional[OnVerified] = None,
        timeout: float = VERIFICATION_TIMEOUT,
        lookup_timeout: float = LOOKUP_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.observer = observer
        self.holders = holders
        self.generator = generator or ChallengeGenerator()
        self.on_verified = on_verified
        self.timeout = timeout
        self.lookup_timeout = lookup_timeout
        self._clock = clock
        self._attempts: Dict[int, VerificationAttempt] = {}

    def start(self, identity: int, address: str, guild_id: int) -> VerificationAttempt:
        """Open an attempt for ``identity``, replacing any earlier one."""
        address = validate_address(address)
        attempt = VerificationAttempt(
            identity=identity,
            address=address,
            challenge_amount=self.generator.generate(),
            created_at=self._clock(),
            guild_id=guild_id,
        )
        if identity in self._attempts:
            logger.info("verification_replaced user=%s", identity)
        self._attempts[identity] = attempt
        logger.info(
            "verification_started user=%s address=%s amount=%s guild=%s",
            identity, address, attempt.challenge_amount, guild_id,
        )
        return attempt

    def pending(self, identity: int) -> Optional[VerificationAttempt]:
        return self._attempts.get(identity)

    def __len__(self) -> int:
        return len(self._attempts)

    async def process(self) -> List[VerificationAttempt]:
        """Run one polling tick. Returns attempts that finished during it."""
        now = self._clock()
        finished: List[VerificationAttempt] = []
        to_check: List[VerificationAttempt] = []

        for identity, attempt in list(self._attempts.items()):
            if now - attempt.created_at >= self.timeout:
                attempt.state = AttemptState.EXPIRED
                del self._attempts[identity]
                finished.append(attempt)
                logger.info("verification_expired user=%s", identity)
            else:
                to_check.append(attempt)

        if not to_check:
            return finished

        results = await asyncio.gather(
            *(self._check(attempt) for attempt in to_check),
            return_exceptions=True,
        )
        for attempt, result in zip(to_check, results):
            if isinstance(result, BaseException):
                logger.error(
                    "verification_check_failed user=%s err=%r", attempt.identity, result,
                )
            elif result:
                finished.append(attempt)
        return finished

    async def _check(self, attempt: VerificationAttempt) -> bool:
        observed = await self._observe(attempt)
        if observed is None or observed != attempt.challenge_amount:
            logger.debug(
                "verification_no_match user=%s expected=%s observed=%s",
                attempt.identity, attempt.challenge_amount, observed,
            )
            return False

        # The user may have restarted /verify while the lookup was in flight.
        if self._attempts.get(attempt.identity) is not attempt:
            return False

        attempt.state = AttemptState.MATCHED
        del self._attempts[attempt.identity]
        self.holders.put(
            VerifiedHolder(
                identity=attempt.identity,
                address=attempt.address,
                last_reconciled_at=self._clock(),
            )
        )
        logger.info(
            "verification_matched user=%s amount=%s", attempt.identity, attempt.challenge_amount,
        )

        if self.on_verified is not None:
            try:
                await self.on_verified(attempt.identity, attempt.guild_id)
            except Exception:
                logger.exception("post_verification_update_failed user=%s", attempt.identity)
        return True

    async def _observe(self, attempt: VerificationAttempt) -> Optional[Decimal]:
        try:
            return await asyncio.wait_for(
                self.observer.observe_self_transfer(attempt.address),
                timeout=self.lookup_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "verification_lookup_timeout user=%s address=%s",
                attempt.identity, attempt.address,
            )
        except Exception:
            logger.exception(
                "verification_lookup_error user=%s address=%s",
                attempt.identity, attempt.address,
            )
        return None
