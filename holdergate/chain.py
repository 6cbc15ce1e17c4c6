"""Chain data lookups.

The core only depends on the two protocols below. ``CardanoChainClient`` is
the production implementation: it scrapes the public cardanoscan.io address
page for the latest self-transfer and pool.pm for held assets per policy.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Protocol

import httpx

from .config import HTTP_TIMEOUT

logger = logging.getLogger(__name__)

CARDANOSCAN_URL = "https://cardanoscan.io"
POOL_PM_URL = "https://pool.pm"

_POLICY_PATTERN = re.compile(r'"policy":"([a-f0-9]+)"')


class TransactionObserver(Protocol):
    async def observe_self_transfer(self, address: str) -> Optional[Decimal]:
        """Most recent amount ``address`` sent to itself, or None."""


class HoldingsLookup(Protocol):
    async def asset_counts_by_policy(self, address: str) -> Optional[Dict[str, int]]:
        """Policy id -> asset count for ``address``; None when the lookup failed."""


def parse_self_transfer(html: str, address: str) -> Optional[Decimal]:
    """First amount listed after two occurrences of ``address`` on one line."""
    addr = re.escape(address)
    match = re.search(rf"{addr}.*?{addr}.*?(\d+\.\d{{4}})\s*₳", html)
    if not match:
        return None
    try:
        return Decimal(match.group(1))
    except InvalidOperation:
        return None


def parse_policy_counts(html: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for policy in _POLICY_PATTERN.findall(html):
        counts[policy] = counts.get(policy, 0) + 1
    return counts


class CardanoChainClient:
    """Async HTTP client for the two public explorers."""

    def __init__(self, http: Optional[httpx.AsyncClient] = None) -> None:
        self._http = http or httpx.AsyncClient(
            timeout=HTTP_TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": "holdergate/0.1"},
        )

    # -- Ownership proof --

    async def observe_self_transfer(self, address: str) -> Optional[Decimal]:
        try:
            html = await self._get_text(f"{CARDANOSCAN_URL}/address/{address}")
        except httpx.HTTPError as exc:
            logger.warning("cardanoscan_lookup_failed address=%s err=%s", address, exc)
            return None
        amount = parse_self_transfer(html, address)
        logger.debug(
            "cardanoscan_scraped address=%s bytes=%d amount=%s", address, len(html), amount,
        )
        return amount

    # -- Holdings --

    async def asset_counts_by_policy(self, address: str) -> Optional[Dict[str, int]]:
        try:
            html = await self._get_text(f"{POOL_PM_URL}/{address}")
        except httpx.HTTPError as exc:
            logger.warning("pool_pm_lookup_failed address=%s err=%s", address, exc)
            return None
        counts = parse_policy_counts(html)
        logger.debug(
            "pool_pm_scraped address=%s bytes=%d policies=%d", address, len(html), len(counts),
        )
        return counts

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- Internal --

    async def _get_text(self, url: str) -> str:
        r = await self._http.get(url)
        r.raise_for_status()
        return r.text
