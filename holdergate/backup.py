"""Plain-text backups of verified holders, posted to a Discord channel.

A backup looks like::

    📋 **Wallet Verification Backup**
    <@123456789012345678>: Holder, Rare
    <@223456789012345678>: Holder

Only the user -> role-name association survives a round trip. Restored
holders come back with a placeholder address and keep their role names, so
the next dump writes them out again until they verify.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from .models import RESTORED_ADDRESS, VerifiedHolder
from .store import HolderRegistry

logger = logging.getLogger(__name__)

MARKER_ICON = "📋"
MARKER_TITLE = "Wallet Verification Backup"
HEADER = f"{MARKER_ICON} **{MARKER_TITLE}**"
EMPTY_BACKUP = f"{HEADER} - No verified users with roles."

MESSAGE_LIMIT = 2000
RESTORE_SCAN_LIMIT = 50

_PART_PATTERN = re.compile(r"\(part (\d+)/(\d+)\)")
_LINE_PATTERN = re.compile(r"<@!?(\d+)>:[ \t]*([^\n]*)")
# Room for " (part NN/NN)" on every chunk header.
_PART_RESERVE = len(" (part 99/99)")


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def holder_role_names(
    holders: Iterable[VerifiedHolder], role_names: Mapping[int, str],
) -> Dict[int, List[str]]:
    """Role names per holder, limited to roles that ``role_names`` knows about.

    Restored holders have no role ids yet, so the names from their backup line
    are written back unchanged.
    """
    entries: Dict[int, List[str]] = {}
    for holder in holders:
        if holder.is_restored:
            if holder.restored_role_names:
                entries[holder.identity] = list(holder.restored_role_names)
            continue
        names = sorted(role_names[r] for r in holder.assigned_role_ids if r in role_names)
        if names:
            entries[holder.identity] = names
    return entries


def encode_backup(entries: Mapping[int, Sequence[str]], limit: int = MESSAGE_LIMIT) -> List[str]:
    """Render backup messages, splitting into parts when one would exceed ``limit``."""
    lines = [
        f"<@{identity}>: {', '.join(names)}"
        for identity, names in entries.items()
        if names
    ]
    if not lines:
        return [EMPTY_BACKUP]

    budget = limit - len(HEADER) - _PART_RESERVE - 1
    chunks: List[List[str]] = [[]]
    size = 0
    for line in lines:
        if chunks[-1] and size + len(line) + 1 > budget:
            chunks.append([])
            size = 0
        chunks[-1].append(line)
        size += len(line) + 1

    total = len(chunks)
    messages = []
    for index, chunk in enumerate(chunks, start=1):
        header = HEADER if total == 1 else f"{HEADER} (part {index}/{total})"
        messages.append("\n".join([header, *chunk]))
    return messages


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def is_backup_message(content: str) -> bool:
    return MARKER_ICON in content and MARKER_TITLE in content


def _part_of(content: str) -> Optional[tuple]:
    first_line = content.split("\n", 1)[0]
    match = _PART_PATTERN.search(first_line)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def select_backup(contents_newest_first: Sequence[str]) -> List[str]:
    """Messages making up the newest backup, in part order. Empty if none found."""
    newest = next((c for c in contents_newest_first if is_backup_message(c)), None)
    if newest is None:
        return []

    part = _part_of(newest)
    if part is None:
        return [newest]

    total = part[1]
    parts: Dict[int, str] = {}
    for content in contents_newest_first:
        if not is_backup_message(content):
            continue
        other = _part_of(content)
        if other is None or other[1] != total:
            continue
        parts.setdefault(other[0], content)
        if len(parts) == total:
            break

    if len(parts) < total:
        logger.warning("backup_parts_missing found=%d expected=%d", len(parts), total)
    return [parts[i] for i in sorted(parts)]


def decode_backup(contents: Iterable[str]) -> Dict[int, List[str]]:
    """User id -> role names from backup message text."""
    entries: Dict[int, List[str]] = {}
    for content in contents:
        for match in _LINE_PATTERN.finditer(content):
            names = [name.strip() for name in match.group(2).split(",")]
            entries[int(match.group(1))] = [name for name in names if name]
    return entries


def restore_holders(
    holders: HolderRegistry,
    entries: Mapping[int, Sequence[str]],
    clock: Callable[[], float] = time.time,
) -> int:
    """Re-register every user in ``entries``. Existing records are overwritten."""
    now = clock()
    for identity, names in entries.items():
        holders.put(
            VerifiedHolder(
                identity=identity,
                address=RESTORED_ADDRESS,
                last_reconciled_at=now,
                restored_role_names=list(names),
            )
        )
    logger.info("backup_restored users=%d", len(entries))
    return len(entries)
