"""Settings and timing constants.

Credentials come from the environment, optionally seeded from a ``.env`` file
in the working directory:

    DISCORD_TOKEN=your-bot-token
    HOLDERGATE_LOG_LEVEL=INFO          (optional)
    HOLDERGATE_SYNC_GUILD=1234567890   (optional, sync commands to one guild)
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

# ---------------------------------------------------------------------------
# Timing (seconds)
# ---------------------------------------------------------------------------

RATE_LIMIT_WINDOW = 5 * 60
VERIFICATION_TIMEOUT = 10 * 60
SETUP_TIMEOUT = 15 * 60

VERIFICATION_POLL_INTERVAL = 30
RECONCILE_INTERVAL = 30 * 60
BACKUP_INTERVAL = 4 * 60 * 60

# Upper bound on one identity's external lookups within a tick.
LOOKUP_TIMEOUT = 20
RECONCILE_TIMEOUT = 60

HTTP_TIMEOUT = 15


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    discord_token: str
    log_level: str = "INFO"
    sync_guild_id: Optional[int] = None


def load_settings(env_path: Optional[str] = None) -> Settings:
    """Return settings from the environment. Exits when the token is missing."""
    load_dotenv(env_path or find_dotenv(usecwd=True))

    token = os.environ.get("DISCORD_TOKEN", "").strip()
    if not token:
        print("ERROR: DISCORD_TOKEN is not set in .env or environment.")
        sys.exit(1)

    sync_guild = os.environ.get("HOLDERGATE_SYNC_GUILD", "").strip()
    if sync_guild and not sync_guild.isdigit():
        print(f"ERROR: HOLDERGATE_SYNC_GUILD must be a guild id, got {sync_guild!r}")
        sys.exit(1)

    return Settings(
        discord_token=token,
        log_level=os.environ.get("HOLDERGATE_LOG_LEVEL", "INFO").upper(),
        sync_guild_id=int(sync_guild) if sync_guild else None,
    )
