#!/usr/bin/env python3
"""
Print the newest holdergate backup found in a Discord channel.

Reads the same 50 most recent messages /restoreverify reads, picks the
newest backup (all parts of it for a multi-part dump) and lists the decoded
users and role names. Nothing is written anywhere.

Usage:
    python3 scripts/inspect_backup.py --channel 123456789012345678
    python3 scripts/inspect_backup.py --channel 123456789012345678 --raw

Reads DISCORD_TOKEN from .env or the environment.
"""

import argparse
import os
import sys
import time

import requests
from dotenv import find_dotenv, load_dotenv

from holdergate.backup import RESTORE_SCAN_LIMIT, decode_backup, select_backup

DISCORD_API = "https://discord.com/api/v10"


def load_token() -> str:
    load_dotenv(find_dotenv(usecwd=True))
    token = os.environ.get("DISCORD_TOKEN", "").strip()
    if not token:
        print("ERROR: DISCORD_TOKEN is not set in .env or environment.")
        sys.exit(1)
    return token


RATE_LIMIT_RETRIES = 5
# Status codes worth a specific hint when reading a backup channel.
STATUS_HINTS = {
    401: "the bot token was rejected",
    403: "the bot cannot read message history in that channel",
    404: "no channel with that id is visible to the bot",
}


def bot_session(token: str) -> requests.Session:
    session = requests.Session()
    session.headers.update({
        "Authorization": f"Bot {token}",
        "User-Agent": "holdergate-inspect/0.1",
    })
    return session


def recent_messages(session: requests.Session, channel_id: str, limit: int = RESTORE_SCAN_LIMIT):
    """Message contents of a channel, newest first. Exits on an unreadable channel."""
    url = f"{DISCORD_API}/channels/{channel_id}/messages"
    for _ in range(RATE_LIMIT_RETRIES):
        resp = session.get(url, params={"limit": limit}, timeout=15)
        if resp.status_code != 429:
            break
        retry_after = resp.json().get("retry_after", 1.0)
        print(f"  [RATE LIMIT] Waiting {retry_after:.2f}s ...")
        time.sleep(retry_after)
    else:
        print("ERROR: Still rate limited, try again later.")
        sys.exit(1)

    if resp.status_code != 200:
        hint = STATUS_HINTS.get(resp.status_code, "unexpected response")
        print(f"ERROR: Discord HTTP {resp.status_code} reading channel {channel_id}: {hint}.")
        sys.exit(1)
    return [msg.get("content", "") for msg in resp.json()]


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Decode the newest wallet verification backup in a channel.",
    )
    parser.add_argument("--channel", required=True, help="Backup channel id.")
    parser.add_argument("--raw", action="store_true",
                        help="Also print the raw backup message text.")
    args = parser.parse_args()

    contents = recent_messages(bot_session(load_token()), args.channel)

    # Discord returns newest first, the same order /restoreverify scans.
    backup = select_backup(contents)
    if not backup:
        print("No backup data found in the last "
              f"{RESTORE_SCAN_LIMIT} messages.")
        sys.exit(1)

    if args.raw:
        for content in backup:
            print(content)
            print()

    entries = decode_backup(backup)
    print(f"Backup holds {len(entries)} user(s) across {len(backup)} message(s):")
    for identity, names in entries.items():
        print(f"  {identity}: {', '.join(names) or '(no roles)'}")


if __name__ == "__main__":
    main()
