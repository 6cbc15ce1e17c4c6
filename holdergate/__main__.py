"""Run the bot.

Usage:
    python -m holdergate
    python -m holdergate --log-level DEBUG
    python -m holdergate --sync-guild 123456789012345678

Reads DISCORD_TOKEN from .env or the environment.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

import discord

from .bot import HolderGateBot
from .config import load_settings


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    # discord.py is chatty at DEBUG; keep it at INFO unless asked.
    logging.getLogger("discord").setLevel(max(logging.INFO, root.level))


async def run(bot: HolderGateBot, token: str) -> None:
    async with bot:
        await bot.start(token)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Discord wallet verification bot for Cardano NFT holders.",
    )
    parser.add_argument("--log-level", default=None,
                        help="Logging level (default: HOLDERGATE_LOG_LEVEL or INFO).")
    parser.add_argument("--sync-guild", type=int, default=None,
                        help="Sync slash commands to this guild only.")
    args = parser.parse_args()

    settings = load_settings()
    if args.sync_guild:
        settings = replace(settings, sync_guild_id=args.sync_guild)
    configure_logging(args.log_level.upper() if args.log_level else settings.log_level)

    bot = HolderGateBot(settings)
    try:
        asyncio.run(run(bot, settings.discord_token))
    except discord.LoginFailure:
        print("ERROR: Discord rejected DISCORD_TOKEN. Check the bot token.")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nBot stopped.")


if __name__ == "__main__":
    main()
