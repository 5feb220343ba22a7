#!/usr/bin/env python3
"""
Warden - Entry Point
====================

Minecraft moderation events to Discord forum threads.

Startup:
    1. Load .env
    2. Validate configuration (exit on missing DISCORD_TOKEN / PLAYERS_FORUM_ID)
    3. Log in, retrying network failures with exponential backoff
"""

import asyncio
import sys

import discord
from dotenv import load_dotenv

from warden import __version__
from warden.core.logger import logger
from warden.core.config import ConfigValidationError, validate_and_log_config
from warden.bot import WardenBot
from warden.utils.error_handler import ErrorHandler
from warden.utils.retry import retry_async


# Login retries; each attempt builds a fresh client
STARTUP_RETRIES = 5
STARTUP_BASE_DELAY = 5.0
STARTUP_MAX_DELAY = 60.0


def _login_retryable(e: BaseException) -> bool:
    # A rejected token will be rejected again
    return not isinstance(e, discord.LoginFailure)


async def _run_once(config) -> None:
    bot = WardenBot(config)
    try:
        await bot.start(config.discord_token)
    finally:
        if not bot.is_closed():
            await bot.close()


async def main() -> None:
    """Load configuration and run the bot until it stops."""
    load_dotenv()

    logger.tree("WARDEN STARTING", [
        ("Version", __version__),
    ], emoji="🛡️")

    try:
        config = validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Invalid Configuration", [("Error", str(e))])
        sys.exit(1)

    try:
        await retry_async(
            _run_once,
            config,
            max_retries=STARTUP_RETRIES,
            base_delay=STARTUP_BASE_DELAY,
            max_delay=STARTUP_MAX_DELAY,
            exceptions=(discord.HTTPException, discord.GatewayNotFound, ConnectionError, OSError),
            should_retry=_login_retryable,
        )
    except discord.LoginFailure as e:
        logger.error("Discord Login Failed", [("Error", str(e)[:100])])
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")
    except Exception as e:
        ErrorHandler.handle(e, location="main.__main__", critical=True)
        sys.exit(1)
