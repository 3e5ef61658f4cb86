#!/usr/bin/env python3
"""
Entry point for the Times Table Quiz Discord bot.

    python main.py

Settings are read from config.json, or from the file named by
TABLEQUIZ_CONFIG. DISCORD_BOT_TOKEN overrides bot.token and
TABLEQUIZ_LOG_LEVEL overrides logging.level.
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path

from tablequiz.config_manager import ConfigManager

DEFAULT_CONFIG_PATH = "config.json"
TOKEN_PLACEHOLDER = "YOUR_DISCORD_BOT_TOKEN_HERE"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def load_config(path=None):
    """Read the JSON config, exiting with a message if it is missing or malformed."""
    config_path = Path(path or os.getenv('TABLEQUIZ_CONFIG', DEFAULT_CONFIG_PATH))

    if not config_path.is_file():
        print(f"❌ Config file {config_path} not found.")
        print("Create it from the bundled config.json and add your bot token.")
        sys.exit(1)

    try:
        config = json.loads(config_path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        print(f"❌ {config_path} is not valid JSON (line {e.lineno}): {e.msg}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Could not read {config_path}: {e}")
        sys.exit(1)

    if not isinstance(config, dict):
        print(f"❌ {config_path} must contain a JSON object.")
        sys.exit(1)
    return config


def get_bot_token(config):
    """Pick the bot token, preferring the DISCORD_BOT_TOKEN environment variable."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')
    if token and token != TOKEN_PLACEHOLDER:
        return token

    print("❌ No Discord bot token configured.")
    print("Set DISCORD_BOT_TOKEN or fill in bot.token in the config file.")
    sys.exit(1)


def check_game_settings(config):
    """Report config values the bot will ignore, before connecting to Discord."""
    rejected = ConfigManager().apply_config(config)
    for message in rejected:
        print(f"⚠️ Ignoring setting: {message}")
    return rejected


def setup_logging_from_config(config):
    """Log to stderr and to <log_directory>/bot.log."""
    log_config = config.get('logging', {})
    level_name = os.getenv('TABLEQUIZ_LOG_LEVEL') or log_config.get('level', 'INFO')
    log_level = getattr(logging, str(level_name).upper(), logging.INFO)

    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    # discord.py logs every gateway event at INFO
    for name in ('discord', 'discord.http', 'discord.gateway'):
        logging.getLogger(name).setLevel(logging.WARNING)


async def run_bot_with_config():
    config = load_config()
    setup_logging_from_config(config)
    check_game_settings(config)
    token = get_bot_token(config)

    from tablequiz.bot import run_bot
    await run_bot(token, config)


if __name__ == "__main__":
    try:
        print("🔢 Starting Times Table Quiz Bot...")
        asyncio.run(run_bot_with_config())
    except KeyboardInterrupt:
        print("\n👋 Times Table Quiz Bot stopped")
    except Exception as e:
        print(f"❌ Bot exited with an error: {e}")
        sys.exit(1)
