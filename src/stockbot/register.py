"""
Register Discord Slash Commands
=================================

Registers the bot's slash commands with Discord's API. Run this whenever
the command list changes.

Usage:
    stockbot-register            # bulk-overwrite commands
    stockbot-register --list     # show what is registered

Requirements:
    - DISCORD_BOT_TOKEN in .env
    - DISCORD_APPLICATION_ID in .env
    - Optional: DISCORD_GUILD_ID (comma separated) for guild-specific
      commands, which update instantly. Without it commands are registered
      globally, which takes up to an hour to propagate.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from .commands.command_registry import COMMANDS
from .config import Settings
from .logging_utils import get_logger, setup_logging

log = get_logger("register")

REQUEST_TIMEOUT_S = 10


def commands_url(settings: Settings, guild_id: Optional[str] = None) -> str:
    base = f"{settings.discord_api_base}/applications/{settings.discord_application_id}"
    if guild_id:
        return f"{base}/guilds/{guild_id}/commands"
    return f"{base}/commands"


def _headers(settings: Settings) -> Dict[str, str]:
    return {
        "Authorization": f"Bot {settings.discord_bot_token}",
        "Content-Type": "application/json",
    }


def register_commands(
    settings: Settings,
    guild_id: Optional[str] = None,
    commands: Optional[List[Dict[str, Any]]] = None,
) -> bool:
    """
    Overwrite the registered command set for one guild, or globally.

    A single PUT replaces the whole set, so commands removed from the
    registry disappear from Discord as well.

    Returns
    -------
    bool
        True if Discord accepted the command list
    """
    commands = COMMANDS if commands is None else commands
    scope = f"guild={guild_id}" if guild_id else "global"
    try:
        response = requests.put(
            commands_url(settings, guild_id),
            json=commands,
            headers=_headers(settings),
            timeout=REQUEST_TIMEOUT_S,
        )
    except requests.RequestException as e:
        log.error("register_failed scope=%s err=%s", scope, e)
        return False

    if response.status_code in (200, 201):
        log.info("register_ok scope=%s commands=%d", scope, len(commands))
        return True

    log.error(
        "register_rejected scope=%s status=%d body=%s",
        scope,
        response.status_code,
        response.text[:200],
    )
    return False


def list_commands(settings: Settings, guild_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return the commands currently registered in one scope."""
    response = requests.get(
        commands_url(settings, guild_id),
        headers=_headers(settings),
        timeout=REQUEST_TIMEOUT_S,
    )
    response.raise_for_status()
    return response.json()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Register Discord slash commands")
    parser.add_argument(
        "--list",
        action="store_true",
        help="list registered commands instead of registering",
    )
    parser.add_argument(
        "--guild",
        action="append",
        dest="guilds",
        help="guild ID to target (repeatable); overrides DISCORD_GUILD_ID",
    )
    parser.add_argument(
        "--global",
        action="store_true",
        dest="global_scope",
        help="register globally even when guild IDs are configured",
    )
    args = parser.parse_args(argv)

    load_dotenv()
    settings = Settings()
    setup_logging(settings)

    if not settings.discord_bot_token or not settings.discord_application_id:
        print("[ERROR] DISCORD_BOT_TOKEN and DISCORD_APPLICATION_ID must be set")
        return 2

    if args.global_scope:
        scopes: List[Optional[str]] = [None]
    else:
        scopes = list(args.guilds or settings.discord_guild_ids) or [None]

    if args.list:
        for guild_id in scopes:
            label = f"Guild {guild_id}" if guild_id else "Global"
            try:
                registered = list_commands(settings, guild_id)
            except requests.RequestException as e:
                print(f"[WARN] Could not fetch {label.lower()} commands: {e}")
                continue
            print(f"\n{label} commands ({len(registered)}):")
            for cmd in registered:
                print(f"  - /{cmd['name']} (ID: {cmd.get('id')})")
        return 0

    failures = 0
    for guild_id in scopes:
        label = f"guild {guild_id}" if guild_id else "global scope"
        if register_commands(settings, guild_id):
            print(f"[OK] Registered {len(COMMANDS)} commands for {label}")
        else:
            print(f"[FAIL] Could not register commands for {label}")
            failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
