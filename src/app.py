"""Application entry point for the rconrelay bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.log_receiver import SrcdsLogReceiver
from adapters.source_rcon import SourceRconClient
from adapters.steam_avatars import SteamAvatarLookup
from adapters.telegram_mapper import TelegramFeedback, build_chat_message
from adapters.telegram_notifier import TelegramRelayNotifier
from client import bot_token, build_client
from core.avatar_cache import AvatarCache
from core.config import CommandConfig, InboundConfig, OutboundConfig, WireConfig
from core.relay import RelayDispatcher
from core.routes import RouteTable, build_route_table

NAME = "RCONRELAY"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    # RCON passwords live in config.json, not the environment.
    for server in settings.SERVERS.values():
        password = server.get("password")
        if password:
            values.append(str(password))
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/rconrelay.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at INFO; keep its noise out of the relay log.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _build_dispatcher(routes: RouteTable, client) -> RelayDispatcher:
    load_dotenv()
    avatar_lookup = SteamAvatarLookup(os.getenv("STEAM_API_KEY"))
    if not avatar_lookup.enabled:
        logging.getLogger(__name__).info("No usable STEAM_API_KEY, relaying without avatars")

    return RelayDispatcher(
        routes=routes,
        notifier=TelegramRelayNotifier(client),
        rcon=SourceRconClient(idle_timeout=settings.RCON_IDLE_TIMEOUT),
        avatars=AvatarCache(avatar_lookup),
        outbound=OutboundConfig(
            blacklist_prefixes=tuple(settings.MESSAGES_STARTS_WITH_BLACKLIST),
            show_errors=settings.SHOW_LUA_ERRORS,
            error_display_name=settings.ERROR_DISPLAY_NAME,
        ),
        inbound=InboundConfig(
            max_message_length=settings.MAX_MESSAGE_LENGTH,
            announce_trim=settings.ANNOUNCE_MESSAGE_TRIM,
            trim_reaction=settings.TRIM_REACTION,
            failure_reaction=settings.FAILURE_REACTION,
            failure_markers=tuple(settings.FAILURE_MARKERS),
        ),
        commands=CommandConfig(
            aliases=tuple(settings.COMMAND_PREFIX + name for name in settings.RCON_COMMANDS),
            allowed_users=frozenset(settings.ALLOWED_FOR_COMMANDS),
            preview_chars=settings.COMMAND_PREVIEW_CHARS,
        ),
        wire=WireConfig(
            verb=settings.RELAY_VERB,
            ceiling=settings.COMMAND_CEILING,
            avoid_tag_collisions=settings.AVOID_TAG_COLLISIONS,
        ),
    )


async def _serve(client, routes: RouteTable) -> None:
    logger = logging.getLogger(__name__)

    await client.start(bot_token=bot_token())
    dispatcher = _build_dispatcher(routes, client)
    feedback = TelegramFeedback(client)

    loop = asyncio.get_running_loop()
    transport, _ = await loop.create_datagram_endpoint(
        lambda: SrcdsLogReceiver(
            dispatcher.handle_log_line,
            registered=routes.addresses(),
            secret=settings.LOG_SECRET,
        ),
        local_addr=(settings.RELAY_HOST, settings.RELAY_PORT),
    )
    logger.info("Log capture listening on %s:%s", settings.RELAY_HOST, settings.RELAY_PORT)

    # Single handler keeps Telethon integration minimal and defers all filtering
    # to the dispatcher for consistency and testability.
    @client.on(events.NewMessage(incoming=True))
    async def handler(event) -> None:
        try:
            message = await build_chat_message(event.message)
            if message is None:
                return
            await dispatcher.handle_chat_message(message, feedback)
        except Exception:
            logger.exception("Error while processing chat message")

    logger.info("Client connected. Relaying %s server(s)...", len(routes))
    try:
        await client.run_until_disconnected()
    finally:
        transport.close()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting rconrelay")

    routes = build_route_table(settings.SERVERS)
    for route in routes:
        logger.info("Route %s: %s:%s <-> chat %s", route.name, route.host, route.port, route.channel_id)

    client = build_client()
    client.loop.run_until_complete(_serve(client, routes))


def _rcon(server: str, command: list[str]) -> int:
    _configure_logging()
    routes = build_route_table(settings.SERVERS)
    route = routes.by_name(server)
    if route is None:
        print(f"Unknown server: {server}", file=sys.stderr)
        return 2

    client = SourceRconClient(idle_timeout=settings.RCON_IDLE_TIMEOUT)
    result = asyncio.run(client.execute(route, " ".join(command)))
    print(result.text or "Command executed but returned no results.")
    return 1 if result.failed else 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="rconrelay")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the relay")
    rcon_parser = subparsers.add_parser("rcon", help="Run one RCON command on a configured server")
    rcon_parser.add_argument("server", help="Server name from config.json")
    rcon_parser.add_argument("rcon_command", nargs="+", help="Command to run")

    args = parser.parse_args(argv)
    if args.command == "rcon":
        raise SystemExit(_rcon(args.server, args.rcon_command))
    _run()


if __name__ == "__main__":
    main()
