"""Application entry point for the beerscope Untappd bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.notification_formatting import format_mention, format_recent
from adapters.sqlite_store import SQLiteStore
from adapters.telegram_directory import TelegramDirectory, display_name_of
from adapters.telegram_notifier import TelegramChannelNotifier
from adapters.untappd_client import UntappdClient
from bot import CommandRequest, UntappdBot
from client import bot_token, build_client
from core.announcer import Announcer
from core.config import AnnouncerConfig, QueryConfig, UntappdConfig
from core.errors import ExternalServiceError
from core.queries import QuerySurface, select_recent
from core.registry import IdentityRegistry
from core.sync import SyncEngine
from core.watermarks import WatermarkStore

NAME = "BEERSCOPE"
FONT = "tarty-1"

# Env vars whose values never reach a log line when redaction is on.
DEFAULT_REDACTED = ["BOT_TOKEN", "API_HASH", "UNTAPPD_CLIENT_SECRET"]


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
    for name in redact_cfg.get("patterns", DEFAULT_REDACTED):
        value = os.getenv(name)
        if value:
            values.append(value)
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
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/beerscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon is chatty at DEBUG; keep it at INFO unless asked for otherwise.
    logging.getLogger("telethon").setLevel(max(level, logging.INFO))


def _untappd_config() -> UntappdConfig:
    load_dotenv()
    client_id = os.getenv("UNTAPPD_CLIENT_ID")
    client_secret = os.getenv("UNTAPPD_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise RuntimeError("Missing UNTAPPD_CLIENT_ID or UNTAPPD_CLIENT_SECRET in environment")
    return UntappdConfig(
        client_id=client_id,
        client_secret=client_secret,
        base_url=settings.UNTAPPD_BASE_URL,
        timeout_seconds=settings.UNTAPPD_TIMEOUT_SECONDS,
    )


def _query_config() -> QueryConfig:
    return QueryConfig(window_hours=settings.QUERY_WINDOW_HOURS, minimum=settings.QUERY_MINIMUM)


class _EventResponder:
    """Answer a Telethon NewMessage event."""

    def __init__(self, event, sender_name: str) -> None:
        self._event = event
        self._sender_name = sender_name

    async def reply(self, text: str) -> None:
        await self._event.reply(text)

    async def reply_with_mention(self, text: str) -> None:
        await self._event.reply(format_mention(self._sender_name, text))


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting beerscope")

    storage = SQLiteStore(settings.DB_PATH)
    storage.init_db()

    feed_client = UntappdClient(_untappd_config())
    registry = IdentityRegistry(storage, feed_client)
    watermarks = WatermarkStore(storage)
    engine = SyncEngine(registry, watermarks, feed_client)

    client = build_client()
    directory = TelegramDirectory(
        client,
        lambda: [association.local_user_id for association in registry.list()],
        lambda local_user_id: registry.lookup(local_user_id) is not None,
    )
    notifier = TelegramChannelNotifier(client, settings.ANNOUNCE_CHANNEL, directory)
    announcer = Announcer(
        engine,
        watermarks,
        notifier,
        AnnouncerConfig(
            channel=settings.ANNOUNCE_CHANNEL,
            interval_minutes=settings.ANNOUNCE_INTERVAL_MINUTES,
        ),
    )
    queries = QuerySurface(registry, feed_client, directory, _query_config())
    bot = UntappdBot(registry, announcer, queries, directory, prefix=settings.COMMAND_PREFIX)
    logger.info("%s admins configured", len(settings.ADMINS))

    # Single handler keeps Telethon integration minimal and defers all routing
    # to the bot for consistency and testability.
    @client.on(events.NewMessage(incoming=True))
    async def handler(event) -> None:
        try:
            sender = await event.get_sender()
            # Never react to other bots, including our own announcements.
            if sender is None or getattr(sender, "bot", False):
                return
            sender_id = str(event.sender_id)
            directory.remember(sender_id, sender)
            request = CommandRequest(
                sender_id=sender_id,
                sender_name=display_name_of(sender),
                is_admin=sender_id in settings.ADMINS,
            )
            await bot.dispatch(event.raw_text or "", request, _EventResponder(event, request.sender_name))
        except Exception:
            logger.exception("Error while processing command")

    async def _start_announcer() -> None:
        announcer.start()

    # Explicit lifecycle management makes start/shutdown behavior obvious.
    client.start(bot_token=bot_token())
    client.loop.run_until_complete(_start_announcer())
    logger.info("Client connected. Listening for commands...")
    try:
        client.run_until_disconnected()
    finally:
        client.loop.run_until_complete(announcer.stop())


def _users() -> None:
    storage = SQLiteStore(settings.DB_PATH)
    storage.init_db()
    watermarks = WatermarkStore(storage)
    registry = IdentityRegistry(storage)

    associations = sorted(registry.list(), key=lambda item: item.external_username.lower())
    if not associations:
        print("No Untappd users are registered.")
        return
    for index, association in enumerate(associations, start=1):
        last = watermarks.get(association.external_username)
        print(f"{index}. {association.external_username} | telegram:{association.local_user_id} | last:{last}")


def _peek(username: str) -> None:
    feed_client = UntappdClient(_untappd_config())

    async def _fetch():
        return await feed_client.fetch_feed(username)

    try:
        checkins = asyncio.run(_fetch())
    except ExternalServiceError as exc:
        print(f"Could not fetch {username}: {exc}")
        raise SystemExit(1)

    print(format_recent(username, select_recent(checkins, datetime.now(timezone.utc), _query_config())))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="beerscope")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot and the announcer")
    subparsers.add_parser("users", help="List registered Untappd users from the local store")
    peek_parser = subparsers.add_parser(
        "peek",
        help="Show an Untappd user's recent check-ins without touching the store.",
    )
    peek_parser.add_argument("username")

    args = parser.parse_args(argv)
    if args.command == "users":
        _users()
        return
    if args.command == "peek":
        _peek(args.username)
        return
    _run()


if __name__ == "__main__":
    main()
