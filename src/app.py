"""Application entry point for the chatterbox bot."""

from __future__ import annotations

import argparse
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.sqlite_storage import SQLiteExampleStore
from adapters.telegram_bot_transport import TelegramBotTransport
from adapters.telegram_mapper import ReplyAuthorResolver
from adapters.telegram_stream import TelegramUserStream
from adapters.telegram_transport import TelegramTransport
from client import authorize, build_client, own_username
from core.config import DedupConfig, RouterConfig
from core.models import Shutdown, Start, UserStatus, normalize_handle
from core.rebroadcast import build_models
from core.replier import build_reply, decide_reply
from core.router import EventRouter

NAME = "CHATTERBOX"
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
    for name in redact_cfg.get("patterns", ["API_HASH", "BOT_API", "2FA"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    # Longest first so a secret containing another is masked whole.
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
        path = file_cfg.get("path", "logs/chatterbox.log")
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
    # Telethon logs every update at INFO.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _build_transport(client):
    """Select the transport adapter; the router never sees which one it got."""

    if settings.TRANSPORT == "bot":
        bot_token = os.getenv("BOT_API")
        if not bot_token:
            raise RuntimeError("BOT_API is required when transport=bot")
        if settings.BROADCAST_CHAT == "me":
            raise RuntimeError("broadcast_chat must be a chat id or @channel when transport=bot")
        return TelegramBotTransport(bot_token, settings.CHAT, settings.BROADCAST_CHAT)
    if settings.TRANSPORT == "user":
        return TelegramTransport(client, settings.CHAT, settings.BROADCAST_CHAT, settings.SEARCH_LIMIT)
    raise RuntimeError("transport must be 'user' or 'bot'")


async def _serve(client, storage: SQLiteExampleStore) -> None:
    logger = logging.getLogger(__name__)

    username = await own_username(client)
    transport = _build_transport(client)
    logger.info("Selected transport - %s", settings.TRANSPORT)

    models = build_models(settings.REBROADCAST_MODELS)
    logger.info("%s rebroadcast models are loaded", len(models))

    router = EventRouter(
        username=username,
        stream=TelegramUserStream(client, settings.CHAT, ReplyAuthorResolver(client), own_handle=username),
        transport=transport,
        store=storage,
        config=RouterConfig(
            mailbox_size=settings.MAILBOX_SIZE,
            ask_timeout=settings.ASK_TIMEOUT_SECONDS,
        ),
        dedup_config=DedupConfig(mode=settings.DEDUP_MODE, ttl_days=settings.DEDUP_TTL_DAYS),
        default_models=models,
    )
    router.start()
    router.tell(Start())
    logger.info("Connected as @%s. Listening for incoming messages...", username)

    try:
        await client.run_until_disconnected()
    finally:
        # Let the stream handler go before the workers are cancelled.
        router.tell(Shutdown())
        await router.drain()
        await router.stop()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting chatterbox")
    if settings.CHAT is None:
        raise RuntimeError("config.json must set chat")

    storage = SQLiteExampleStore(settings.DB_PATH)
    storage.init_db()
    if settings.DEDUP_MODE != "off":
        removed = storage.cleanup_seen(settings.DEDUP_TTL_DAYS)
        logger.info("Dedup cleanup removed %s fingerprints", removed)

    client = build_client()
    client.loop.run_until_complete(client.connect())
    client.loop.run_until_complete(authorize(client))
    client.loop.run_until_complete(_serve(client, storage))


def _login() -> None:
    _print_banner()
    client = build_client()

    async def _run_login() -> None:
        await client.connect()
        await authorize(client)
        print(f"Logged in as @{await own_username(client)}")
        await client.disconnect()

    client.loop.run_until_complete(_run_login())


def _parse(text: str, by: str) -> None:
    """Print what the bot would answer to text, without connecting."""

    status = UserStatus(status_id=0, author=normalize_handle(by), text=text)
    decision = decide_reply(status)
    print(build_reply(status, decision.text).text)
    if decision.forward is not None:
        print(decision.forward)


def _history(kind: str, topic: Optional[str]) -> None:
    """Print what the bot has stored: filter requests, feedback or examples."""

    storage = SQLiteExampleStore(settings.DB_PATH)
    storage.init_db()

    if kind == "filters":
        for request in storage.list_filters():
            examples = " ".join(sorted(request.from_users)) or "anyone"
            print(f"@{request.by}: about {' '.join(sorted(request.about))} like {examples}")
    elif kind == "feedback":
        for signal in storage.list_feedback():
            print(f"{signal.status_id}\t{signal.label}")
    else:
        for status in storage.list_examples(topic):
            print(f"{status.status_id}\t@{status.author}\t{status.text}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="chatterbox")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    subparsers.add_parser("login", help="Authorize the Telegram session and exit")
    parse_parser = subparsers.add_parser("parse", help="Show the reply the bot would give to a message")
    parse_parser.add_argument("text")
    parse_parser.add_argument("--by", default="someone", help="Handle of the author")
    history_parser = subparsers.add_parser("history", help="List stored filters, feedback or examples")
    history_parser.add_argument("kind", choices=["filters", "feedback", "examples"])
    history_parser.add_argument("--topic", help="Topic to list examples for")

    args = parser.parse_args(argv)
    if args.command == "login":
        _login()
        return
    if args.command == "parse":
        _parse(args.text, args.by)
        return
    if args.command == "history":
        if args.kind == "examples" and not args.topic:
            parser.error("history examples needs --topic")
        _history(args.kind, args.topic)
        return
    _run()


if __name__ == "__main__":
    main()
