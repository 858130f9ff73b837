"""Telegram client factory and login for chatterbox.

We explicitly manage the client's lifecycle (connect, login, and
run_until_disconnected) so it is obvious when the session is created and
when it ends.
"""

from __future__ import annotations

import logging
import os
from getpass import getpass

import qrcode
from dotenv import load_dotenv
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

LOGIN_METHODS = ("qr", "phone", "bot")


def build_client() -> TelegramClient:
    """Create a Telethon client from environment variables.

    API_ID/API_HASH are read via python-dotenv to keep secrets out of the
    repo. The session name defaults to "chatterbox".
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "chatterbox")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    LOGGER.info("Initializing Telegram client")
    return TelegramClient(session_name, int(api_id), api_hash)


def _print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def _two_factor_password() -> str:
    return os.getenv("2FA") or getpass("2FA password: ")


async def _login_with_qr(client: TelegramClient) -> None:
    qr_login = await client.qr_login()
    _print_qr(qr_login.url)
    await qr_login.wait(timeout=120)


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    code = input("Login code: ").strip()
    await client.sign_in(phone=phone, code=code)


async def _login_with_bot_token(client: TelegramClient) -> None:
    token = os.getenv("BOT_API")
    if not token:
        raise RuntimeError("BOT_API is required for LOGIN_METHOD=bot")
    await client.sign_in(bot_token=token)


def _pick_login_method() -> str:
    method = (os.getenv("LOGIN_METHOD") or "").strip().lower()
    if method in LOGIN_METHODS:
        return method
    while True:
        print("")
        print("Login methods:")
        print("[1] QR code")
        print("[2] Phone code")
        print("[3] Bot token")
        print("[4] Exit")
        choice = input("chatterbox > ").strip()
        if choice == "4":
            raise SystemExit(0)
        if choice in {"1", "2", "3"}:
            return LOGIN_METHODS[int(choice) - 1]
        print("Invalid option. Please choose 1, 2, 3, or 4.")


async def authorize(client: TelegramClient) -> None:
    """Log the session in unless it already is."""

    if await client.is_user_authorized():
        return

    method = _pick_login_method()
    login = {
        "qr": _login_with_qr,
        "phone": _login_with_phone,
        "bot": _login_with_bot_token,
    }[method]
    try:
        await login(client)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())


async def own_username(client: TelegramClient) -> str:
    """Return the handle the bot is addressed by."""

    me = await client.get_me()
    if not getattr(me, "username", None):
        raise RuntimeError("The logged-in account has no username; replies cannot be addressed to it")
    return me.username
