"""Telegram Bot API transport adapter.

Uses the Bot API for delivery so replies and rebroadcasts come from a bot
account. The Bot API has no message search.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import List, Union

from core.errors import TransportFailure
from core.models import OutboundUpdate, UserStatus


class TelegramBotTransport:
    """TransportPort implementation that calls the Telegram Bot API."""

    def __init__(self, bot_token: str, chat: Union[str, int], broadcast_chat: Union[str, int]) -> None:
        self._bot_token = bot_token
        self._chat = chat
        self._broadcast_chat = broadcast_chat

    def _endpoint(self, method: str) -> str:
        return f"https://api.telegram.org/bot{self._bot_token}/{method}"

    def _call(self, method: str, payload: dict) -> dict:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=10) as response:
                return json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise TransportFailure(f"Bot API {method} error {e.code}: {body}") from e
        except urllib.error.URLError as e:
            raise TransportFailure(f"Bot API {method} unreachable: {e.reason}") from e

    async def post(self, update: OutboundUpdate) -> None:
        payload = {
            "chat_id": self._chat,
            "text": update.text,
            "disable_web_page_preview": True,
        }
        if update.in_reply_to_status_id is not None:
            payload["reply_parameters"] = {
                "message_id": update.in_reply_to_status_id,
                "allow_sending_without_reply": True,
            }
        # urllib blocks, so the call runs off the event loop.
        await asyncio.to_thread(self._call, "sendMessage", payload)

    async def rebroadcast(self, status_id: int) -> None:
        payload = {
            "chat_id": self._broadcast_chat,
            "from_chat_id": self._chat,
            "message_id": status_id,
        }
        await asyncio.to_thread(self._call, "forwardMessage", payload)

    async def search(self, query: str) -> List[UserStatus]:
        raise TransportFailure("Message search is not available through the Bot API")
