"""Telegram transport adapter for a user session.

Posts replies into the watched chat, rebroadcasts by forwarding to the
broadcast chat (Saved Messages by default), and searches the watched chat.
"""

from __future__ import annotations

from typing import List, Union

from telethon import errors

from adapters.telegram_mapper import build_status
from core.errors import TransportFailure
from core.models import OutboundUpdate, UserStatus


class TelegramTransport:
    """TransportPort implementation over a connected Telethon client."""

    def __init__(
        self,
        client,
        chat: Union[str, int],
        broadcast_chat: Union[str, int] = "me",
        search_limit: int = 50,
    ) -> None:
        self._client = client
        self._chat = chat
        self._broadcast_chat = broadcast_chat
        self._search_limit = search_limit

    async def post(self, update: OutboundUpdate) -> None:
        try:
            await self._client.send_message(self._chat, update.text, reply_to=update.in_reply_to_status_id)
        except errors.RPCError as exc:
            raise TransportFailure(f"send_message to {self._chat} failed: {exc}") from exc

    async def rebroadcast(self, status_id: int) -> None:
        try:
            await self._client.forward_messages(self._broadcast_chat, status_id, from_peer=self._chat)
        except errors.RPCError as exc:
            raise TransportFailure(f"forward of {status_id} failed: {exc}") from exc

    async def search(self, query: str) -> List[UserStatus]:
        statuses: List[UserStatus] = []
        try:
            async for message in self._client.iter_messages(self._chat, search=query, limit=self._search_limit):
                statuses.append(await build_status(message))
        except errors.RPCError as exc:
            raise TransportFailure(f"search for {query!r} failed: {exc}") from exc
        return statuses
