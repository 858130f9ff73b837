"""Telegram live stream adapter.

Start registers a Telethon NewMessage handler for the watched chat and
pushes every mapped status into the sink; stop removes it again.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from telethon import events

from adapters.telegram_mapper import ReplyAuthorResolver, build_status
from core.mailbox import Mailbox

LOGGER = logging.getLogger(__name__)


class TelegramUserStream:
    """StreamPort implementation over a connected Telethon client."""

    def __init__(
        self,
        client,
        chat: Union[str, int],
        resolver: ReplyAuthorResolver,
        own_handle: Optional[str] = None,
    ) -> None:
        self._client = client
        self._chat = chat
        self._resolver = resolver
        self._own_handle = own_handle
        self._handler = None

    @property
    def active(self) -> bool:
        return self._handler is not None

    async def start_user_stream(self, sink: Mailbox) -> None:
        if self._handler is not None:
            LOGGER.info("User stream already running")
            return

        async def on_message(event) -> None:
            # Mapping errors stay here; the sink only ever sees statuses.
            try:
                status = await build_status(event.message, self._resolver, self._own_handle)
            except Exception:
                LOGGER.exception("Failed to map incoming message")
                return
            sink.tell(status)

        self._client.add_event_handler(on_message, events.NewMessage(chats=self._chat, incoming=True))
        self._handler = on_message
        LOGGER.info("Listening for messages in %s", self._chat)

    async def stop_stream(self) -> None:
        if self._handler is None:
            return
        self._client.remove_event_handler(self._handler)
        self._handler = None
        LOGGER.info("Stopped listening in %s", self._chat)
