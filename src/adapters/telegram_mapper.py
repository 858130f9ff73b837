"""Telegram-to-core status mapping adapter.

This keeps Telethon-specific details out of the core workers.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from typing import Any, Optional

from telethon.tl.custom import Message

from core.models import UserStatus, id_handle, normalize_handle

LOGGER = logging.getLogger(__name__)

DEFAULT_RESOLVER_CACHE = 1024

_LEAD_MENTION = re.compile(r"^\s*@(\w+)\b")


def handle_for(entity: Any) -> Optional[str]:
    """Return a stable handle for a user or chat entity.

    Users without a public username fall back to "id:<id>".
    """

    username = getattr(entity, "username", None)
    if isinstance(username, str) and username:
        return normalize_handle(username)
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        return None
    return id_handle(entity_id)


class ReplyAuthorResolver:
    """Resolve who wrote a replied-to message.

    Resolved authors are kept in a bounded cache keyed by (chat_id,
    message_id), oldest evicted first. Failed lookups are not cached, so a
    later reply to the same message tries again.
    """

    def __init__(self, client, max_entries: int = DEFAULT_RESOLVER_CACHE) -> None:
        self._client = client
        self._max_entries = max_entries
        self._cache: OrderedDict[tuple[int, int], Optional[str]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._cache)

    async def author_of(self, chat_id: int, message_id: int) -> Optional[str]:
        key = (chat_id, message_id)
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]
        try:
            replied = await self._client.get_messages(chat_id, ids=message_id)
            sender = await replied.get_sender() if replied is not None else None
        except Exception:
            LOGGER.warning("Could not resolve author of message %s in %s", message_id, chat_id)
            return None
        author = handle_for(sender)
        self._cache[key] = author
        while len(self._cache) > self._max_entries:
            self._cache.popitem(last=False)
        return author


def _reply_to_msg_id(message: Message) -> Optional[int]:
    reply_to = getattr(message, "reply_to", None)
    if not reply_to:
        return None
    # In forum chats every message points at its topic root; only a
    # reply_to_top_id means the message also answers a specific message.
    if getattr(reply_to, "forum_topic", False) and not getattr(reply_to, "reply_to_top_id", None):
        return None
    return getattr(reply_to, "reply_to_msg_id", None)


def _lead_mention(text: str) -> Optional[str]:
    match = _LEAD_MENTION.match(text)
    return normalize_handle(match.group(1)) if match else None


async def build_status(
    message: Message,
    resolver: Optional[ReplyAuthorResolver] = None,
    own_handle: Optional[str] = None,
) -> UserStatus:
    """Build a core UserStatus from a Telethon Message.

    A message that is not a reply but starts with "@<own_handle>" is
    addressed to the bot, the way a tweet starting with a mention is.
    """

    sender = await message.get_sender()
    author = handle_for(sender) or id_handle(message.sender_id)
    text = message.raw_text or ""

    reply_id = _reply_to_msg_id(message)
    reply_author = None
    if reply_id is not None and resolver is not None:
        reply_author = await resolver.author_of(message.chat_id, reply_id)
    if reply_author is None and own_handle and _lead_mention(text) == normalize_handle(own_handle):
        reply_author = normalize_handle(own_handle)

    return UserStatus(
        status_id=message.id,
        author=author,
        text=text,
        in_reply_to_author=reply_author,
        in_reply_to_status_id=reply_id,
    )
