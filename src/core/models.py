"""Core domain models.

Every value passed between workers is one of these frozen dataclasses, so
a message can be handed from one worker to the next without either side
being able to change it afterwards.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

NEGATIVE = "negative"
ID_HANDLE_PREFIX = "id:"


def normalize_handle(handle: str) -> str:
    """Return the canonical form of a user handle (no leading @, lower-case)."""

    return handle.strip().lstrip("@").lower()


def id_handle(entity_id: int) -> str:
    """Handle for a user that has no public username."""

    return f"{ID_HANDLE_PREFIX}{entity_id}"


def is_mentionable(handle: str) -> bool:
    return not handle.startswith(ID_HANDLE_PREFIX)


@dataclass(frozen=True)
class UserStatus:
    """A single message observed on the stream or returned by a search."""

    status_id: int
    author: str
    text: str
    in_reply_to_author: Optional[str] = None
    in_reply_to_status_id: Optional[int] = None


@dataclass(frozen=True)
class Start:
    """Begin consuming the live stream."""


@dataclass(frozen=True)
class Shutdown:
    """Stop consuming the live stream."""


@dataclass(frozen=True)
class ReplyToStatus:
    status: UserStatus


@dataclass(frozen=True)
class OutboundUpdate:
    text: str
    in_reply_to_status_id: Optional[int] = None


@dataclass(frozen=True)
class UpdateStatus:
    update: OutboundUpdate


@dataclass(frozen=True)
class SearchRequest:
    """Search query plus the future the router resolves with the results."""

    query: str
    reply: "asyncio.Future[Tuple[UserStatus, ...]]" = field(compare=False, repr=False)


@dataclass(frozen=True)
class Retweet:
    status_id: int


@dataclass(frozen=True)
class FilterRequest:
    """Topic/author filter parsed from a user's message."""

    about: frozenset[str]
    from_users: frozenset[str]
    by: str

    def __post_init__(self) -> None:
        if not self.by:
            raise ValueError("FilterRequest requires the requesting author")


@dataclass(frozen=True)
class FeedbackSignal:
    status_id: int
    label: str = NEGATIVE


RouterMessage = Union[
    Start,
    Shutdown,
    SearchRequest,
    UpdateStatus,
    UserStatus,
    Retweet,
    FilterRequest,
    FeedbackSignal,
]
