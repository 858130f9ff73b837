"""Ports (interfaces) used by the core workers.

Ports define the minimal contracts for the stream, transport, and storage
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.mailbox import Mailbox
from core.models import FeedbackSignal, FilterRequest, OutboundUpdate, UserStatus


class StreamPort(Protocol):
    """Live stream of statuses addressed to, or visible to, the bot."""

    async def start_user_stream(self, sink: Mailbox) -> None:
        ...

    async def stop_stream(self) -> None:
        ...


class TransportPort(Protocol):
    """Network calls the router makes. Failures raise TransportFailure."""

    async def post(self, update: OutboundUpdate) -> None:
        ...

    async def rebroadcast(self, status_id: int) -> None:
        ...

    async def search(self, query: str) -> Sequence[UserStatus]:
        ...


class ExampleStorePort(Protocol):
    """Storage for dedup fingerprints and learned examples."""

    def is_seen(self, fingerprint: str) -> bool:
        ...

    def mark_seen(self, fingerprint: str) -> None:
        ...

    def save_filter(self, request: FilterRequest) -> None:
        ...

    def save_feedback(self, signal: FeedbackSignal) -> None:
        ...

    def save_example(self, status: UserStatus, topic: Optional[str]) -> None:
        ...
