"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAILBOX_SIZE = 1000
DEFAULT_ASK_TIMEOUT = 10.0


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for rebroadcasts."""

    mode: str = "per_author"
    ttl_days: int = 30


@dataclass(frozen=True)
class RouterConfig:
    """Worker settings shared by the router and the workers it supervises.

    mailbox_size of 0 means unbounded.
    """

    mailbox_size: int = DEFAULT_MAILBOX_SIZE
    ask_timeout: float = DEFAULT_ASK_TIMEOUT
