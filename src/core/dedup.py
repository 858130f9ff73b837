"""Status fingerprints, so a status is rebroadcast at most once."""

from __future__ import annotations

import hashlib
import re
from typing import Optional

from core.models import UserStatus, normalize_handle

DEDUP_MODES = ("off", "per_author", "global")

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().lower()


def status_fingerprint(status: UserStatus, mode: str) -> Optional[str]:
    """Return the dedup key for a status, or None when dedup is off.

    "per_author" lets two people post the same text and both be
    rebroadcast; "global" treats identical text as one status.
    """

    if mode not in DEDUP_MODES:
        raise ValueError(f"Unsupported dedup mode: {mode}")
    if mode == "off":
        return None

    text = normalize_text(status.text)
    payload = text if mode == "global" else f"{normalize_handle(status.author)}\n{text}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
