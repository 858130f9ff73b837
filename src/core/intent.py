"""Command-intent parsing.

People ask the bot for a feed in one of two orders:

    tweets about scala like etorreborre jasonbaldridge
    tweets like etorreborre jasonbaldridge about scala

Each order has its own grammar. GRAMMARS is tried front to back and the
first match wins, so the topic-first form has priority.
"""

from __future__ import annotations

import re
from typing import Callable, Optional, Tuple

from core.models import FilterRequest

_ABOUT_THEN_EXAMPLES = re.compile(r"(?:.* tweets )?about (#?\w+) (?:such as|like) (.*)")
_EXAMPLES_THEN_ABOUT = re.compile(r"(?:.* tweets )?(?:such as|like) (.*) about (#?\w+)")

_NEGATIVE_FEEDBACK = re.compile(r"no[!.]?|bad bot!?", re.IGNORECASE)
_LEAD_MENTION = re.compile(r"^@\w+\s+(.*)$", re.DOTALL)


def _build(topic: str, examples: str, by: str) -> FilterRequest:
    about = topic.lstrip("#")
    return FilterRequest(
        about=frozenset({about}) if about else frozenset(),
        from_users=frozenset(examples.split()),
        by=by,
    )


def parse_about_then_examples(text: str, by: str) -> Optional[FilterRequest]:
    """Match `about <topic> such as|like <examples...>`."""

    match = _ABOUT_THEN_EXAMPLES.search(text)
    if match is None:
        return None
    return _build(match.group(1), match.group(2), by)


def parse_examples_then_about(text: str, by: str) -> Optional[FilterRequest]:
    """Match `such as|like <examples...> about <topic>`."""

    match = _EXAMPLES_THEN_ABOUT.search(text)
    if match is None:
        return None
    return _build(match.group(2), match.group(1), by)


GRAMMARS: Tuple[Callable[[str, str], Optional[FilterRequest]], ...] = (
    parse_about_then_examples,
    parse_examples_then_about,
)


def parse_filter(text: str, by: str) -> Optional[FilterRequest]:
    """Return the filter request in text, or None when no grammar matches."""

    for grammar in GRAMMARS:
        request = grammar(text, by)
        if request is not None:
            return request
    return None


def strip_lead_mention(text: str) -> str:
    match = _LEAD_MENTION.match(text)
    if match is None:
        return text
    return match.group(1)


def is_negative_feedback(text: str) -> bool:
    """True for "no", "no.", "no!", "bad bot", "bad bot!" in any case."""

    return _NEGATIVE_FEEDBACK.fullmatch(strip_lead_mention(text.strip()).strip()) is not None
