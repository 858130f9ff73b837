"""Reply handling for statuses addressed to the bot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from core.intent import is_negative_feedback, parse_filter
from core.mailbox import Mailbox, Worker
from core.models import (
    NEGATIVE,
    FeedbackSignal,
    FilterRequest,
    OutboundUpdate,
    ReplyToStatus,
    UpdateStatus,
    UserStatus,
    is_mentionable,
)

LOGGER = logging.getLogger(__name__)

APOLOGY = "Sorry, I'll not make that mistake again."
MISSING_CONTEXT = "Please reply to the tweet in question so I can improve."
PARSE_MISS = "Sorry, I couldn't parse that. Try `tweets about scala like etorreborre jasonbaldridge`."


def acknowledgement(request: FilterRequest) -> str:
    return f"Working on {' '.join(sorted(request.about))}."


@dataclass(frozen=True)
class ReplyDecision:
    """Reply text plus the request, if any, to hand to the supervisor first."""

    text: str
    forward: Optional[Union[FilterRequest, FeedbackSignal]] = None


def decide_reply(status: UserStatus) -> ReplyDecision:
    """Choose the single reply for an addressed status.

    Order of precedence:
    - a parsable filter request is acknowledged and forwarded
    - "no"/"bad bot" becomes negative feedback on the replied-to status,
      or a request to reply to that status when it is unknown
    - anything else gets the usage hint
    """

    request = parse_filter(status.text, status.author)
    if request is not None:
        return ReplyDecision(acknowledgement(request), request)

    if is_negative_feedback(status.text):
        if status.in_reply_to_status_id is None:
            return ReplyDecision(MISSING_CONTEXT)
        return ReplyDecision(APOLOGY, FeedbackSignal(status.in_reply_to_status_id, NEGATIVE))

    return ReplyDecision(PARSE_MISS)


def build_reply(status: UserStatus, text: str) -> OutboundUpdate:
    """Reply text, prefixed with a mention when the author has a username."""

    if is_mentionable(status.author):
        text = f" {text}"
    return OutboundUpdate(text=text, in_reply_to_status_id=status.status_id)


class ReplyHandler(Worker):
    """Answers each ReplyToStatus with exactly one UpdateStatus to its supervisor."""

    def __init__(self, supervisor: Mailbox, mailbox_size: int = 0) -> None:
        super().__init__("replier", mailbox_size)
        self._supervisor = supervisor

    async def receive(self, message: Any) -> None:
        if not isinstance(message, ReplyToStatus):
            LOGGER.warning("Replier ignoring %s", type(message).__name__)
            return

        status = message.status
        decision = decide_reply(status)
        if decision.forward is not None:
            self._supervisor.tell(decision.forward)
        self._supervisor.tell(UpdateStatus(build_reply(status, decision.text)))
