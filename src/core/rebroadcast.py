"""Rebroadcast decisions for statuses not addressed to the bot.

The handler keeps a list of rebroadcast models. A status that one of them
accepts, and that has not been rebroadcast before, is sent back to the
supervisor as a Retweet request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from core.config import DedupConfig
from core.dedup import status_fingerprint
from core.mailbox import Mailbox, Worker
from core.models import FilterRequest, Retweet, UserStatus, normalize_handle
from core.ports import ExampleStorePort
from core.rules_engine import RuleMatch, TopicRule, build_rules, match_rules, rule_for_topics, topic_pattern

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RebroadcastModel:
    """Rules a status must match, optionally limited to some authors."""

    name: str
    rules: Tuple[TopicRule, ...]
    from_users: Optional[frozenset[str]] = None

    def accepts(self, status: UserStatus) -> Optional[RuleMatch]:
        if self.from_users is not None and normalize_handle(status.author) not in self.from_users:
            return None
        matches = match_rules(status.text, self.rules)
        return matches[0] if matches else None


@dataclass(frozen=True)
class AddModel:
    model: RebroadcastModel


def model_for_filter(request: FilterRequest) -> RebroadcastModel:
    """Model for a parsed filter request; no example authors means anyone."""

    name = f"{request.by}: {' '.join(sorted(request.about))}"
    authors = frozenset(normalize_handle(user) for user in request.from_users if user.strip("@"))
    return RebroadcastModel(
        name=name,
        rules=(rule_for_topics(name, request.about),),
        from_users=authors or None,
    )


def build_models(models_config: Iterable[dict]) -> List[RebroadcastModel]:
    """Compile the rebroadcast models listed in config.

    Each entry accepts the rule keys (keywords, exclude_keywords, regex)
    plus "topics" (matched as words or hashtags) and "from" (author
    handles).
    """

    models: List[RebroadcastModel] = []
    for entry in models_config:
        if not entry.get("enabled", True):
            continue
        regex = list(entry.get("regex", []) or []) + [topic_pattern(t) for t in entry.get("topics", [])]
        rules = build_rules([{**entry, "regex": regex}])
        authors = frozenset(normalize_handle(user) for user in entry.get("from", []))
        models.append(RebroadcastModel(name=entry["name"], rules=tuple(rules), from_users=authors or None))
    return models


class RebroadcastHandler(Worker):
    """Picks statuses worth rebroadcasting and asks the supervisor to do it."""

    def __init__(
        self,
        supervisor: Mailbox,
        username: str,
        store: ExampleStorePort,
        dedup_config: DedupConfig,
        mailbox_size: int = 0,
    ) -> None:
        super().__init__("rebroadcaster", mailbox_size)
        self._supervisor = supervisor
        self._username = normalize_handle(username)
        self._store = store
        self._dedup = dedup_config
        self._models: List[RebroadcastModel] = []

    @property
    def models(self) -> Tuple[RebroadcastModel, ...]:
        return tuple(self._models)

    async def receive(self, message: Any) -> None:
        if isinstance(message, AddModel):
            self._add(message.model)
        elif isinstance(message, UserStatus):
            self._consider(message)
        else:
            LOGGER.warning("Rebroadcaster ignoring %s", type(message).__name__)

    def _add(self, model: RebroadcastModel) -> None:
        # A model with the same name replaces the earlier one.
        self._models = [m for m in self._models if m.name != model.name]
        self._models.append(model)
        LOGGER.info("Rebroadcast model registered: %s", model.name)

    def _consider(self, status: UserStatus) -> None:
        if normalize_handle(status.author) == self._username:
            return
        if not status.text.strip():
            return

        match = None
        for model in self._models:
            match = model.accepts(status)
            if match is not None:
                break
        if match is None:
            return

        fingerprint = status_fingerprint(status, self._dedup.mode)
        if fingerprint:
            if self._store.is_seen(fingerprint):
                LOGGER.info("Dedup skip for status %s", status.status_id)
                return
            self._store.mark_seen(fingerprint)

        LOGGER.info("Rebroadcasting status %s (%s)", status.status_id, match.rule_name)
        self._supervisor.tell(Retweet(status.status_id))
