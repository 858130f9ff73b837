from __future__ import annotations

import asyncio
from typing import Any

import pytest

from core.config import DedupConfig
from core.dedup import status_fingerprint
from core.models import FilterRequest, Retweet, UserStatus
from core.rebroadcast import AddModel, RebroadcastHandler, build_models, model_for_filter
from core.rules_engine import build_rules, match_rules, rule_for_topics


class RecordingMailbox:
    def __init__(self) -> None:
        self.messages: list[Any] = []

    def tell(self, message: Any) -> None:
        self.messages.append(message)


class FakeStore:
    def __init__(self) -> None:
        self.seen: set[str] = set()

    def is_seen(self, fingerprint: str) -> bool:
        return fingerprint in self.seen

    def mark_seen(self, fingerprint: str) -> None:
        self.seen.add(fingerprint)


def _handler(mode: str = "per_author") -> tuple[RebroadcastHandler, RecordingMailbox]:
    supervisor = RecordingMailbox()
    handler = RebroadcastHandler(supervisor, "@Chatterbox", FakeStore(), DedupConfig(mode=mode))
    return handler, supervisor


def _feed(handler: RebroadcastHandler, *messages: Any) -> None:
    async def scenario():
        for message in messages:
            await handler.receive(message)

    asyncio.run(scenario())


def _status(status_id: int, author: str, text: str) -> UserStatus:
    return UserStatus(status_id=status_id, author=author, text=text)


def test_topic_rule_matches_words_and_hashtags_only() -> None:
    rules = [rule_for_topics("scala", ["scala"])]
    assert match_rules("I love #Scala", rules)
    assert match_rules("scala, again", rules)
    assert not match_rules("scalability matters", rules)


def test_keyword_rules_respect_excludes() -> None:
    rules = build_rules(
        [
            {"name": "jobs", "keywords": ["Hiring"], "exclude_keywords": ["spam"]},
            {"name": "off", "keywords": ["hiring"], "enabled": False},
        ]
    )
    assert [m.rule_name for m in match_rules("we are hiring", rules)] == ["jobs"]
    assert match_rules("hiring spam", rules) == []


def test_configured_model_rebroadcasts_matching_status() -> None:
    handler, supervisor = _handler()
    model = build_models([{"name": "scala", "topics": ["scala"]}])[0]

    _feed(handler, AddModel(model), _status(1, "bob", "new scala release"), _status(2, "bob", "java news"))

    assert supervisor.messages == [Retweet(1)]


def test_filter_model_is_limited_to_example_authors() -> None:
    handler, supervisor = _handler()
    request = FilterRequest(frozenset({"scala"}), frozenset({"@Odersky"}), "alice")

    _feed(
        handler,
        AddModel(model_for_filter(request)),
        _status(1, "bob", "scala tips"),
        _status(2, "odersky", "scala tips"),
    )

    assert supervisor.messages == [Retweet(2)]


def test_filter_without_authors_accepts_anyone() -> None:
    model = model_for_filter(FilterRequest(frozenset({"nlp"}), frozenset(), "alice"))
    assert model.from_users is None
    assert model.accepts(_status(1, "anyone", "NLP paper")) is not None


def test_own_statuses_are_never_rebroadcast() -> None:
    handler, supervisor = _handler()
    model = build_models([{"name": "scala", "topics": ["scala"]}])[0]

    _feed(handler, AddModel(model), _status(1, "chatterbox", "scala"))

    assert supervisor.messages == []


def test_same_text_is_rebroadcast_once() -> None:
    handler, supervisor = _handler()
    model = build_models([{"name": "scala", "topics": ["scala"]}])[0]

    _feed(
        handler,
        AddModel(model),
        _status(1, "bob", "Scala  3"),
        _status(2, "bob", "scala 3"),
        _status(3, "carol", "scala 3"),
    )

    assert supervisor.messages == [Retweet(1), Retweet(3)]


def test_dedup_off_rebroadcasts_every_match() -> None:
    handler, supervisor = _handler(mode="off")
    model = build_models([{"name": "scala", "topics": ["scala"]}])[0]

    _feed(handler, AddModel(model), _status(1, "bob", "scala"), _status(2, "bob", "scala"))

    assert supervisor.messages == [Retweet(1), Retweet(2)]


def test_model_with_same_name_replaces_previous() -> None:
    handler, _ = _handler()
    first = build_models([{"name": "m", "topics": ["scala"]}])[0]
    second = build_models([{"name": "m", "topics": ["java"]}])[0]

    _feed(handler, AddModel(first), AddModel(second))

    assert handler.models == (second,)


def test_disabled_config_models_are_skipped() -> None:
    models = build_models(
        [
            {"name": "a", "topics": ["x"], "enabled": False},
            {"name": "b", "keywords": ["y"], "from": ["@Bob"]},
        ]
    )
    assert [m.name for m in models] == ["b"]
    assert models[0].from_users == frozenset({"bob"})


def test_global_dedup_ignores_author() -> None:
    first = status_fingerprint(_status(1, "bob", "Scala 3"), "global")
    assert first == status_fingerprint(_status(2, "carol", "scala   3"), "global")
    assert status_fingerprint(_status(1, "bob", "x"), "off") is None
    with pytest.raises(ValueError):
        status_fingerprint(_status(1, "bob", "x"), "per_source")
