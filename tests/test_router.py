from __future__ import annotations

import asyncio
from typing import Any, Optional

import pytest

from core.config import DedupConfig, RouterConfig
from core.errors import RequestTimeout, TransportFailure
from core.mailbox import ask
from core.models import (
    FeedbackSignal,
    FilterRequest,
    OutboundUpdate,
    ReplyToStatus,
    Retweet,
    SearchRequest,
    Shutdown,
    Start,
    UpdateStatus,
    UserStatus,
)
from core.rebroadcast import AddModel, build_models
from core.replier import PARSE_MISS
from core.router import EventRouter


class RecordingMailbox:
    def __init__(self) -> None:
        self.messages: list[Any] = []

    def tell(self, message: Any) -> None:
        self.messages.append(message)


class FakeStream:
    def __init__(self) -> None:
        self.sink = None
        self.stopped = 0

    async def start_user_stream(self, sink) -> None:
        self.sink = sink

    async def stop_stream(self) -> None:
        self.stopped += 1


class FakeTransport:
    def __init__(self, results: tuple = (), fail: Optional[str] = None) -> None:
        self.posted: list[OutboundUpdate] = []
        self.rebroadcast_ids: list[int] = []
        self.queries: list[str] = []
        self._results = results
        self._fail = fail

    async def post(self, update: OutboundUpdate) -> None:
        if self._fail == "post":
            raise TransportFailure("post failed")
        self.posted.append(update)

    async def rebroadcast(self, status_id: int) -> None:
        if self._fail == "rebroadcast":
            raise TransportFailure("rebroadcast failed")
        self.rebroadcast_ids.append(status_id)

    async def search(self, query: str):
        self.queries.append(query)
        if self._fail == "search":
            raise TransportFailure("search failed")
        if self._fail == "disconnect":
            raise ConnectionError("disconnected")
        return list(self._results)


class FakeStore:
    def __init__(self) -> None:
        self.seen: set[str] = set()
        self.filters: list[FilterRequest] = []
        self.feedback: list[FeedbackSignal] = []
        self.examples: list[tuple[UserStatus, Optional[str]]] = []

    def is_seen(self, fingerprint: str) -> bool:
        return fingerprint in self.seen

    def mark_seen(self, fingerprint: str) -> None:
        self.seen.add(fingerprint)

    def save_filter(self, request: FilterRequest) -> None:
        self.filters.append(request)

    def save_feedback(self, signal: FeedbackSignal) -> None:
        self.feedback.append(signal)

    def save_example(self, status: UserStatus, topic: Optional[str]) -> None:
        self.examples.append((status, topic))


def _recording_router(transport: Optional[FakeTransport] = None, stream: Optional[FakeStream] = None):
    replier = RecordingMailbox()
    rebroadcaster = RecordingMailbox()
    model_factory = RecordingMailbox()
    router = EventRouter(
        username="Chatterbox",
        stream=stream or FakeStream(),
        transport=transport or FakeTransport(),
        store=FakeStore(),
        replier=replier,
        rebroadcaster=rebroadcaster,
        model_factory=model_factory,
    )
    return router, replier, rebroadcaster, model_factory


def _status(reply_author: Optional[str], status_id: int = 1, text: str = "hi") -> UserStatus:
    return UserStatus(
        status_id=status_id,
        author="alice",
        text=text,
        in_reply_to_author=reply_author,
        in_reply_to_status_id=10 if reply_author else None,
    )


def test_addressed_status_goes_to_replier_only() -> None:
    router, replier, rebroadcaster, _ = _recording_router()
    status = _status("chatterbox")

    asyncio.run(router.receive(status))

    assert replier.messages == [ReplyToStatus(status)]
    assert rebroadcaster.messages == []


def test_addressed_check_ignores_case_and_at_sign() -> None:
    router, replier, _, _ = _recording_router()
    asyncio.run(router.receive(_status("@ChatterBox")))
    assert len(replier.messages) == 1


def test_other_statuses_go_to_rebroadcaster_only() -> None:
    router, replier, rebroadcaster, _ = _recording_router()
    to_someone = _status("bob", status_id=2)
    to_nobody = _status(None, status_id=3)

    asyncio.run(router.receive(to_someone))
    asyncio.run(router.receive(to_nobody))

    assert replier.messages == []
    assert rebroadcaster.messages == [to_someone, to_nobody]


def test_start_and_shutdown_control_the_stream() -> None:
    stream = FakeStream()
    router, _, _, _ = _recording_router(stream=stream)

    asyncio.run(router.receive(Start()))
    assert stream.sink is router

    asyncio.run(router.receive(Shutdown()))
    assert stream.stopped == 1


def test_update_and_retweet_use_the_transport() -> None:
    transport = FakeTransport()
    router, _, _, _ = _recording_router(transport=transport)
    update = OutboundUpdate("@alice hi", in_reply_to_status_id=4)

    asyncio.run(router.receive(UpdateStatus(update)))
    asyncio.run(router.receive(Retweet(77)))

    assert transport.posted == [update]
    assert transport.rebroadcast_ids == [77]


def test_transport_failure_is_not_retried_or_raised() -> None:
    transport = FakeTransport(fail="post")
    router, _, _, _ = _recording_router(transport=transport)

    asyncio.run(router.receive(UpdateStatus(OutboundUpdate("x"))))

    assert transport.posted == []


def test_filter_and_feedback_go_to_model_factory() -> None:
    router, _, _, model_factory = _recording_router()
    request = FilterRequest(frozenset({"scala"}), frozenset(), "alice")
    signal = FeedbackSignal(5)

    asyncio.run(router.receive(request))
    asyncio.run(router.receive(signal))

    assert model_factory.messages == [request, signal]


def test_unknown_message_is_dropped() -> None:
    router, replier, rebroadcaster, model_factory = _recording_router()

    asyncio.run(router.receive(object()))

    assert replier.messages == rebroadcaster.messages == model_factory.messages == []


def test_default_models_registered_on_start() -> None:
    models = build_models([{"name": "scala", "topics": ["scala"]}])
    rebroadcaster = RecordingMailbox()
    router = EventRouter(
        username="chatterbox",
        stream=FakeStream(),
        transport=FakeTransport(),
        store=FakeStore(),
        default_models=models,
        rebroadcaster=rebroadcaster,
        replier=RecordingMailbox(),
        model_factory=RecordingMailbox(),
    )

    asyncio.run(router.on_start())

    assert rebroadcaster.messages == [AddModel(models[0])]


def test_search_request_is_answered() -> None:
    found = (UserStatus(1, "bob", "scala rocks"),)
    transport = FakeTransport(results=found)

    async def scenario():
        router, _, _, _ = _recording_router(transport=transport)
        router.start()
        try:
            return await ask(router, lambda reply: SearchRequest("scala", reply), timeout=1)
        finally:
            await router.stop()

    assert asyncio.run(scenario()) == found
    assert transport.queries == ["scala"]


def test_search_failure_reaches_the_requester() -> None:
    transport = FakeTransport(fail="search")

    async def scenario():
        router, _, _, _ = _recording_router(transport=transport)
        router.start()
        try:
            await ask(router, lambda reply: SearchRequest("scala", reply), timeout=1)
        finally:
            await router.stop()

    with pytest.raises(TransportFailure):
        asyncio.run(scenario())


def test_search_times_out_when_router_is_not_running() -> None:
    async def scenario():
        router, _, _, _ = _recording_router()
        await ask(router, lambda reply: SearchRequest("scala", reply), timeout=0.05)

    with pytest.raises(RequestTimeout):
        asyncio.run(scenario())


async def _settle(router: EventRouter) -> None:
    # Each pass drains one hop of router -> worker -> router traffic.
    for _ in range(4):
        await router.drain()
        for child in (router.replier, router.rebroadcaster, router.model_factory):
            await child.drain()


def test_end_to_end_reply_and_model_registration() -> None:
    transport = FakeTransport(results=(UserStatus(8, "odersky", "scala 3 is out"),))
    store = FakeStore()

    async def scenario():
        router = EventRouter(
            username="chatterbox",
            stream=FakeStream(),
            transport=transport,
            store=store,
            config=RouterConfig(mailbox_size=10, ask_timeout=1),
            dedup_config=DedupConfig(mode="per_author"),
        )
        router.start()
        router.tell(
            UserStatus(
                status_id=20,
                author="alice",
                text="tweets about scala like odersky",
                in_reply_to_author="chatterbox",
                in_reply_to_status_id=19,
            )
        )
        await _settle(router)
        router.tell(UserStatus(status_id=21, author="odersky", text="New #Scala release"))
        await _settle(router)
        await router.stop()

    asyncio.run(scenario())

    assert transport.posted == [OutboundUpdate("@alice Working on scala.", in_reply_to_status_id=20)]
    assert transport.queries == ["scala"]
    assert store.filters == [FilterRequest(frozenset({"scala"}), frozenset({"odersky"}), "alice")]
    assert [status.status_id for status, _ in store.examples] == [8]
    assert transport.rebroadcast_ids == [21]


def test_end_to_end_unparsable_reply() -> None:
    transport = FakeTransport()

    async def scenario():
        router = EventRouter(
            username="chatterbox",
            stream=FakeStream(),
            transport=transport,
            store=FakeStore(),
        )
        router.start()
        router.tell(UserStatus(3, "bob", "gibberish", "chatterbox", None))
        await _settle(router)
        await router.stop()

    asyncio.run(scenario())

    assert transport.posted == [OutboundUpdate(f"@bob {PARSE_MISS}", in_reply_to_status_id=3)]
    assert transport.rebroadcast_ids == []


def test_end_to_end_model_registered_when_search_breaks() -> None:
    transport = FakeTransport(fail="disconnect")
    store = FakeStore()

    async def scenario():
        router = EventRouter(
            username="chatterbox",
            stream=FakeStream(),
            transport=transport,
            store=store,
            config=RouterConfig(mailbox_size=10, ask_timeout=1),
        )
        router.start()
        router.tell(UserStatus(30, "alice", "@chatterbox tweets about scala like odersky", "chatterbox", None))
        await _settle(router)
        models = router.rebroadcaster.models
        await router.stop()
        return models

    models = asyncio.run(scenario())

    assert transport.posted == [OutboundUpdate("@alice Working on scala.", in_reply_to_status_id=30)]
    assert store.examples == []
    assert [model.name for model in models] == ["alice: scala"]
