"""Event router: the supervising worker of the bot.

The router is the only worker allowed to touch the transport. Every other
worker hands it requests (UpdateStatus, Retweet, SearchRequest) and it
performs them. Inbound messages are matched against the dispatch order
below; the first match wins and exactly one action runs:

1) Start / Shutdown control the stream
2) SearchRequest runs a search and resolves the request's future
3) UpdateStatus posts
4) UserStatus goes to the replier when addressed to us, else the rebroadcaster
5) Retweet rebroadcasts
6) FilterRequest / FeedbackSignal go to the model factory
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from core.config import DedupConfig, RouterConfig
from core.errors import TransportFailure
from core.mailbox import Mailbox, Worker
from core.model_factory import ModelFactory
from core.models import (
    FeedbackSignal,
    FilterRequest,
    ReplyToStatus,
    Retweet,
    SearchRequest,
    Shutdown,
    Start,
    UpdateStatus,
    UserStatus,
    normalize_handle,
)
from core.ports import ExampleStorePort, StreamPort, TransportPort
from core.rebroadcast import AddModel, RebroadcastHandler, RebroadcastModel
from core.replier import ReplyHandler

LOGGER = logging.getLogger(__name__)


class EventRouter(Worker):
    """Classifies inbound events and dispatches them to one handler each."""

    def __init__(
        self,
        username: str,
        stream: StreamPort,
        transport: TransportPort,
        store: ExampleStorePort,
        config: RouterConfig = RouterConfig(),
        dedup_config: DedupConfig = DedupConfig(),
        default_models: Iterable[RebroadcastModel] = (),
        *,
        replier: Optional[Mailbox] = None,
        rebroadcaster: Optional[Mailbox] = None,
        model_factory: Optional[Mailbox] = None,
    ) -> None:
        super().__init__("router", config.mailbox_size)
        self.username = normalize_handle(username)
        self._stream = stream
        self._transport = transport
        self._default_models = list(default_models)

        if replier is None:
            replier = ReplyHandler(self, config.mailbox_size)
        if rebroadcaster is None:
            rebroadcaster = RebroadcastHandler(self, self.username, store, dedup_config, config.mailbox_size)
        if model_factory is None:
            model_factory = ModelFactory(rebroadcaster, self, store, config.ask_timeout, config.mailbox_size)
        self.replier = replier
        self.rebroadcaster = rebroadcaster
        self.model_factory = model_factory

    def _children(self) -> list:
        return [self.replier, self.rebroadcaster, self.model_factory]

    def start(self) -> None:
        for child in self._children():
            if isinstance(child, Worker):
                child.start()
        super().start()

    async def stop(self) -> None:
        await super().stop()
        for child in self._children():
            if isinstance(child, Worker):
                await child.stop()

    async def on_start(self) -> None:
        for model in self._default_models:
            self.rebroadcaster.tell(AddModel(model))

    def is_addressed(self, status: UserStatus) -> bool:
        if not status.in_reply_to_author:
            return False
        return normalize_handle(status.in_reply_to_author) == self.username

    async def receive(self, message: Any) -> None:
        if isinstance(message, Start):
            LOGGER.info("Starting user stream for @%s", self.username)
            await self._stream.start_user_stream(self)
        elif isinstance(message, Shutdown):
            LOGGER.info("Stopping user stream")
            await self._stream.stop_stream()
        elif isinstance(message, SearchRequest):
            await self._search(message)
        elif isinstance(message, UpdateStatus):
            LOGGER.info("Posting update: %s", message.update.text)
            await self._call("post", self._transport.post(message.update))
        elif isinstance(message, UserStatus):
            self._route_status(message)
        elif isinstance(message, Retweet):
            await self._call("rebroadcast", self._transport.rebroadcast(message.status_id))
        elif isinstance(message, (FilterRequest, FeedbackSignal)):
            self.model_factory.tell(message)
        else:
            LOGGER.warning("Dropping unroutable message: %r", message)

    def _route_status(self, status: UserStatus) -> None:
        LOGGER.info("New status: %s", status.text)
        if self.is_addressed(status):
            LOGGER.info("Replying to: %s", status.text)
            self.replier.tell(ReplyToStatus(status))
        else:
            self.rebroadcaster.tell(status)

    async def _search(self, request: SearchRequest) -> None:
        try:
            statuses = tuple(await self._transport.search(request.query))
        except Exception as exc:
            # The requester owns the failure; it is re-raised from its ask().
            if not request.reply.done():
                request.reply.set_exception(exc)
            return
        if not request.reply.done():
            request.reply.set_result(statuses)

    async def _call(self, action: str, call) -> None:
        try:
            await call
        except TransportFailure:
            LOGGER.exception("Transport %s failed", action)
