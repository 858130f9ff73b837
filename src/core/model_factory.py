"""Turns filter requests into rebroadcast models and records feedback."""

from __future__ import annotations

import logging
from typing import Any

from core.mailbox import Mailbox, Worker, ask
from core.models import FeedbackSignal, FilterRequest, SearchRequest, normalize_handle
from core.ports import ExampleStorePort
from core.rebroadcast import AddModel, model_for_filter

LOGGER = logging.getLogger(__name__)


class ModelFactory(Worker):
    """Builds a rebroadcast model per FilterRequest.

    Before registering the model it searches for the requested topic and
    stores statuses by the example authors, so later training has data to
    start from. A failed search is logged and the model is registered
    anyway.
    """

    def __init__(
        self,
        rebroadcaster: Mailbox,
        searcher: Mailbox,
        store: ExampleStorePort,
        ask_timeout: float,
        mailbox_size: int = 0,
    ) -> None:
        super().__init__("model-factory", mailbox_size)
        self._rebroadcaster = rebroadcaster
        self._searcher = searcher
        self._store = store
        self._ask_timeout = ask_timeout

    async def receive(self, message: Any) -> None:
        if isinstance(message, FilterRequest):
            await self._build(message)
        elif isinstance(message, FeedbackSignal):
            self._store.save_feedback(message)
            LOGGER.info("Recorded %s feedback on status %s", message.label, message.status_id)
        else:
            LOGGER.warning("Model factory ignoring %s", type(message).__name__)

    async def _build(self, request: FilterRequest) -> None:
        self._store.save_filter(request)
        await self._collect_examples(request)
        model = model_for_filter(request)
        self._rebroadcaster.tell(AddModel(model))
        LOGGER.info("Model built for %s", model.name)

    async def _collect_examples(self, request: FilterRequest) -> None:
        if not request.about:
            return
        query = " ".join(sorted(request.about))
        try:
            statuses = await ask(
                self._searcher,
                lambda reply: SearchRequest(query, reply),
                self._ask_timeout,
            )
        except Exception as exc:
            # Any search failure only costs the examples, never the model.
            LOGGER.warning("Example search for %r failed: %s: %s", query, type(exc).__name__, exc)
            return

        authors = {normalize_handle(user) for user in request.from_users}
        saved = 0
        for status in statuses:
            if authors and normalize_handle(status.author) not in authors:
                continue
            self._store.save_example(status, query)
            saved += 1
        LOGGER.info("Saved %s example(s) for %r", saved, query)
