"""Mailbox workers.

Every component of the bot runs as a Worker: one asyncio task draining a
private FIFO queue. Messages to a worker are handled strictly one at a time
in the order they were told, and workers only exchange frozen values from
core.models, so no state is shared between them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

from core.errors import RequestTimeout

LOGGER = logging.getLogger(__name__)


class Mailbox(Protocol):
    """Anything that accepts messages."""

    def tell(self, message: Any) -> None:
        ...


class Worker:
    """Base class for a component with its own mailbox and task.

    Subclasses implement receive(); on_start() runs once when the task
    starts, before the first message is handled.
    """

    def __init__(self, name: str, mailbox_size: int = 0) -> None:
        self.name = name
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=mailbox_size)
        self._task: Optional[asyncio.Task] = None

    def tell(self, message: Any) -> None:
        """Enqueue a message without waiting.

        When the mailbox is full the newest message is dropped.
        """

        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            LOGGER.warning("Mailbox of %s is full, dropping %s", self.name, type(message).__name__)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        """Cancel the worker task; queued messages are left unhandled."""

        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def drain(self) -> None:
        """Wait until every message told so far has been handled."""

        await self._queue.join()

    async def on_start(self) -> None:
        pass

    async def receive(self, message: Any) -> None:
        raise NotImplementedError

    async def _run(self) -> None:
        await self.on_start()
        while True:
            message = await self._queue.get()
            try:
                await self.receive(message)
            except Exception:
                LOGGER.exception("%s failed while handling %s", self.name, type(message).__name__)
            finally:
                self._queue.task_done()


async def ask(target: Mailbox, build: Callable[[asyncio.Future], Any], timeout: float) -> Any:
    """Send a request carrying a reply future and wait for the answer.

    build receives the future and returns the message to send. Raises
    RequestTimeout when nothing arrives within timeout seconds; failures
    set on the future are re-raised as-is.
    """

    reply = asyncio.get_running_loop().create_future()
    target.tell(build(reply))
    try:
        return await asyncio.wait_for(reply, timeout)
    except asyncio.TimeoutError as exc:
        raise RequestTimeout(f"No reply within {timeout:g}s") from exc
