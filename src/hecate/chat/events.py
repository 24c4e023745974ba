"""Single FIFO event queue driving all client state changes.

Handlers run one at a time on the event loop and are the only code that
mutates session, approval and mode state. Background work (provider streams,
tool invocations) runs as tasks that report back by posting events.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, TypeVar

from hecate.chat.tool_types import ToolCall, ToolResult

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")
T = TypeVar("T")
Handler = Callable[[Any], None]


def _close_unstarted(coro: Any) -> None:
    if inspect.getcoroutinestate(coro) == inspect.CORO_CREATED:
        coro.close()


@dataclass(frozen=True)
class Event:
    pass


@dataclass(frozen=True)
class UserInput(Event):
    text: str


@dataclass(frozen=True)
class CancelRequested(Event):
    """The user pressed the cancel key (Esc)."""


@dataclass(frozen=True)
class StreamChunk(Event):
    session_id: str
    turn: int
    text: str


@dataclass(frozen=True)
class ToolCallRequested(Event):
    session_id: str
    turn: int
    call: ToolCall


@dataclass(frozen=True)
class StreamEnded(Event):
    session_id: str
    turn: int


@dataclass(frozen=True)
class StreamFailed(Event):
    session_id: str
    turn: int
    error: str


@dataclass(frozen=True)
class ApprovalRequested(Event):
    session_id: str
    pending: Any


@dataclass(frozen=True)
class ToolCompleted(Event):
    session_id: str
    result: ToolResult


@dataclass(frozen=True)
class Notice(Event):
    text: str
    level: str = "info"


class EventQueue:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._handlers: Dict[type, list[Handler]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._running = False

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def post(self, event: Event) -> None:
        self._queue.put_nowait(event)

    def spawn(
        self,
        work: Awaitable[T],
        *,
        on_done: Callable[[T], Event | None],
        on_error: Callable[[BaseException], Event | None],
        name: str | None = None,
    ) -> asyncio.Task[T]:
        """Run ``work`` in the background and post one event when it settles.

        Cancelled work posts nothing. A task cancelled before it starts never runs ``work``.
        """

        async def _runner() -> T:
            try:
                result = await work
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                event = on_error(exc)
                if event is not None:
                    self.post(event)
                raise
            event = on_done(result)
            if event is not None:
                self.post(event)
            return result

        task = asyncio.create_task(_runner(), name=name)
        if inspect.iscoroutine(work):
            task.add_done_callback(lambda _task: _close_unstarted(work))
        self.track(task)
        return task

    def track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Background task %s ended with %r", task.get_name(), exc)

    def dispatch(self, event: Event) -> None:
        for cls in type(event).__mro__:
            for handler in list(self._handlers.get(cls, ())):
                try:
                    handler(event)
                except Exception:
                    logger.exception("Handler %r failed for %s", handler, type(event).__name__)

    async def run(self) -> None:
        self._running = True
        while self._running:
            event = await self._queue.get()
            self.dispatch(event)

    def stop(self) -> None:
        self._running = False
        self.post(Notice("event loop stopping", level="debug"))

    async def cancel_tasks(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run_until_idle(self, *, settle_rounds: int = 10) -> None:
        """Dispatch until nothing is queued for several loop iterations."""
        quiet = 0
        while quiet < settle_rounds:
            if self._queue.empty():
                quiet += 1
                await asyncio.sleep(0)
                continue
            quiet = 0
            self.dispatch(self._queue.get_nowait())

    async def run_until(self, predicate: Callable[[], bool], *, timeout: float = 5.0) -> None:
        """Dispatch events until ``predicate()`` holds; raises ``TimeoutError``."""

        async def _loop() -> None:
            while not predicate():
                event = await self._queue.get()
                self.dispatch(event)

        await asyncio.wait_for(_loop(), timeout=timeout)
