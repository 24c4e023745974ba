"""Streaming session controller: the lifecycle of one model response.

A session moves ``idle -> streaming -> [awaiting_approval] -> completed``,
or ends as ``cancelled`` or ``failed``. Tool calls requested during a turn
run one at a time in request order; once the turn's stream has ended and
every call has a result, the next provider turn starts.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from hecate.chat.approval import ApprovalCoordinator, ApprovalDecision, PendingApproval
from hecate.chat.events import (
    ApprovalRequested,
    EventQueue,
    StreamChunk,
    StreamEnded,
    StreamFailed,
    ToolCallRequested,
    ToolCompleted,
)
from hecate.chat.pipeline import ExecutionPipeline
from hecate.chat.provider import ModelProvider, TextDelta, ToolCallRequest
from hecate.chat.tool_types import ToolCall, ToolOutcome, ToolResult
from hecate.chat.transcript import Message, Transcript
from hecate.log_utils import log_chunks_enabled, log_context, log_event
from hecate.tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_TURNS = 20


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    AWAITING_APPROVAL = "awaiting_approval"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = {SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED}


class SessionBusyError(RuntimeError):
    """A new message was submitted while a response is still running."""


@dataclass(eq=False)
class StreamingSession:
    session_id: str
    state: SessionState = SessionState.IDLE
    turn: int = 0
    stream_done: bool = False
    queued_calls: deque[ToolCall] = field(default_factory=deque)
    in_flight: ToolCall | None = None
    results: list[ToolResult] = field(default_factory=list)
    turn_calls: int = 0
    message: Message | None = None
    error: str | None = None
    stream_task: asyncio.Task[None] | None = field(default=None, repr=False)
    tool_task: asyncio.Task[ToolResult] | None = field(default=None, repr=False)

    @property
    def terminal(self) -> bool:
        return self.state.terminal


StateListener = Callable[[StreamingSession], None]
ChunkListener = Callable[[StreamingSession, str], None]
ApprovalListener = Callable[[StreamingSession, PendingApproval], None]
ResultListener = Callable[[StreamingSession, ToolResult], None]


class StreamingSessionController:
    def __init__(
        self,
        queue: EventQueue,
        provider: ModelProvider,
        pipeline: ExecutionPipeline,
        coordinator: ApprovalCoordinator,
        transcript: Transcript,
        catalog: ToolCatalog,
        *,
        tools_enabled: bool = True,
        max_tool_turns: int = DEFAULT_MAX_TOOL_TURNS,
    ) -> None:
        self._queue = queue
        self.provider = provider
        self._pipeline = pipeline
        self._coordinator = coordinator
        self._transcript = transcript
        self._catalog = catalog
        self.tools_enabled = tools_enabled
        self.max_tool_turns = max_tool_turns
        self._active: StreamingSession | None = None

        self.on_state: list[StateListener] = []
        self.on_chunk: list[ChunkListener] = []
        self.on_approval: list[ApprovalListener] = []
        self.on_tool_result: list[ResultListener] = []

        queue.subscribe(StreamChunk, self._handle_chunk)
        queue.subscribe(ToolCallRequested, self._handle_tool_call)
        queue.subscribe(StreamEnded, self._handle_stream_ended)
        queue.subscribe(StreamFailed, self._handle_stream_failed)
        queue.subscribe(ApprovalRequested, self._handle_approval_requested)
        queue.subscribe(ToolCompleted, self._handle_tool_completed)

    @property
    def active(self) -> StreamingSession | None:
        return self._active

    @property
    def running(self) -> bool:
        return self._active is not None and not self._active.terminal

    def can_submit(self) -> bool:
        return not self.running

    def submit(self, text: str) -> StreamingSession:
        if self.running:
            raise SessionBusyError("a response is still in progress")
        session = StreamingSession(session_id=uuid.uuid4().hex[:12])
        self._active = session
        self._transcript.add_user(text)
        log_event(logger, "stream.started", session_id=session.session_id, provider=self.provider.name)
        self._set_state(session, SessionState.STREAMING)
        self._start_turn(session)
        return session

    def cancel(self) -> bool:
        session = self._active
        if session is None or session.terminal:
            return False
        self._set_state(session, SessionState.CANCELLED)
        self._stop(session)
        if session.message is not None:
            session.message.interrupted = True
        self._transcript.add_notice("Response cancelled", interrupted=True)
        log_event(logger, "stream.cancelled", session_id=session.session_id, turn=session.turn)
        return True

    def decide(self, decision: ApprovalDecision) -> bool:
        """Apply the user's decision to the active session's pending approval."""
        session = self._active
        if session is None or not self._coordinator.has_pending(session.session_id):
            return False
        self._coordinator.resolve(decision)
        return True

    def _start_turn(self, session: StreamingSession) -> None:
        session.turn += 1
        session.stream_done = False
        session.turn_calls = 0
        session.results = []
        session.message = self._transcript.begin_assistant()
        tools = self._catalog.all() if self.tools_enabled else ()
        history = self._transcript.history()
        session.stream_task = asyncio.create_task(
            self._pump(session.session_id, session.turn, history, tools),
            name=f"stream-{session.session_id}-{session.turn}",
        )
        self._queue.track(session.stream_task)

    async def _pump(self, session_id: str, turn: int, history, tools) -> None:
        with log_context(session_id=session_id, turn=turn):
            try:
                async for item in self.provider.stream(history, tools):
                    if isinstance(item, TextDelta):
                        if log_chunks_enabled():
                            log_event(logger, "stream.chunk", level=logging.DEBUG, chars=len(item.text))
                        self._queue.post(StreamChunk(session_id, turn, item.text))
                    elif isinstance(item, ToolCallRequest):
                        self._queue.post(ToolCallRequested(session_id, turn, item.call))
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._queue.post(StreamFailed(session_id, turn, str(exc) or type(exc).__name__))
                return
            self._queue.post(StreamEnded(session_id, turn))

    def _current(self, session_id: str, turn: int | None, event: str) -> StreamingSession | None:
        session = self._active
        if session is None or session.session_id != session_id or session.terminal:
            log_event(logger, "stream.event.dropped", level=logging.DEBUG, session_id=session_id, event_type=event)
            return None
        if turn is not None and turn != session.turn:
            log_event(logger, "stream.event.dropped", level=logging.DEBUG, session_id=session_id, event_type=event)
            return None
        return session

    def _handle_chunk(self, event: StreamChunk) -> None:
        session = self._current(event.session_id, event.turn, "chunk")
        if session is None or session.message is None:
            return
        session.message.content += event.text
        for listener in list(self.on_chunk):
            listener(session, event.text)

    def _handle_tool_call(self, event: ToolCallRequested) -> None:
        session = self._current(event.session_id, event.turn, "tool_call")
        if session is None or session.message is None:
            return
        session.message.tool_calls.append(event.call)
        session.turn_calls += 1
        session.queued_calls.append(event.call)
        self._run_next_call(session)

    def _handle_stream_ended(self, event: StreamEnded) -> None:
        session = self._current(event.session_id, event.turn, "stream_ended")
        if session is None:
            return
        session.stream_done = True
        self._maybe_finish_turn(session)

    def _handle_stream_failed(self, event: StreamFailed) -> None:
        session = self._current(event.session_id, event.turn, "stream_failed")
        if session is None:
            return
        session.error = event.error
        self._set_state(session, SessionState.FAILED)
        self._stop(session)
        self._transcript.add_notice(f"Response failed: {event.error}", failed=True)
        log_event(logger, "stream.failed", level=logging.WARNING, session_id=session.session_id, error=event.error)

    def _handle_approval_requested(self, event: ApprovalRequested) -> None:
        session = self._current(event.session_id, None, "approval_requested")
        if session is None:
            # The session ended before this request was seen; release the slot.
            self._coordinator.discard(event.session_id)
            return
        pending: PendingApproval = event.pending
        if pending.resolved:
            return
        self._set_state(session, SessionState.AWAITING_APPROVAL)
        for listener in list(self.on_approval):
            listener(session, pending)

    def _handle_tool_completed(self, event: ToolCompleted) -> None:
        session = self._current(event.session_id, None, "tool_completed")
        if session is None:
            return
        result = event.result
        if session.in_flight is None or session.in_flight.call_id != result.call_id:
            log_event(logger, "stream.event.dropped", level=logging.DEBUG, session_id=session.session_id,
                      event_type="stale_tool_result", call_id=result.call_id)
            return
        session.in_flight = None
        session.results.append(result)
        self._transcript.add_tool_result(result)
        if session.state is SessionState.AWAITING_APPROVAL:
            self._set_state(session, SessionState.STREAMING)
        for listener in list(self.on_tool_result):
            listener(session, result)
        self._run_next_call(session)
        self._maybe_finish_turn(session)

    def _run_next_call(self, session: StreamingSession) -> None:
        if session.in_flight is not None or not session.queued_calls:
            return
        call = session.queued_calls.popleft()
        session.in_flight = call
        session_id = session.session_id

        def _on_suspend(pending: PendingApproval) -> None:
            self._queue.post(ApprovalRequested(session_id, pending))

        def _on_error(exc: BaseException) -> ToolCompleted:
            logger.error("Tool pipeline crashed for %s: %s", call.name, exc)
            failure = ToolResult.failure(call, ToolOutcome.FAILED, f"Tool '{call.name}' failed: {exc}")
            return ToolCompleted(session_id, failure)

        session.tool_task = self._queue.spawn(
            self._pipeline.invoke(session_id, call, on_suspend=_on_suspend),
            on_done=lambda result: ToolCompleted(session_id, result),
            on_error=_on_error,
            name=f"tool-{call.name}-{call.call_id}",
        )

    def _maybe_finish_turn(self, session: StreamingSession) -> None:
        if session.terminal or not session.stream_done:
            return
        if session.in_flight is not None or session.queued_calls:
            return
        if session.message is not None and session.message.empty:
            self._transcript.discard(session.message)
        if session.turn_calls == 0:
            self._set_state(session, SessionState.COMPLETED)
            log_event(logger, "stream.completed", session_id=session.session_id, turns=session.turn)
            return
        if session.turn >= self.max_tool_turns:
            self._set_state(session, SessionState.COMPLETED)
            self._transcript.add_notice(f"Stopped after {self.max_tool_turns} tool rounds")
            log_event(logger, "stream.turn_limit", level=logging.WARNING, session_id=session.session_id)
            return
        self._start_turn(session)

    def _stop(self, session: StreamingSession) -> None:
        if session.stream_task is not None and not session.stream_task.done():
            session.stream_task.cancel()
        if session.tool_task is not None and not session.tool_task.done():
            session.tool_task.cancel()
        session.queued_calls.clear()
        self._coordinator.discard(session.session_id)

    def _set_state(self, session: StreamingSession, state: SessionState) -> None:
        if session.state is state:
            return
        session.state = state
        for listener in list(self.on_state):
            listener(session)
