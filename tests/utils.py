from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict

from hecate.chat.approval import ApprovalCoordinator
from hecate.chat.events import EventQueue
from hecate.chat.modes import InteractionMode
from hecate.chat.permissions import PermissionStore
from hecate.chat.pipeline import ExecutionPipeline
from hecate.chat.provider import TextDelta, ToolCallRequest
from hecate.chat.streaming import StreamingSessionController
from hecate.chat.tool_types import ToolCall
from hecate.chat.transcript import Message, Transcript
from hecate.tools.catalog import Tool, ToolCatalog, ToolCategory, ToolError

HOLD = "__hold__"


class FreeArgs(BaseModel):
    model_config = ConfigDict(extra="allow")


class PathArgs(BaseModel):
    path: str


@dataclass
class FakeSurface:
    """Surface that records attach/detach calls and the input routed to it."""

    mode: InteractionMode
    events: list[str] = field(default_factory=list)
    inputs: list[str] = field(default_factory=list)

    def attach(self) -> None:
        self.events.append("attach")

    def detach(self) -> None:
        self.events.append("detach")

    def handle_input(self, text: str) -> None:
        self.inputs.append(text)


def text(value: str) -> TextDelta:
    return TextDelta(value)


def call(name: str, call_id: str | None = None, **arguments: Any) -> ToolCallRequest:
    return ToolCallRequest(ToolCall(name=name, arguments=arguments, call_id=call_id or f"call_{name}"))


@dataclass
class RecordingTool:
    """Tool handler that records every invocation and can be made to block or fail."""

    name: str
    output: str = ""
    error: Exception | None = None
    gate: asyncio.Event | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def __call__(self, args: BaseModel) -> str:
        self.calls.append(args.model_dump())
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.output or f"{self.name} ok"


def make_tool(
    name: str,
    *,
    requires_approval: bool = False,
    handler: Any = None,
    args_model: type[BaseModel] = FreeArgs,
    category: ToolCategory = ToolCategory.SYSTEM,
    timeout_s: float | None = None,
) -> Tool:
    return Tool(
        name=name,
        category=category,
        description=f"{name} test tool",
        args_model=args_model,
        handler=handler or RecordingTool(name),
        requires_approval=requires_approval,
        summary=f"{name}: {{path}}" if args_model is PathArgs else None,
        timeout_s=timeout_s,
    )


class ScriptedProvider:
    """Replays one scripted turn per ``stream`` call.

    Items are ``TextDelta``/``ToolCallRequest`` values, an exception to raise,
    or ``HOLD`` to block until ``release`` is set.
    """

    name = "scripted"

    def __init__(self, turns: Sequence[Sequence[Any]] = ()) -> None:
        self.turns = [list(turn) for turn in turns]
        self.histories: list[list[Message]] = []
        self.tool_names: list[list[str]] = []
        self.release = asyncio.Event()
        self.holding = asyncio.Event()
        self.system_prompt: str | None = None

    async def stream(self, history: Sequence[Message], tools: Sequence[Tool]):
        self.histories.append(list(history))
        self.tool_names.append([tool.name for tool in tools])
        items = self.turns.pop(0) if self.turns else [text("done")]
        for item in items:
            if item == HOLD:
                self.holding.set()
                await self.release.wait()
                continue
            if isinstance(item, Exception):
                raise item
            yield item


async def settle_until(queue: EventQueue, predicate, rounds: int = 50) -> None:
    """Drain the queue until ``predicate()`` holds, for state changed by background tasks."""
    for _ in range(rounds):
        await queue.run_until_idle()
        if predicate():
            return
    raise AssertionError("condition never held")


@dataclass
class Harness:
    queue: EventQueue
    catalog: ToolCatalog
    permissions: PermissionStore
    coordinator: ApprovalCoordinator
    pipeline: ExecutionPipeline
    transcript: Transcript
    provider: ScriptedProvider
    controller: StreamingSessionController

    async def settle(self) -> None:
        await self.queue.run_until_idle()

    async def run_until(self, predicate, timeout: float = 5.0) -> None:
        await self.queue.run_until(predicate, timeout=timeout)

    async def close(self) -> None:
        await self.queue.cancel_tasks()


def make_harness(
    tools: Sequence[Tool],
    turns: Sequence[Sequence[Any]] = (),
    *,
    max_tool_turns: int = 20,
    timeout_s: float = 5.0,
) -> Harness:
    queue = EventQueue()
    catalog = ToolCatalog(tools)
    permissions = PermissionStore(catalog)
    coordinator = ApprovalCoordinator()
    pipeline = ExecutionPipeline(catalog, permissions, coordinator, timeout_s=timeout_s)
    transcript = Transcript()
    provider = ScriptedProvider(turns)
    controller = StreamingSessionController(
        queue,
        provider,
        pipeline,
        coordinator,
        transcript,
        catalog,
        max_tool_turns=max_tool_turns,
    )
    return Harness(queue, catalog, permissions, coordinator, pipeline, transcript, provider, controller)


__all__ = [
    "HOLD",
    "FakeSurface",
    "FreeArgs",
    "Harness",
    "PathArgs",
    "RecordingTool",
    "ScriptedProvider",
    "ToolError",
    "call",
    "make_harness",
    "make_tool",
    "settle_until",
    "text",
]
