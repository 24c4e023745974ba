"""Execution pipeline: lookup, permission check, approval and invocation of tool calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from pydantic import BaseModel, ValidationError

from hecate.chat.approval import ApprovalCoordinator, ApprovalDecision, PendingApproval
from hecate.chat.permissions import PermissionLevel, PermissionStore
from hecate.chat.tool_types import ToolCall, ToolOutcome, ToolResult
from hecate.log_utils import log_context, log_event
from hecate.tools.catalog import Tool, ToolCatalog, ToolError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60.0
DEFAULT_OUTPUT_LIMIT = 20_000

SuspendCallback = Callable[[PendingApproval], None]


class ToolInFlightError(RuntimeError):
    """A session tried to run a second tool call before the first finished."""


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class ExecutionPipeline:
    """Runs one model-requested tool call at a time per session.

    Every outcome, including unknown tools, policy blocks, user denials and
    handler crashes, comes back as a ``ToolResult``; only cancellation of the
    calling task propagates.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        permissions: PermissionStore,
        coordinator: ApprovalCoordinator,
        *,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
    ) -> None:
        self._catalog = catalog
        self._permissions = permissions
        self._coordinator = coordinator
        self._timeout_s = timeout_s
        self._output_limit = output_limit
        self._in_flight: set[str] = set()

    def in_flight(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def invoke(
        self,
        session_id: str,
        call: ToolCall,
        *,
        on_suspend: SuspendCallback | None = None,
    ) -> ToolResult:
        if session_id in self._in_flight:
            raise ToolInFlightError(f"session {session_id} already has a tool call in flight")
        self._in_flight.add(session_id)
        try:
            with log_context(session_id=session_id, tool=call.name, call_id=call.call_id):
                return await self._invoke(session_id, call, on_suspend)
        finally:
            self._in_flight.discard(session_id)

    async def _invoke(self, session_id: str, call: ToolCall, on_suspend: SuspendCallback | None) -> ToolResult:
        tool = self._catalog.get(call.name)
        if tool is None:
            log_event(logger, "tool.not_found", level=logging.WARNING)
            return ToolResult.failure(call, ToolOutcome.NOT_FOUND, f"Unknown tool: {call.name}")

        # Checked on every call so the latest store write always applies.
        level = self._permissions.check(tool.name)
        if level is PermissionLevel.DENY:
            log_event(logger, "tool.blocked")
            return ToolResult.failure(call, ToolOutcome.BLOCKED, f"Tool '{tool.name}' blocked by policy")

        try:
            args = tool.validate_args(call.arguments)
        except ValidationError as exc:
            detail = _format_validation_error(exc)
            log_event(logger, "tool.invalid_arguments", level=logging.WARNING, error=detail)
            return ToolResult.failure(
                call, ToolOutcome.INVALID_ARGUMENTS, f"Invalid arguments for {tool.name}: {detail}"
            )

        if level is PermissionLevel.ASK:
            decision = await self._await_approval(session_id, tool, call, on_suspend)
            if decision is ApprovalDecision.DENY:
                log_event(logger, "tool.denied")
                return ToolResult.failure(call, ToolOutcome.DENIED, f"Tool '{tool.name}' denied by user")
            if decision is ApprovalDecision.APPROVE_SESSION:
                self._permissions.set(tool.name, PermissionLevel.ALLOW)

        return await self._execute(tool, call, args)

    async def _await_approval(
        self,
        session_id: str,
        tool: Tool,
        call: ToolCall,
        on_suspend: SuspendCallback | None,
    ) -> ApprovalDecision:
        request = self._coordinator.open(session_id, tool, call)
        try:
            if on_suspend is not None:
                on_suspend(request)
            return await request.future
        except asyncio.CancelledError:
            self._coordinator.discard(session_id)
            raise

    async def _execute(self, tool: Tool, call: ToolCall, args: BaseModel) -> ToolResult:
        timeout = self._timeout_s if tool.timeout_s is None else tool.timeout_s
        log_event(logger, "tool.invoke", timeout_s=timeout or None)
        try:
            if timeout:
                output = await asyncio.wait_for(tool.handler(args), timeout=timeout)
            else:
                output = await tool.handler(args)
        except ToolError as exc:
            log_event(logger, "tool.failed", level=logging.WARNING, error=str(exc))
            return ToolResult.failure(call, ToolOutcome.FAILED, f"Tool '{tool.name}' failed: {exc}")
        except asyncio.TimeoutError:
            log_event(logger, "tool.timeout", level=logging.WARNING, timeout_s=timeout)
            return ToolResult.failure(call, ToolOutcome.TIMEOUT, f"Tool '{tool.name}' timed out after {timeout:g}s")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Tool %s raised", tool.name)
            return ToolResult.failure(call, ToolOutcome.FAILED, f"Tool '{tool.name}' failed: {exc}")

        content = output if isinstance(output, str) else str(output)
        if len(content) > self._output_limit:
            omitted = len(content) - self._output_limit
            content = content[: self._output_limit] + f"\n... (output truncated, {omitted} chars omitted)"
        log_event(logger, "tool.completed", chars=len(content))
        return ToolResult.success(call, content)
