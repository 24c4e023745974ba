"""Approval coordinator: one pending tool approval at a time, resolved by the user."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from hecate.chat.tool_types import ToolCall
from hecate.log_utils import log_event
from hecate.tools.catalog import Tool

logger = logging.getLogger(__name__)


class ApprovalDecision(str, Enum):
    APPROVE_ONCE = "approve_once"
    APPROVE_SESSION = "approve_session"
    DENY = "deny"


class ApprovalState(str, Enum):
    CREATED = "created"
    APPROVED_ONCE = "approved_once"
    APPROVED_SESSION = "approved_session"
    DENIED = "denied"


_STATE_FOR_DECISION = {
    ApprovalDecision.APPROVE_ONCE: ApprovalState.APPROVED_ONCE,
    ApprovalDecision.APPROVE_SESSION: ApprovalState.APPROVED_SESSION,
    ApprovalDecision.DENY: ApprovalState.DENIED,
}

# Keys accepted at the approval prompt.
APPROVAL_KEYS: Dict[str, ApprovalDecision] = {
    "y": ApprovalDecision.APPROVE_ONCE,
    "a": ApprovalDecision.APPROVE_SESSION,
    "n": ApprovalDecision.DENY,
}


class ApprovalPendingError(RuntimeError):
    """Raised when a second approval is opened while one is still pending."""


class NoPendingApprovalError(RuntimeError):
    """Raised when a decision arrives but nothing is waiting for one."""


@dataclass(eq=False)
class PendingApproval:
    session_id: str
    tool: Tool
    call: ToolCall
    future: "asyncio.Future[ApprovalDecision]"
    state: ApprovalState = ApprovalState.CREATED
    discarded: bool = False

    @property
    def resolved(self) -> bool:
        return self.state is not ApprovalState.CREATED

    def describe(self) -> str:
        return self.tool.describe_call(self.call.arguments)


class ApprovalCoordinator:
    """Holds the single pending-approval slot.

    The slot is shared by all sessions but only one request can occupy it, so
    a session holding it blocks any other approval until resolved or
    discarded.
    """

    def __init__(self) -> None:
        self._pending: PendingApproval | None = None

    @property
    def pending(self) -> PendingApproval | None:
        return self._pending

    def has_pending(self, session_id: str | None = None) -> bool:
        if self._pending is None:
            return False
        return session_id is None or self._pending.session_id == session_id

    def open(self, session_id: str, tool: Tool, call: ToolCall) -> PendingApproval:
        if self._pending is not None:
            raise ApprovalPendingError(
                f"approval for {self._pending.tool.name!r} is still pending in session {self._pending.session_id}"
            )
        future: asyncio.Future[ApprovalDecision] = asyncio.get_running_loop().create_future()
        request = PendingApproval(session_id=session_id, tool=tool, call=call, future=future)
        self._pending = request
        log_event(
            logger,
            "approval.opened",
            session_id=session_id,
            tool=tool.name,
            call_id=call.call_id,
            summary=request.describe(),
        )
        return request

    def resolve(self, decision: ApprovalDecision) -> PendingApproval:
        request = self._pending
        if request is None:
            raise NoPendingApprovalError("no approval is pending")
        self._settle(request, decision)
        log_event(
            logger,
            "approval.resolved",
            session_id=request.session_id,
            tool=request.tool.name,
            call_id=request.call.call_id,
            decision=decision.value,
        )
        return request

    def discard(self, session_id: str) -> PendingApproval | None:
        """Resolve the session's pending request as denied, if there is one."""
        request = self._pending
        if request is None or request.session_id != session_id:
            return None
        request.discarded = True
        self._settle(request, ApprovalDecision.DENY)
        log_event(
            logger,
            "approval.discarded",
            session_id=session_id,
            tool=request.tool.name,
            call_id=request.call.call_id,
        )
        return request

    def _settle(self, request: PendingApproval, decision: ApprovalDecision) -> None:
        self._pending = None
        request.state = _STATE_FOR_DECISION[decision]
        if not request.future.done():
            request.future.set_result(decision)
