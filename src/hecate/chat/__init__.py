"""Tool-calling core: permissions, approvals, execution and the streaming session."""

from __future__ import annotations

from hecate.chat.approval import ApprovalCoordinator, ApprovalDecision, PendingApproval
from hecate.chat.events import EventQueue
from hecate.chat.modes import InteractionMode, InteractionModeController, ModeChangeResult
from hecate.chat.permissions import PermissionLevel, PermissionStore
from hecate.chat.pipeline import ExecutionPipeline
from hecate.chat.streaming import SessionBusyError, SessionState, StreamingSessionController
from hecate.chat.tool_types import ToolCall, ToolOutcome, ToolResult
from hecate.chat.transcript import Transcript

__all__ = [
    "ApprovalCoordinator",
    "ApprovalDecision",
    "EventQueue",
    "ExecutionPipeline",
    "InteractionMode",
    "InteractionModeController",
    "ModeChangeResult",
    "PendingApproval",
    "PermissionLevel",
    "PermissionStore",
    "SessionBusyError",
    "SessionState",
    "StreamingSessionController",
    "ToolCall",
    "ToolOutcome",
    "ToolResult",
    "Transcript",
]
