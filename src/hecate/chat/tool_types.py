"""Tool call and result records shared by the pipeline, provider and transcript."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    call_id: str = field(default_factory=new_call_id)


class ToolOutcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    INVALID_ARGUMENTS = "invalid_arguments"
    BLOCKED = "blocked"
    DENIED = "denied"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ToolResult:
    call_id: str
    tool_name: str
    content: str
    outcome: ToolOutcome = ToolOutcome.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.outcome is not ToolOutcome.SUCCESS

    @classmethod
    def success(cls, call: ToolCall, content: str) -> "ToolResult":
        return cls(call_id=call.call_id, tool_name=call.name, content=content)

    @classmethod
    def failure(cls, call: ToolCall, outcome: ToolOutcome, content: str) -> "ToolResult":
        return cls(call_id=call.call_id, tool_name=call.name, content=content, outcome=outcome)
