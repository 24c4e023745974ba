"""Conversation transcript: what the user sees and what the model is sent."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable

from hecate.chat.tool_types import ToolCall, ToolResult


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    NOTICE = "notice"


@dataclass(eq=False)
class Message:
    role: Role
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str | None = None
    tool_name: str | None = None
    is_error: bool = False
    interrupted: bool = False
    failed: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def empty(self) -> bool:
        return not self.content and not self.tool_calls

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {"id": call.call_id, "name": call.name, "arguments": call.arguments} for call in self.tool_calls
            ]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
            data["tool_name"] = self.tool_name
        for flag in ("is_error", "interrupted", "failed"):
            if getattr(self, flag):
                data[flag] = True
        return data


TranscriptListener = Callable[[Message], None]


class Transcript:
    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._listeners: list[TranscriptListener] = []

    def add_listener(self, listener: TranscriptListener) -> None:
        self._listeners.append(listener)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        for listener in list(self._listeners):
            listener(message)
        return message

    def add_user(self, text: str) -> Message:
        return self._append(Message(Role.USER, text))

    def begin_assistant(self) -> Message:
        """Start an assistant message that is filled in as the response streams."""
        return self._append(Message(Role.ASSISTANT))

    def add_tool_result(self, result: ToolResult) -> Message:
        return self._append(
            Message(
                Role.TOOL,
                result.content,
                tool_call_id=result.call_id,
                tool_name=result.tool_name,
                is_error=result.is_error,
            )
        )

    def add_notice(self, text: str, *, failed: bool = False, interrupted: bool = False) -> Message:
        return self._append(Message(Role.NOTICE, text, failed=failed, interrupted=interrupted))

    def discard(self, message: Message) -> None:
        if message in self._messages:
            self._messages.remove(message)

    def clear(self) -> None:
        self._messages.clear()

    def history(self) -> list[Message]:
        """Messages the model should see; notices and empty turns are left out."""
        return [m for m in self._messages if m.role is not Role.NOTICE and not (m.role is Role.ASSISTANT and m.empty)]

    def export(self, messages: Iterable[Message] | None = None) -> list[Dict[str, Any]]:
        return [message.to_dict() for message in (self._messages if messages is None else messages)]
