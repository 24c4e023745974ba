from __future__ import annotations

import pytest
from pydantic_ai.messages import (  # type: ignore
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models.test import TestModel  # type: ignore

from hecate.chat.provider import (
    ProviderError,
    PydanticAIProvider,
    TextDelta,
    ToolCallRequest,
    build_model,
    to_model_messages,
    to_tool_definitions,
)
from hecate.chat.tool_types import ToolCall
from hecate.chat.transcript import Message, Role
from tests.utils import PathArgs, make_tool


def test_to_model_messages_groups_requests_and_drops_unanswered_calls() -> None:
    history = [
        Message(Role.USER, "read a.txt"),
        Message(
            Role.ASSISTANT,
            "Reading.",
            tool_calls=[ToolCall("read_file", {"path": "a.txt"}, "c1"), ToolCall("read_file", {"path": "b"}, "c2")],
        ),
        Message(Role.TOOL, "contents", tool_call_id="c1", tool_name="read_file"),
        Message(Role.USER, "thanks"),
    ]

    messages = to_model_messages(history, system_prompt="be brief")

    assert [type(m) for m in messages] == [ModelRequest, ModelResponse, ModelRequest]
    first, response, second = messages
    assert [type(p) for p in first.parts] == [SystemPromptPart, UserPromptPart]
    assert [type(p) for p in response.parts] == [TextPart, ToolCallPart]
    assert response.parts[1].tool_call_id == "c1"
    assert [type(p) for p in second.parts] == [ToolReturnPart, UserPromptPart]
    assert second.parts[0].content == "contents"


def test_to_model_messages_skips_empty_assistant_turns() -> None:
    history = [
        Message(Role.USER, "hi"),
        Message(Role.ASSISTANT, "", tool_calls=[ToolCall("write_file", {}, "never-answered")]),
    ]

    messages = to_model_messages(history)

    assert len(messages) == 1
    assert isinstance(messages[0], ModelRequest)


def test_to_tool_definitions_uses_catalog_schemas() -> None:
    definitions = to_tool_definitions([make_tool("read_file", args_model=PathArgs)])

    assert definitions[0].name == "read_file"
    assert definitions[0].description == "read_file test tool"
    assert definitions[0].parameters_json_schema["required"] == ["path"]


def test_build_model_test_provider() -> None:
    assert isinstance(build_model("test"), TestModel)
    assert isinstance(build_model("TEST:canned reply"), TestModel)


@pytest.mark.parametrize(
    ("model_id", "message"),
    [
        ("gpt-4o", "provider:model"),
        ("mystery:model", "Unknown model provider: mystery"),
        ("openai:gpt-4o", "OPENAI_API_KEY is required"),
        ("anthropic:claude-sonnet-4-5", "ANTHROPIC_API_KEY is required"),
        ("openrouter:some/model", "OPENROUTER_API_KEY is required"),
    ],
)
def test_build_model_errors(model_id: str, message: str, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OPENROUTER_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ProviderError, match=message):
        build_model(model_id)


@pytest.mark.asyncio
async def test_provider_streams_text_from_test_model() -> None:
    provider = PydanticAIProvider(TestModel(call_tools=[], custom_output_text="hello there"), system_prompt="sys")

    events = [event async for event in provider.stream([Message(Role.USER, "hi")], [make_tool("read_file")])]

    assert all(isinstance(event, TextDelta) for event in events)
    assert "".join(event.text for event in events) == "hello there"
    assert provider.name == "test"


@pytest.mark.asyncio
async def test_provider_emits_tool_calls_after_text() -> None:
    provider = PydanticAIProvider(TestModel(call_tools=["read_file"]))

    events = [
        event
        async for event in provider.stream(
            [Message(Role.USER, "read something")], [make_tool("read_file", args_model=PathArgs)]
        )
    ]

    calls = [event.call for event in events if isinstance(event, ToolCallRequest)]
    assert [call.name for call in calls] == ["read_file"]
    assert "path" in calls[0].arguments
    assert calls[0].call_id
