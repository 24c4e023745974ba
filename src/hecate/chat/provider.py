"""Model-provider stream adapter built on pydantic-ai's direct model API."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol, Sequence, Union

from pydantic_ai.direct import model_request_stream  # type: ignore
from pydantic_ai.messages import (  # type: ignore
    ModelMessage,
    ModelRequest,
    ModelResponse,
    PartDeltaEvent,
    PartStartEvent,
    SystemPromptPart,
    TextPart,
    TextPartDelta,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model, ModelRequestParameters  # type: ignore
from pydantic_ai.models.anthropic import AnthropicModel  # type: ignore
from pydantic_ai.models.openai import OpenAIChatModel  # type: ignore
from pydantic_ai.models.test import TestModel  # type: ignore
from pydantic_ai.providers.anthropic import AnthropicProvider  # type: ignore
from pydantic_ai.providers.ollama import OllamaProvider  # type: ignore
from pydantic_ai.providers.openai import OpenAIProvider  # type: ignore
from pydantic_ai.providers.openrouter import OpenRouterProvider  # type: ignore
from pydantic_ai.tools import ToolDefinition  # type: ignore

from hecate.chat.tool_types import ToolCall, new_call_id
from hecate.chat.transcript import Message, Role
from hecate.log_utils import log_event
from hecate.tools.catalog import Tool

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434/v1"


class ProviderError(RuntimeError):
    """The model provider could not produce a response."""


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    call: ToolCall


ProviderEvent = Union[TextDelta, ToolCallRequest]


class ModelProvider(Protocol):
    name: str

    def stream(self, history: Sequence[Message], tools: Sequence[Tool]) -> AsyncIterator[ProviderEvent]: ...


def _require_key(env_var: str, provider: str) -> str:
    key = os.getenv(env_var)
    if not key:
        raise ProviderError(f"{env_var} is required for {provider} models")
    return key


def build_model(model_id: str) -> Model:
    """Build a pydantic-ai model from a ``provider:model`` id.

    ``test`` selects pydantic-ai's offline TestModel, which answers with text
    and never calls tools.
    """

    provider, _, name = model_id.partition(":")
    provider = provider.lower()
    if provider == "test":
        return TestModel(call_tools=[], custom_output_text=name or None)
    if not name:
        raise ProviderError(f"Model id must look like 'provider:model', got {model_id!r}")
    if provider == "openai":
        return OpenAIChatModel(name, provider=OpenAIProvider(api_key=_require_key("OPENAI_API_KEY", provider)))
    if provider == "anthropic":
        return AnthropicModel(name, provider=AnthropicProvider(api_key=_require_key("ANTHROPIC_API_KEY", provider)))
    if provider == "openrouter":
        return OpenAIChatModel(
            name, provider=OpenRouterProvider(api_key=_require_key("OPENROUTER_API_KEY", provider))
        )
    if provider == "ollama":
        base_url = os.getenv("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL
        return OpenAIChatModel(name, provider=OllamaProvider(base_url=base_url))
    raise ProviderError(f"Unknown model provider: {provider}")


def to_model_messages(history: Sequence[Message], system_prompt: str | None = None) -> list[ModelMessage]:
    """Convert transcript history into pydantic-ai request/response messages.

    Tool calls with no recorded result (for example from a cancelled response)
    are left out so providers never see an unanswered call.
    """

    answered = {m.tool_call_id for m in history if m.role is Role.TOOL and m.tool_call_id}
    messages: list[ModelMessage] = []
    request_parts: list[Any] = []
    if system_prompt:
        request_parts.append(SystemPromptPart(content=system_prompt))

    for message in history:
        if message.role is Role.USER:
            request_parts.append(UserPromptPart(content=message.content))
        elif message.role is Role.TOOL:
            request_parts.append(
                ToolReturnPart(
                    tool_name=message.tool_name or "",
                    content=message.content,
                    tool_call_id=message.tool_call_id or "",
                )
            )
        elif message.role is Role.ASSISTANT:
            if request_parts:
                messages.append(ModelRequest(parts=request_parts))
                request_parts = []
            parts: list[Any] = []
            if message.content:
                parts.append(TextPart(content=message.content))
            parts.extend(
                ToolCallPart(tool_name=call.name, args=dict(call.arguments), tool_call_id=call.call_id)
                for call in message.tool_calls
                if call.call_id in answered
            )
            if parts:
                messages.append(ModelResponse(parts=parts))

    if request_parts:
        messages.append(ModelRequest(parts=request_parts))
    return messages


def to_tool_definitions(tools: Sequence[Tool]) -> list[ToolDefinition]:
    return [
        ToolDefinition(
            name=tool.name,
            description=tool.description,
            parameters_json_schema=tool.parameters_schema(),
        )
        for tool in tools
    ]


class PydanticAIProvider:
    """Streams one model turn: text deltas first, then the turn's tool calls."""

    def __init__(self, model: Model | str, *, system_prompt: str | None = None) -> None:
        self._model = model
        self.system_prompt = system_prompt

    @property
    def name(self) -> str:
        if isinstance(self._model, str):
            return self._model
        return getattr(self._model, "model_name", type(self._model).__name__)

    async def stream(self, history: Sequence[Message], tools: Sequence[Tool]) -> AsyncIterator[ProviderEvent]:
        messages = to_model_messages(history, self.system_prompt)
        params = ModelRequestParameters(function_tools=to_tool_definitions(tools), allow_text_output=True)
        log_event(logger, "provider.request", model=self.name, messages=len(messages), tools=len(tools))
        try:
            async with model_request_stream(self._model, messages, model_request_parameters=params) as response:
                async for event in response:
                    text = _text_from_event(event)
                    if text:
                        yield TextDelta(text)
                final = response.get()
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(str(exc) or type(exc).__name__) from exc

        for part in final.parts:
            if isinstance(part, ToolCallPart):
                yield ToolCallRequest(
                    ToolCall(
                        name=part.tool_name,
                        arguments=_call_arguments(part),
                        call_id=part.tool_call_id or new_call_id(),
                    )
                )


def _text_from_event(event: Any) -> str:
    if isinstance(event, PartStartEvent) and isinstance(event.part, TextPart):
        return event.part.content
    if isinstance(event, PartDeltaEvent) and isinstance(event.delta, TextPartDelta):
        return event.delta.content_delta
    return ""


def _call_arguments(part: ToolCallPart) -> dict[str, Any]:
    try:
        return part.args_as_dict()
    except ValueError:
        log_event(logger, "provider.tool_args.invalid", level=logging.WARNING, tool=part.tool_name)
        return {}
