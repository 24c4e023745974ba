"""Client-side slash command registry and dispatch."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable

from hecate.chat.events import EventQueue
from hecate.chat.modes import InteractionMode, InteractionModeController
from hecate.chat.permissions import PermissionLevel, PermissionStore
from hecate.chat.provider import PydanticAIProvider, ProviderError, build_model
from hecate.chat.streaming import StreamingSessionController
from hecate.chat.transcript import Transcript
from hecate.client import display
from hecate.client.session_state import SessionUIState
from hecate.client.status_box import render_status_box
from hecate.client.surfaces import EditorSurface, FormField, FormRequest, FormRequested, ToolBrowserSurface
from hecate.tools.catalog import ToolCatalog, ToolNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class SlashContext:
    state: SessionUIState
    queue: EventQueue
    streaming: StreamingSessionController
    modes: InteractionModeController
    catalog: ToolCatalog
    permissions: PermissionStore
    transcript: Transcript
    editor: EditorSurface
    browser: ToolBrowserSurface
    on_exit: Callable[[], None] = lambda: None


SlashHandler = Callable[[SlashContext, str], Awaitable[bool] | bool]


@dataclass
class SlashCommandDef:
    description: str
    hint: str
    handler: SlashHandler


SLASH_HANDLERS: dict[str, SlashCommandDef] = {}


def register_slash_command(name: str, description: str, hint: str) -> Callable[[SlashHandler], SlashHandler]:
    """Decorator to register a slash command."""

    def _decorator(func: SlashHandler) -> SlashHandler:
        SLASH_HANDLERS[name] = SlashCommandDef(description=description, hint=hint, handler=func)
        return func

    return _decorator


@register_slash_command("/help", description="Show available slash commands.", hint="/help")
def _handle_help(_ctx: SlashContext, _argument: str) -> bool:
    display.print_commands((entry.hint, entry.description) for entry in SLASH_HANDLERS.values())
    return True


@register_slash_command("/status", description="Show mode, session state, model and daemon.", hint="/status")
def _handle_status(ctx: SlashContext, _argument: str) -> bool:
    active = ctx.streaming.active
    display.print_agent_text(render_status_box(ctx.state, ctx.modes.mode, active.state if active else None))
    return True


_TOOLS_USAGE = "Usage: /tools [list|enable|disable|allow|ask|reset <name>|on|off]"


@register_slash_command(
    "/tools",
    description="List tools or change a tool's permission.",
    hint="/tools [action] [name]",
)
def _handle_tools(ctx: SlashContext, argument: str) -> bool:
    parts = argument.split()
    action = parts[0].lower() if parts else "list"
    if action == "list" and len(parts) <= 1:
        display.print_tools_table(ctx.browser.rows(), ctx.permissions)
        return True
    if action in {"on", "off"} and len(parts) == 1:
        ctx.streaming.tools_enabled = action == "on"
        display.print_notice(f"tools {'enabled' if ctx.streaming.tools_enabled else 'disabled'} for the model")
        return True
    if action not in {"enable", "disable", "allow", "ask", "deny", "reset"} or len(parts) != 2:
        display.print_line(_TOOLS_USAGE)
        return True
    name = parts[1]
    try:
        if action in {"enable", "reset"}:
            ctx.permissions.reset(name)
        elif action == "disable":
            ctx.permissions.disable(name)
        else:
            ctx.permissions.set(name, PermissionLevel(action))
    except ToolNotFoundError as exc:
        display.print_error(str(exc))
        return True
    display.print_notice(f"{name}: {ctx.permissions.check(name).value}")
    return True


@register_slash_command("/browse", description="Open the tool browser.", hint="/browse")
def _handle_browse(ctx: SlashContext, _argument: str) -> bool:
    ctx.modes.request_mode_change(InteractionMode.TOOL_BROWSE)
    return True


@register_slash_command("/pair", description="Pair this client with a realm via the daemon.", hint="/pair")
def _handle_pair(ctx: SlashContext, _argument: str) -> bool:
    ctx.modes.request_mode_change(InteractionMode.PAIRING)
    return True


@register_slash_command("/edit", description="Edit a file in the line editor.", hint="/edit <path>")
def _handle_edit(ctx: SlashContext, argument: str) -> bool:
    if not argument:
        display.print_line("Usage: /edit <path>")
        return True
    ctx.editor.prepare(argument)
    ctx.modes.request_mode_change(InteractionMode.EDIT)
    return True


@register_slash_command("/system", description="Set the system prompt.", hint="/system")
def _handle_system(ctx: SlashContext, _argument: str) -> bool:
    provider = ctx.streaming.provider
    current = getattr(provider, "system_prompt", None) or ""
    label = "System prompt"

    def _submit(values: dict[str, str]) -> None:
        value = values.get(label, "").strip()
        if not hasattr(provider, "system_prompt"):
            display.print_error("The current provider does not accept a system prompt")
            return
        provider.system_prompt = value or None
        display.print_notice("system prompt updated" if value else "system prompt cleared")

    request = FormRequest(title="System prompt", fields=[FormField(label, default=current)], on_submit=_submit)
    ctx.queue.post(FormRequested(request))
    return True


@register_slash_command("/cancel", description="Cancel the running response.", hint="/cancel")
def _handle_cancel(ctx: SlashContext, _argument: str) -> bool:
    if ctx.streaming.cancel():
        display.print_notice("cancelled")
    else:
        display.print_notice("nothing to cancel")
    return True


@register_slash_command("/clear", description="Clear the conversation.", hint="/clear")
def _handle_clear(ctx: SlashContext, _argument: str) -> bool:
    if ctx.streaming.running:
        display.print_notice("A response is still running; /cancel it first", level="warning")
        return True
    ctx.transcript.clear()
    display.print_notice("conversation cleared")
    return True


@register_slash_command("/save", description="Save the conversation as JSON.", hint="/save [path]")
def _handle_save(ctx: SlashContext, argument: str) -> bool:
    messages = ctx.transcript.export()
    if not messages:
        display.print_notice("No messages to save")
        return True
    name = argument or f"hecate-chat-{datetime.now():%Y-%m-%d-%H%M%S}.json"
    path = Path(name).expanduser()
    try:
        path.write_text(json.dumps(messages, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as exc:
        display.print_error(f"Failed to save: {exc}")
        return True
    display.print_notice(f"Saved {path} ({len(messages)} messages)")
    return True


@register_slash_command("/model", description="Set model to the given id.", hint="/model <provider:model>")
def _handle_model(ctx: SlashContext, argument: str) -> bool:
    if not argument:
        display.print_line(f"Current model: {ctx.state.current_model}. Usage: /model <provider:model>")
        return True
    if ctx.streaming.running:
        display.print_notice("A response is still running; /cancel it first", level="warning")
        return True
    selection = argument.split()[0]
    try:
        model = build_model(selection)
    except ProviderError as exc:
        display.print_error(f"failed to set model: {exc}")
        return True
    system_prompt = getattr(ctx.streaming.provider, "system_prompt", None)
    ctx.streaming.provider = PydanticAIProvider(model, system_prompt=system_prompt)
    ctx.state.current_model = selection
    display.print_notice(f"model set to {selection}")
    return True


@register_slash_command("/exit", description="Exit the client.", hint="/exit")
@register_slash_command("/quit", description="Exit the client.", hint="/quit")
def _handle_exit(ctx: SlashContext, _argument: str) -> bool:
    display.print_notice("exiting")
    ctx.state.exit_requested = True
    ctx.on_exit()
    return True


async def handle_slash_command(line: str, ctx: SlashContext) -> bool:
    """Dispatch client-side slash commands, returning True if handled."""
    trimmed = line.strip()
    if not trimmed.startswith("/"):
        return False

    parts = trimmed.split(maxsplit=1)
    command = parts[0] if parts else ""
    argument = parts[1].strip() if len(parts) > 1 else ""

    entry = SLASH_HANDLERS.get(command)
    if entry is None:
        return False

    try:
        result = entry.handler(ctx, argument)
        if asyncio.iscoroutine(result):
            return bool(await result)
        return bool(result)
    except Exception as exc:  # noqa: BLE001
        logger.error("Slash command failed (%s): %s", command, exc)
        display.print_error(f"{command} failed: {exc}")
        return True

