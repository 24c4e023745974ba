"""Client entry point: wires settings, tools, the tool-calling core and the terminal UI."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import logging
import os
import sys
from dataclasses import dataclass
from typing import Sequence

from hecate import __version__
from hecate.chat.approval import ApprovalCoordinator, PendingApproval
from hecate.chat.events import CancelRequested, EventQueue, Notice, UserInput
from hecate.chat.modes import InteractionModeController
from hecate.chat.permissions import (
    PermissionLevel,
    PermissionStore,
    load_permission_overrides,
    save_permission_overrides,
)
from hecate.chat.pipeline import ExecutionPipeline
from hecate.chat.provider import ModelProvider, ProviderError, PydanticAIProvider, build_model
from hecate.chat.streaming import StreamingSession, StreamingSessionController
from hecate.chat.tool_types import ToolResult
from hecate.chat.transcript import Message, Role, Transcript
from hecate.client import display
from hecate.client.repl import exit_prompt, interactive_loop
from hecate.client.session_state import SessionUIState
from hecate.client.slash import SlashContext, handle_slash_command
from hecate.client.surfaces import (
    ConversationSurface,
    EditorSurface,
    FormSurface,
    PairingSurface,
    ToolBrowserSurface,
    make_ask_user_handler,
)
from hecate.daemon import DaemonClient
from hecate.log_utils import build_log_config, configure_logging, log_event
from hecate.settings import Settings, load_settings
from hecate.tools import build_default_catalog

logger = logging.getLogger(__name__)


@dataclass
class ClientApp:
    settings: Settings
    state: SessionUIState
    queue: EventQueue
    daemon: DaemonClient
    permissions: PermissionStore
    coordinator: ApprovalCoordinator
    pipeline: ExecutionPipeline
    transcript: Transcript
    streaming: StreamingSessionController
    modes: InteractionModeController
    slash: SlashContext

    async def aclose(self) -> None:
        await self.queue.cancel_tasks()
        await self.daemon.aclose()


def build_app(settings: Settings, *, provider: ModelProvider | None = None) -> ClientApp:
    """Construct every client component; raises ``ProviderError`` for a bad model id."""
    queue = EventQueue()
    daemon = DaemonClient(settings.daemon_url)
    catalog = build_default_catalog(mesh_client=daemon, ask_user=make_ask_user_handler(queue))

    overrides = load_permission_overrides(settings.permissions_path) if settings.persist_permissions else {}
    permissions = PermissionStore(catalog, overrides)
    if settings.persist_permissions:

        def _persist(_name: str, _level: PermissionLevel) -> None:
            try:
                save_permission_overrides(settings.permissions_path, permissions.overrides())
            except OSError as exc:
                log_event(logger, "permission.save.failed", level=logging.WARNING, error=str(exc))

        permissions.add_listener(_persist)

    coordinator = ApprovalCoordinator()
    pipeline = ExecutionPipeline(
        catalog,
        permissions,
        coordinator,
        timeout_s=settings.tool_timeout_s,
        output_limit=settings.tool_output_limit,
    )
    transcript = Transcript()
    if provider is None:
        provider = PydanticAIProvider(build_model(settings.model), system_prompt=settings.system_prompt)
    streaming = StreamingSessionController(
        queue,
        provider,
        pipeline,
        coordinator,
        transcript,
        catalog,
        tools_enabled=settings.tools_enabled,
        max_tool_turns=settings.max_tool_turns,
    )
    modes = InteractionModeController(streaming, coordinator, notify=lambda text: display.print_notice(text, "warning"))
    state = SessionUIState(current_model=settings.model, cwd=os.getcwd(), daemon_url=settings.daemon_url)

    editor = EditorSurface(modes)
    browser = ToolBrowserSurface(modes, catalog, permissions)
    slash = SlashContext(
        state=state,
        queue=queue,
        streaming=streaming,
        modes=modes,
        catalog=catalog,
        permissions=permissions,
        transcript=transcript,
        editor=editor,
        browser=browser,
    )
    modes.register(ConversationSurface(modes, streaming, queue, lambda line: handle_slash_command(line, slash)))
    modes.register(browser)
    modes.register(PairingSurface(modes, queue, daemon))
    modes.register(editor)
    modes.register(FormSurface(modes, queue))

    queue.subscribe(UserInput, lambda event: modes.route_input(event.text))
    queue.subscribe(CancelRequested, lambda _event: modes.route_cancel())
    queue.subscribe(Notice, _print_notice)

    app = ClientApp(
        settings=settings,
        state=state,
        queue=queue,
        daemon=daemon,
        permissions=permissions,
        coordinator=coordinator,
        pipeline=pipeline,
        transcript=transcript,
        streaming=streaming,
        modes=modes,
        slash=slash,
    )
    _wire_display(app)
    return app


def _print_notice(event: Notice) -> None:
    if event.level != "debug":
        display.print_notice(event.text, event.level)


def _wire_display(app: ClientApp) -> None:
    state = app.state

    def _on_chunk(_session: StreamingSession, text: str) -> None:
        display.print_agent_text(text)
        state.pending_newline = not text.endswith("\n")

    def _on_state(session: StreamingSession) -> None:
        if session.terminal and state.pending_newline:
            display.print_agent_text("\n")
            state.pending_newline = False

    def _on_approval(_session: StreamingSession, pending: PendingApproval) -> None:
        if state.pending_newline:
            display.print_agent_text("\n")
            state.pending_newline = False
        display.print_approval_request(pending)

    def _on_result(_session: StreamingSession, result: ToolResult) -> None:
        display.print_tool_result(result)

    def _on_message(message: Message) -> None:
        if message.role is not Role.NOTICE:
            return
        if state.pending_newline:
            display.print_agent_text("\n")
            state.pending_newline = False
        level = "error" if message.failed else "warning" if message.interrupted else "info"
        display.print_notice(message.content, level)

    app.streaming.on_chunk.append(_on_chunk)
    app.streaming.on_state.append(_on_state)
    app.streaming.on_approval.append(_on_approval)
    app.streaming.on_tool_result.append(_on_result)
    app.transcript.add_listener(_on_message)


async def run_client(settings: Settings) -> int:
    try:
        app = build_app(settings)
    except ProviderError as exc:
        print(f"Cannot start: {exc}", file=sys.stderr)
        return 1

    log_event(logger, "client.started", model=settings.model, version=__version__)

    def _ready(session) -> None:
        app.slash.on_exit = lambda: exit_prompt(session)

    runner = asyncio.create_task(app.queue.run(), name="event-queue")
    try:
        await interactive_loop(app.queue, app.state, app.modes, app.streaming, on_ready=_ready)
    finally:
        if app.streaming.running:
            app.streaming.cancel()
        app.queue.stop()
        runner.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await runner
        await app.aclose()
        log_event(logger, "client.stopped")
    return 0


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="hecate", description="Terminal chat client with approval-gated tools.")
    parser.add_argument("--model", help="Model id as provider:model (overrides HECATE_MODEL)")
    parser.add_argument("--no-tools", action="store_true", help="Do not offer tools to the model")
    parser.add_argument("--daemon-url", help="Hecate daemon base URL (overrides HECATE_DAEMON_URL)")
    parser.add_argument("--version", action="version", version=f"hecate {__version__}")
    return parser.parse_args(argv)


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    changes = {}
    if args.model:
        changes["model"] = args.model
    if args.no_tools:
        changes["tools_enabled"] = False
    if args.daemon_url:
        changes["daemon_url"] = args.daemon_url.rstrip("/")
    return dataclasses.replace(settings, **changes) if changes else settings


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    configure_logging(build_log_config(log_file_name="client.log"))
    settings = apply_cli_overrides(load_settings(), args)
    try:
        code = asyncio.run(run_client(settings))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)
