from __future__ import annotations

import json
from pathlib import Path

import pytest

from hecate.chat.modes import InteractionMode
from hecate.chat.permissions import PermissionLevel
from hecate.chat.provider import PydanticAIProvider
from hecate.chat.tool_types import ToolCall, ToolOutcome, ToolResult
from hecate.client.app import ClientApp, build_app
from hecate.client.slash import SLASH_HANDLERS, handle_slash_command, register_slash_command
from hecate.settings import Settings
from tests.utils import HOLD, ScriptedProvider, text


@pytest.fixture
def app(tmp_path: Path) -> ClientApp:
    settings = Settings(model="test", permissions_path=tmp_path / "permissions.json")
    return build_app(settings, provider=ScriptedProvider([[HOLD, text("done")]]))


def _output(rendered: list[str]) -> str:
    return "\n".join(rendered)


@pytest.mark.asyncio
async def test_non_commands_and_unknown_commands_are_not_handled(app: ClientApp) -> None:
    assert await handle_slash_command("hello", app.slash) is False
    assert await handle_slash_command("/nope", app.slash) is False
    await app.aclose()


@pytest.mark.asyncio
async def test_help_lists_every_command(app: ClientApp, rendered: list[str]) -> None:
    assert await handle_slash_command("/help", app.slash)

    output = _output(rendered)
    for name in ("/tools", "/browse", "/pair", "/edit", "/system", "/cancel", "/save", "/model", "/exit"):
        assert name in output
    await app.aclose()


@pytest.mark.asyncio
async def test_status_shows_mode_and_model(app: ClientApp, rendered: list[str]) -> None:
    await handle_slash_command("/status", app.slash)

    output = _output(rendered)
    assert "Mode: Chat" in output
    assert "Session: idle" in output
    assert "Model: test" in output
    await app.aclose()


@pytest.mark.asyncio
async def test_tools_changes_permissions(app: ClientApp, rendered: list[str]) -> None:
    await handle_slash_command("/tools deny run_command", app.slash)
    assert app.permissions.check("run_command") is PermissionLevel.DENY
    assert "[run_command: deny]" in _output(rendered)

    await handle_slash_command("/tools allow run_command", app.slash)
    assert app.permissions.check("run_command") is PermissionLevel.ALLOW

    await handle_slash_command("/tools disable read_file", app.slash)
    assert app.permissions.check("read_file") is PermissionLevel.DENY
    await handle_slash_command("/tools enable read_file", app.slash)
    assert app.permissions.check("read_file") is PermissionLevel.ALLOW
    assert not app.permissions.is_overridden("read_file")

    await handle_slash_command("/tools reset run_command", app.slash)
    assert app.permissions.check("run_command") is PermissionLevel.ASK
    await app.aclose()


@pytest.mark.asyncio
async def test_tools_reports_usage_and_unknown_tools(app: ClientApp, rendered: list[str]) -> None:
    await handle_slash_command("/tools allow", app.slash)
    await handle_slash_command("/tools sometimes read_file", app.slash)
    await handle_slash_command("/tools deny nope", app.slash)

    output = _output(rendered)
    assert output.count("Usage: /tools") == 2
    assert "[Unknown tool: nope]" in output
    await app.aclose()


@pytest.mark.asyncio
async def test_tools_list_and_toggle(app: ClientApp, rendered: list[str]) -> None:
    await handle_slash_command("/tools", app.slash)
    assert "mesh_publish" in _output(rendered)

    await handle_slash_command("/tools off", app.slash)
    assert app.streaming.tools_enabled is False
    await handle_slash_command("/tools on", app.slash)
    assert app.streaming.tools_enabled is True
    await app.aclose()


@pytest.mark.asyncio
async def test_mode_commands_switch_surfaces(app: ClientApp, tmp_path: Path) -> None:
    await handle_slash_command("/browse", app.slash)
    assert app.modes.mode is InteractionMode.TOOL_BROWSE
    app.modes.route_input("q")

    await handle_slash_command("/pair", app.slash)
    assert app.modes.mode is InteractionMode.PAIRING
    app.modes.route_input("q")

    await handle_slash_command(f"/edit {tmp_path / 'new.txt'}", app.slash)
    assert app.modes.mode is InteractionMode.EDIT
    assert app.slash.editor.path == tmp_path / "new.txt"
    await app.aclose()


@pytest.mark.asyncio
async def test_cancel_and_clear(app: ClientApp, rendered: list[str]) -> None:
    await handle_slash_command("/cancel", app.slash)
    assert "[nothing to cancel]" in _output(rendered)

    app.streaming.submit("long story")
    await handle_slash_command("/clear", app.slash)
    assert "/cancel it first" in _output(rendered)
    assert len(app.transcript) > 0

    await handle_slash_command("/cancel", app.slash)
    assert "[cancelled]" in _output(rendered)
    await handle_slash_command("/clear", app.slash)
    assert len(app.transcript) == 0
    await app.aclose()


@pytest.mark.asyncio
async def test_save_writes_the_transcript(
    app: ClientApp, rendered: list[str], tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "chat.json"
    await handle_slash_command("/save chat.json", app.slash)
    assert "[No messages to save]" in _output(rendered)
    assert not target.exists()

    app.transcript.add_user("hello")
    app.transcript.add_tool_result(ToolResult.failure(ToolCall("run_command", {}, "c1"), ToolOutcome.DENIED, "nope"))
    app.transcript.add_notice("Response cancelled", interrupted=True)
    await handle_slash_command("/save chat.json", app.slash)

    assert json.loads(target.read_text()) == [
        {"role": "user", "content": "hello"},
        {"role": "tool", "content": "nope", "tool_call_id": "c1", "tool_name": "run_command", "is_error": True},
        {"role": "notice", "content": "Response cancelled", "interrupted": True},
    ]
    assert "[Saved chat.json (3 messages)]" in _output(rendered)

    await handle_slash_command("/save missing/chat.json", app.slash)
    assert "Failed to save" in _output(rendered)
    await app.aclose()


@pytest.mark.asyncio
async def test_model_switch(app: ClientApp, rendered: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    await handle_slash_command("/model openai:gpt-4o", app.slash)
    assert "failed to set model" in _output(rendered)
    assert app.state.current_model == "test"

    await handle_slash_command("/model test:canned", app.slash)
    assert isinstance(app.streaming.provider, PydanticAIProvider)
    assert app.state.current_model == "test:canned"
    await app.aclose()


@pytest.mark.asyncio
async def test_exit_sets_flag_and_calls_hook(app: ClientApp) -> None:
    calls: list[str] = []
    app.slash.on_exit = lambda: calls.append("exit")

    await handle_slash_command("/quit", app.slash)

    assert app.state.exit_requested
    assert calls == ["exit"]
    await app.aclose()


@pytest.mark.asyncio
async def test_handler_errors_are_reported(
    app: ClientApp, rendered: list[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setitem(SLASH_HANDLERS, "/boom", SLASH_HANDLERS["/help"])

    def _explode(_ctx, _argument):
        raise RuntimeError("kaboom")

    register_slash_command("/boom", description="Explode.", hint="/boom")(_explode)

    assert await handle_slash_command("/boom", app.slash) is True
    assert "[/boom failed: kaboom]" in _output(rendered)
    await app.aclose()
