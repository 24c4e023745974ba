"""Shared rich console utilities for client output."""

from __future__ import annotations

from io import StringIO
from threading import Lock
from typing import Any, Iterable

from prompt_toolkit.formatted_text import ANSI  # type: ignore
from prompt_toolkit.shortcuts import print_formatted_text  # type: ignore
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from hecate.chat.approval import PendingApproval
from hecate.chat.permissions import PermissionLevel, PermissionStore
from hecate.chat.tool_types import ToolResult
from hecate.tools.catalog import Tool

_render_buffer = StringIO()
_render_console = Console(
    file=_render_buffer,
    force_terminal=True,
    color_system="standard",
    markup=False,
    highlight=False,
)
_render_lock = Lock()

_LEVEL_STYLES = {
    PermissionLevel.ALLOW: "green",
    PermissionLevel.ASK: "yellow",
    PermissionLevel.DENY: "red",
}

_NOTICE_STYLES = {"info": "cyan", "warning": "yellow", "error": "red"}

RESULT_PREVIEW_LINES = 8


def _write(output: str) -> None:
    print_formatted_text(ANSI(output), end="")


def _render_and_print(*args: Any, **kwargs: Any) -> bool:
    end = kwargs.get("end")
    if end is None:
        kwargs["end"] = "\n"
    with _render_lock:
        _render_buffer.seek(0)
        _render_buffer.truncate(0)
        _render_console.print(*args, **kwargs)
        output = _render_buffer.getvalue()
    if output:
        _write(output)
        return output.endswith("\n")
    return False


def print_line(text: str, style: str | None = None) -> None:
    _render_and_print(Text(text, style=style) if style else Text(text))


def print_notice(text: str, level: str = "info") -> None:
    _render_and_print(Text(f"[{text}]", style=_NOTICE_STYLES.get(level, "cyan")))


def print_error(text: str) -> None:
    print_notice(text, level="error")


def print_mode_update(mode: str) -> None:
    _render_and_print(Text(f"[mode -> {mode}]", style="magenta"))


def print_agent_text(text: str) -> None:
    _render_and_print(Text(text), end="")


def print_tool_result(result: ToolResult) -> None:
    style = "red" if result.is_error else "green"
    status = result.outcome.value
    _render_and_print(Text(f"🛠️ | Tool[{status}]: {result.tool_name}", style=style))
    lines = result.content.splitlines()
    preview = "\n".join(lines[:RESULT_PREVIEW_LINES])
    if len(lines) > RESULT_PREVIEW_LINES:
        preview += f"\n... ({len(lines) - RESULT_PREVIEW_LINES} more lines)"
    if preview:
        _render_and_print(Text(preview, style="#aaaaaa"))


def print_approval_request(pending: PendingApproval) -> None:
    """Render the approval prompt for a suspended tool call."""
    body = Text()
    body.append(f"{pending.tool.category.badge} {pending.tool.name}", style="bold")
    body.append(f"\n{pending.describe()}\n")
    for key, value in pending.call.arguments.items():
        rendered = str(value)
        if len(rendered) > 200:
            rendered = rendered[:197] + "..."
        body.append(f"\n  {key}: ", style="cyan")
        body.append(rendered)
    body.append("\n\n[y] approve once  [a] approve for session  [n/Esc] deny", style="yellow")
    _render_and_print(Panel(body, title="Tool approval required", border_style="yellow", expand=False))


def build_tools_table(rows: Iterable[tuple[int, Tool]], permissions: PermissionStore) -> Table:
    table = Table(show_header=True, box=None, header_style="bold cyan")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Tool")
    table.add_column("Category")
    table.add_column("Permission")
    for index, tool in rows:
        level = permissions.check(tool.name)
        marker = "*" if permissions.is_overridden(tool.name) else ""
        table.add_row(
            str(index),
            tool.name,
            f"{tool.category.badge} {tool.category.label}",
            Text(f"{level.value}{marker}", style=_LEVEL_STYLES[level]),
        )
    return table


def print_tools_table(rows: Iterable[tuple[int, Tool]], permissions: PermissionStore) -> None:
    _render_and_print(build_tools_table(rows, permissions))


def print_tool_details(tool: Tool, permissions: PermissionStore) -> None:
    level = permissions.check(tool.name)
    default = permissions.default_for(tool.name)
    body = Text()
    body.append(tool.description)
    body.append(f"\n\nCategory: {tool.category.label}")
    body.append(f"\nPermission: {level.value} (default {default.value})")
    params = tool.parameters_schema().get("properties", {})
    if params:
        body.append("\nParameters: ")
        body.append(", ".join(params))
    _render_and_print(Panel(body, title=tool.name, border_style="cyan", expand=False))


def print_commands(entries: Iterable[tuple[str, str]]) -> None:
    table = Table(show_header=False, box=None)
    table.add_column("Command", style="cyan")
    table.add_column("Description")
    for hint, description in entries:
        table.add_row(hint, description)
    _render_and_print(table)
