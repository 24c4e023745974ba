"""Status UI rendering for client components."""

from __future__ import annotations

import os
from pathlib import Path

from prompt_toolkit.utils import get_cwidth  # type: ignore

from hecate.chat.modes import InteractionMode
from hecate.chat.streaming import SessionState
from hecate.client.session_state import SessionUIState


def format_path(path: str | None) -> str:
    if not path:
        path = os.getcwd()
    resolved = Path(path).expanduser()
    try:
        resolved = resolved.resolve()
    except OSError:
        return str(resolved)
    home = Path.home()
    try:
        rel = resolved.relative_to(home)
    except ValueError:
        return str(resolved)
    return str(Path("~") / rel)


def build_status_toolbar(
    state: SessionUIState,
    mode: InteractionMode,
    session_state: SessionState | None,
    *,
    approval_pending: bool = False,
) -> list[tuple[str, str]]:
    gap = ("", "  ")
    if approval_pending:
        activity = "awaiting approval"
    elif session_state is None:
        activity = SessionState.IDLE.value
    else:
        activity = session_state.value.replace("_", " ")
    parts: list[tuple[str, str]] = [
        ("class:toolbar.label", "Mode: "),
        ("class:toolbar.value", mode.label),
        gap,
        ("class:toolbar.label", "State: "),
        ("class:toolbar.value", activity),
        gap,
        ("class:toolbar.label", "Model: "),
        ("class:toolbar.value", state.current_model or "unknown"),
        gap,
    ]
    if approval_pending:
        parts.append(("class:toolbar.warn", "y/a/n: approve once / session / deny"))
    else:
        parts.append(("class:toolbar.value", mode.hints))
    parts.extend([gap, ("class:toolbar.label", "Ctrl-Q: "), ("class:toolbar.value", "exit")])
    return parts


def render_status_box(state: SessionUIState, mode: InteractionMode, session_state: SessionState | None) -> str:
    lines = [
        f"Mode: {mode.label}",
        f"Session: {(session_state or SessionState.IDLE).value}",
        f"Model: {state.current_model or 'unknown'}",
        f"Daemon: {state.daemon_url}",
        f"Directory: {format_path(state.cwd)}",
    ]
    return _boxed(lines, title_lines=0)


def build_welcome_banner(state: SessionUIState) -> str:
    lines = [
        "Hecate",
        "Send /help for help information.",
        "",
        f"Directory: {format_path(state.cwd)}",
        f"Model: {state.current_model or 'not set, export HECATE_MODEL'}",
    ]
    return _boxed(lines, title_lines=2)


def _boxed(lines: list[str], *, title_lines: int) -> str:
    content_width = max(_display_width(line) for line in lines)
    padded_lines: list[str] = []
    for idx, line in enumerate(lines):
        if idx < title_lines:
            aligned = _center_to_width(line, content_width)
        else:
            aligned = _pad_to_width(line, content_width)
        padded_lines.append(f" {aligned} ")

    width = content_width + 2
    green = "\x1b[32m"
    bold = "\x1b[1m"
    reset = "\x1b[0m"

    top = f"{green}┌{'─' * width}┐{reset}"
    body: list[str] = []
    for idx, line in enumerate(padded_lines):
        content = f"{bold}{line}{reset}" if idx == 0 and title_lines else line
        body.append(f"{green}│{reset}{content}{green}│{reset}")
    bottom = f"{green}└{'─' * width}┘{reset}"
    return "\n".join([top, *body, bottom, ""])


def _display_width(text: str) -> int:
    return get_cwidth(text)


def _pad_to_width(text: str, width: int) -> str:
    padding = max(0, width - _display_width(text))
    if padding:
        return f"{text}{' ' * padding}"
    return text


def _center_to_width(text: str, width: int) -> str:
    text_width = _display_width(text)
    if text_width >= width:
        return _pad_to_width(text, width)
    padding = width - text_width
    left = padding // 2
    right = padding - left
    return f"{' ' * left}{text}{' ' * right}"
