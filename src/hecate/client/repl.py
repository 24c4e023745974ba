"""Interactive prompt loop feeding the client event queue."""

from __future__ import annotations

import sys
from typing import Callable

from prompt_toolkit import PromptSession  # type: ignore
from prompt_toolkit.key_binding import KeyBindings  # type: ignore
from prompt_toolkit.patch_stdout import patch_stdout  # type: ignore
from prompt_toolkit.styles import Style  # type: ignore

from hecate.chat.events import CancelRequested, EventQueue, UserInput
from hecate.chat.modes import InteractionMode, InteractionModeController
from hecate.chat.streaming import StreamingSessionController
from hecate.client.session_state import SessionUIState
from hecate.client.status_box import build_status_toolbar, build_welcome_banner

TOOLBAR_STYLE = Style.from_dict(
    {
        "bottom-toolbar": "noreverse",
        "toolbar.label": "#888888",
        "toolbar.value": "bold",
        "toolbar.warn": "bold #ffaf00",
    }
)

_PROMPT_MARKS = {
    InteractionMode.CONVERSATION: "> ",
    InteractionMode.TOOL_BROWSE: "tools> ",
    InteractionMode.PAIRING: "pair> ",
    InteractionMode.EDIT: "edit> ",
    InteractionMode.FORM: "? ",
}


def prompt_text(state: SessionUIState, modes: InteractionModeController) -> str:
    if modes.approval_pending():
        return "approve [y/a/n]> "
    if modes.mode is InteractionMode.CONVERSATION:
        return f"{state.current_model}> "
    return _PROMPT_MARKS[modes.mode]


async def interactive_loop(
    queue: EventQueue,
    state: SessionUIState,
    modes: InteractionModeController,
    streaming: StreamingSessionController,
    on_ready: Callable[[PromptSession], None] | None = None,
) -> None:
    """Read lines and post them as events; Esc posts a cancel request."""
    kb = KeyBindings()

    @kb.add("escape")
    def _(event):  # type: ignore
        queue.post(CancelRequested())

    @kb.add("c-q")
    def _(event):  # type: ignore
        state.exit_requested = True
        if not event.app.is_done:
            event.app.exit(result=None)

    def _toolbar() -> list[tuple[str, str]]:
        active = streaming.active
        return build_status_toolbar(
            state,
            modes.mode,
            active.state if active else None,
            approval_pending=modes.approval_pending(),
        )

    session: PromptSession = PromptSession(
        key_bindings=kb,
        bottom_toolbar=_toolbar,
        style=TOOLBAR_STYLE,
        refresh_interval=0.5,
    )
    if on_ready is not None:
        on_ready(session)

    if state.show_status_on_start:
        print(build_welcome_banner(state))
        state.show_status_on_start = False

    with patch_stdout():
        while not state.exit_requested:
            try:
                if state.pending_newline:
                    print()
                    state.pending_newline = False
                line = await session.prompt_async(lambda: prompt_text(state, modes))
            except EOFError:
                break
            except KeyboardInterrupt:
                print("", file=sys.stderr)
                continue
            if line is None:
                continue
            queue.post(UserInput(line))


def exit_prompt(session: PromptSession) -> None:
    """Close the running prompt, if any, so the loop can notice an exit request."""
    app = session.app
    if app.is_running and not app.is_done:
        app.exit(result=None)
