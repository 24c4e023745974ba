"""Input surfaces the interaction mode controller routes keystrokes to."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from hecate.chat.events import Event, EventQueue, Notice
from hecate.chat.modes import InteractionMode, InteractionModeController, ModeChangeResult
from hecate.chat.permissions import PermissionLevel, PermissionStore
from hecate.chat.streaming import StreamingSessionController
from hecate.client import display
from hecate.daemon import DaemonError, PairingClient, PairingStatus
from hecate.log_utils import log_event
from hecate.tools.catalog import Tool, ToolCatalog, ToolError, ToolNotFoundError

logger = logging.getLogger(__name__)

LEAVE_WORDS = {"q", "quit", "back"}


class _BaseSurface:
    mode: InteractionMode

    def __init__(self, modes: InteractionModeController) -> None:
        self._modes = modes
        self.attached = False

    def attach(self) -> None:
        self.attached = True

    def detach(self) -> None:
        self.attached = False

    def leave(self) -> ModeChangeResult:
        return self._modes.request_mode_change(InteractionMode.CONVERSATION)


class ConversationSurface(_BaseSurface):
    """Chat input: slash commands or a new message for the model."""

    mode = InteractionMode.CONVERSATION

    def __init__(
        self,
        modes: InteractionModeController,
        streaming: StreamingSessionController,
        queue: EventQueue,
        dispatch_slash: Callable[[str], Awaitable[bool]],
    ) -> None:
        super().__init__(modes)
        self._streaming = streaming
        self._queue = queue
        self._dispatch_slash = dispatch_slash

    def handle_input(self, text: str) -> None:
        line = text.strip()
        if not line:
            return
        if line.startswith("/"):
            command = line.split(maxsplit=1)[0]
            self._queue.spawn(
                self._dispatch_slash(line),
                on_done=lambda handled: None if handled else Notice(f"Unknown command: {command}", level="warning"),
                on_error=lambda exc: Notice(f"{command} failed: {exc}", level="error"),
                name=f"slash-{command}",
            )
            return
        if self._streaming.running:
            display.print_notice("A response is still running; wait for it or press Esc to cancel", level="warning")
            return
        self._streaming.submit(text)


class ToolBrowserSurface(_BaseSurface):
    """Numbered, category-grouped tool listing with per-tool administration."""

    mode = InteractionMode.TOOL_BROWSE

    def __init__(self, modes: InteractionModeController, catalog: ToolCatalog, permissions: PermissionStore) -> None:
        super().__init__(modes)
        self._catalog = catalog
        self._permissions = permissions
        self.filter = ""

    def rows(self) -> list[tuple[int, Tool]]:
        needle = self.filter.lower()
        rows: list[tuple[int, Tool]] = []
        index = 0
        for category, tools in self._catalog.grouped().items():
            for tool in tools:
                index += 1
                haystack = f"{tool.name} {category.value} {tool.description}".lower()
                if needle and needle not in haystack:
                    continue
                rows.append((index, tool))
        return rows

    def attach(self) -> None:
        super().attach()
        display.print_mode_update(self.mode.label)
        self.show()

    def show(self) -> None:
        rows = self.rows()
        if not rows:
            display.print_notice(f"No tools match {self.filter!r}")
            return
        display.print_tools_table(rows, self._permissions)

    def resolve(self, ref: str) -> Tool:
        if ref.isdigit():
            for index, tool in self.rows():
                if index == int(ref):
                    return tool
            raise ToolNotFoundError(ref)
        return self._catalog.lookup(ref)

    def handle_input(self, text: str) -> None:
        parts = text.strip().split()
        if not parts:
            self.show()
            return
        command, args = parts[0].lower(), parts[1:]
        if command in LEAVE_WORDS:
            self.leave()
            return
        if command in {"/filter", "filter"}:
            self.filter = " ".join(args)
            self.show()
            return
        if command == "list":
            self.show()
            return
        try:
            if command.isdigit() and not args:
                display.print_tool_details(self.resolve(command), self._permissions)
                return
            if command in {"allow", "ask", "deny", "reset", "enable", "disable"} and len(args) == 1:
                self.apply(command, self.resolve(args[0]).name)
                self.show()
                return
        except ToolNotFoundError as exc:
            display.print_error(str(exc))
            return
        display.print_error(f"Unknown tool browser command: {text.strip()}")

    def apply(self, action: str, name: str) -> None:
        if action in {"reset", "enable"}:
            self._permissions.reset(name)
        elif action == "disable":
            self._permissions.disable(name)
        else:
            self._permissions.set(name, PermissionLevel(action))


@dataclass(frozen=True)
class PairingUpdated(Event):
    status: PairingStatus | None
    error: str | None = None


def format_pairing_status(status: PairingStatus) -> str:
    if status.status in {"pending", "waiting"} and status.code:
        expiry = f" (expires {status.expires_at})" if status.expires_at else ""
        return f"Pairing code: {status.code}{expiry}"
    if status.status in {"paired", "completed"}:
        return f"Paired with {status.realm_url or 'realm'}"
    if status.message:
        return f"Pairing {status.status}: {status.message}"
    return f"Pairing {status.status}"


class PairingSurface(_BaseSurface):
    """Drives a daemon pairing flow: start, poll status, cancel."""

    mode = InteractionMode.PAIRING

    def __init__(self, modes: InteractionModeController, queue: EventQueue, client: PairingClient | None) -> None:
        super().__init__(modes)
        self._queue = queue
        self._client = client
        self.status: PairingStatus | None = None
        queue.subscribe(PairingUpdated, self._handle_update)

    def attach(self) -> None:
        super().attach()
        display.print_mode_update(self.mode.label)
        display.print_line(self.mode.hints, style="#aaaaaa")

    def handle_input(self, text: str) -> None:
        command = text.strip().lower() or "status"
        if command in LEAVE_WORDS:
            self.leave()
            return
        if self._client is None:
            display.print_error("Pairing needs a daemon connection (set HECATE_DAEMON_URL)")
            return
        if command == "start":
            self._run(self._client.start_pairing())
        elif command == "status":
            self._run(self._client.pairing_status())
        elif command == "cancel":
            self._run(self._cancel())
        else:
            display.print_error(f"Unknown pairing command: {command}")

    async def _cancel(self) -> PairingStatus:
        assert self._client is not None
        await self._client.cancel_pairing()
        return PairingStatus(status="cancelled")

    def _run(self, work: Awaitable[PairingStatus]) -> None:
        def _failed(exc: BaseException) -> Event | None:
            if isinstance(exc, DaemonError):
                return PairingUpdated(None, error=str(exc))
            return PairingUpdated(None, error=f"{type(exc).__name__}: {exc}")

        self._queue.spawn(work, on_done=PairingUpdated, on_error=_failed, name="pairing")

    def _handle_update(self, event: PairingUpdated) -> None:
        if event.error:
            display.print_error(f"Pairing failed: {event.error}")
            return
        self.status = event.status
        if event.status is not None:
            log_event(logger, "pairing.status", status=event.status.status)
            display.print_notice(format_pairing_status(event.status))


class EditorSurface(_BaseSurface):
    """Minimal line editor: typed lines are appended, ``:`` commands act on the buffer."""

    mode = InteractionMode.EDIT

    def __init__(self, modes: InteractionModeController) -> None:
        super().__init__(modes)
        self.path: Path | None = None
        self.lines: list[str] = []
        self.dirty = False

    def prepare(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def attach(self) -> None:
        super().attach()
        display.print_mode_update(f"{self.mode.label}: {self.path}")
        self.lines = []
        self.dirty = False
        if self.path is not None and self.path.is_file():
            try:
                self.lines = self.path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError) as exc:
                display.print_error(f"Could not read {self.path}: {exc}")
        else:
            display.print_notice("New file")
        self.print_buffer()

    def print_buffer(self) -> None:
        if not self.lines:
            display.print_line("(empty)", style="#aaaaaa")
            return
        display.print_line("\n".join(f"{i:4}│ {line}" for i, line in enumerate(self.lines, start=1)))

    def save(self) -> bool:
        if self.path is None:
            display.print_error("No file to save")
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("\n".join(self.lines) + ("\n" if self.lines else ""), encoding="utf-8")
        except OSError as exc:
            display.print_error(f"Could not write {self.path}: {exc}")
            return False
        self.dirty = False
        display.print_notice(f"Wrote {len(self.lines)} lines to {self.path}")
        return True

    def handle_input(self, text: str) -> None:
        if not text.startswith(":"):
            self.lines.append(text)
            self.dirty = True
            return
        command, _, arg = text[1:].strip().partition(" ")
        if command == "w":
            self.save()
        elif command == "wq":
            if self.save():
                self.leave()
        elif command == "q":
            if self.dirty:
                display.print_notice("Unsaved changes; :wq to save or :q! to discard", level="warning")
                return
            self.leave()
        elif command == "q!":
            self.dirty = False
            self.leave()
        elif command == "p":
            self.print_buffer()
        elif command == "d":
            self._delete(arg.strip())
        else:
            display.print_error(f"Unknown editor command: :{command}")

    def _delete(self, arg: str) -> None:
        if not arg.isdigit() or not 1 <= int(arg) <= len(self.lines):
            display.print_error(f"No such line: {arg or '?'}")
            return
        del self.lines[int(arg) - 1]
        self.dirty = True


@dataclass(frozen=True)
class FormField:
    label: str
    options: Sequence[str] = ()
    default: str = ""


@dataclass(eq=False)
class FormRequest:
    title: str
    fields: Sequence[FormField]
    on_submit: Callable[[dict[str, str]], None]
    on_cancel: Callable[[], None] = lambda: None
    values: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FormRequested(Event):
    request: FormRequest


class FormSurface(_BaseSurface):
    """Sequential field prompts; backs ``/system`` and the ``ask_user`` tool."""

    mode = InteractionMode.FORM

    def __init__(self, modes: InteractionModeController, queue: EventQueue) -> None:
        super().__init__(modes)
        self.request: FormRequest | None = None
        self._index = 0
        queue.subscribe(FormRequested, self._handle_requested)

    def _handle_requested(self, event: FormRequested) -> None:
        if self.request is not None:
            event.request.on_cancel()
            display.print_error("Another form is already open")
            return
        self.request = event.request
        self._index = 0
        if self._modes.mode is self.mode:
            self.attach()
            return
        if self._modes.request_mode_change(self.mode) is not ModeChangeResult.ACCEPTED:
            self.request = None
            event.request.on_cancel()

    def attach(self) -> None:
        super().attach()
        if self.request is None:
            display.print_notice("No form is open")
            return
        display.print_mode_update(f"{self.mode.label}: {self.request.title}")
        self._prompt()

    def detach(self) -> None:
        super().detach()
        request, self.request = self.request, None
        if request is not None and len(request.values) < len(request.fields):
            request.on_cancel()

    def _prompt(self) -> None:
        assert self.request is not None
        current = self.request.fields[self._index]
        display.print_line(current.label, style="bold")
        for number, option in enumerate(current.options, start=1):
            display.print_line(f"  {number}. {option}")
        if current.default:
            display.print_line(f"  (Enter keeps: {current.default})", style="#aaaaaa")

    def handle_input(self, text: str) -> None:
        request = self.request
        if request is None:
            self.leave()
            return
        current = request.fields[self._index]
        value = text.strip() or current.default
        if current.options and value.isdigit() and 1 <= int(value) <= len(current.options):
            value = current.options[int(value) - 1]
        request.values[current.label] = value
        self._index += 1
        if self._index < len(request.fields):
            self._prompt()
            return
        self.request = None
        self.leave()
        request.on_submit(dict(request.values))


def make_ask_user_handler(queue: EventQueue) -> Callable[[str, Sequence[str] | None], Awaitable[str]]:
    """Answer ``ask_user`` tool calls through the form surface."""

    async def _ask(question: str, options: Sequence[str] | None) -> str:
        loop = asyncio.get_running_loop()
        answer: asyncio.Future[str] = loop.create_future()

        def _submit(values: dict[str, str]) -> None:
            if not answer.done():
                answer.set_result(values.get(question, ""))

        def _cancel() -> None:
            if not answer.done():
                answer.set_exception(ToolError("The user dismissed the question"))

        request = FormRequest(
            title="Question from the model",
            fields=[FormField(question, tuple(options or ()))],
            on_submit=_submit,
            on_cancel=_cancel,
        )
        queue.post(FormRequested(request))
        return await answer

    return _ask
