"""Interaction mode controller: which surface owns user input.

Exactly one mode is active. A pending tool approval outranks everything else:
it consumes the decision keys, blocks mode switches, and pulls the user back
to the conversation surface when it opens.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Protocol

from hecate.chat.approval import APPROVAL_KEYS, ApprovalCoordinator, ApprovalDecision, PendingApproval
from hecate.chat.streaming import StreamingSession, StreamingSessionController
from hecate.log_utils import log_event

logger = logging.getLogger(__name__)

APPROVAL_HINT = "y approve once, a approve for session, n or Esc deny"


class InteractionMode(str, Enum):
    CONVERSATION = "conversation"
    TOOL_BROWSE = "tool_browse"
    PAIRING = "pairing"
    EDIT = "edit"
    FORM = "form"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def hints(self) -> str:
        return _HINTS[self]


_LABELS = {
    InteractionMode.CONVERSATION: "Chat",
    InteractionMode.TOOL_BROWSE: "Tools",
    InteractionMode.PAIRING: "Pairing",
    InteractionMode.EDIT: "Editor",
    InteractionMode.FORM: "Form",
}

_HINTS = {
    InteractionMode.CONVERSATION: "Enter send, /help commands, Esc cancel response",
    InteractionMode.TOOL_BROWSE: "<n> details, allow|ask|deny|reset <n>, /filter, q back",
    InteractionMode.PAIRING: "start, status, cancel, q back",
    InteractionMode.EDIT: ":p print, :d N delete, :w save, :wq save+quit, :q quit",
    InteractionMode.FORM: "Enter submit field, Esc abandon",
}


class ModeChangeResult(str, Enum):
    ACCEPTED = "accepted"
    REFUSED = "refused"
    UNCHANGED = "unchanged"


class Surface(Protocol):
    mode: InteractionMode

    def attach(self) -> None: ...

    def detach(self) -> None: ...

    def handle_input(self, text: str) -> None: ...


ModeListener = Callable[[InteractionMode, InteractionMode], None]


class InteractionModeController:
    def __init__(
        self,
        streaming: StreamingSessionController,
        coordinator: ApprovalCoordinator,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        self._streaming = streaming
        self._coordinator = coordinator
        self._notify = notify or (lambda text: logger.info("%s", text))
        self._surfaces: Dict[InteractionMode, Surface] = {}
        self._mode = InteractionMode.CONVERSATION
        self.on_change: list[ModeListener] = []
        streaming.on_approval.append(self._on_approval)

    @property
    def mode(self) -> InteractionMode:
        return self._mode

    @property
    def surface(self) -> Surface | None:
        return self._surfaces.get(self._mode)

    def register(self, surface: Surface) -> None:
        self._surfaces[surface.mode] = surface
        if surface.mode is self._mode:
            surface.attach()

    def approval_pending(self) -> bool:
        session = self._streaming.active
        return session is not None and self._coordinator.has_pending(session.session_id)

    def request_mode_change(self, target: InteractionMode) -> ModeChangeResult:
        if target is self._mode:
            return ModeChangeResult.UNCHANGED
        if target not in self._surfaces:
            raise ValueError(f"No surface registered for mode {target.value}")
        if self.approval_pending():
            log_event(logger, "mode.refused", current=self._mode.value, target=target.value)
            self._notify(f"Resolve the pending approval ({APPROVAL_HINT}) or /cancel before opening {target.label}")
            return ModeChangeResult.REFUSED
        self._switch(target, reason="request")
        return ModeChangeResult.ACCEPTED

    def route_input(self, text: str) -> None:
        if self.approval_pending():
            self._route_approval(text)
            return
        surface = self.surface
        if surface is None:
            log_event(logger, "mode.no_surface", level=logging.WARNING, mode=self._mode.value)
            return
        surface.handle_input(text)

    def route_cancel(self) -> None:
        """Esc: deny a pending approval, else cancel the response or leave the surface."""
        if self.approval_pending():
            self._streaming.decide(ApprovalDecision.DENY)
            return
        if self._mode is InteractionMode.CONVERSATION:
            self._streaming.cancel()
            return
        self.request_mode_change(InteractionMode.CONVERSATION)

    def _route_approval(self, text: str) -> None:
        key = text.strip().lower()
        if key == "/cancel":
            self._streaming.cancel()
            return
        decision = APPROVAL_KEYS.get(key)
        if decision is None:
            self._notify(f"Approval pending: {APPROVAL_HINT}")
            return
        self._streaming.decide(decision)

    def _on_approval(self, _session: StreamingSession, _pending: PendingApproval) -> None:
        if self._mode is not InteractionMode.CONVERSATION and InteractionMode.CONVERSATION in self._surfaces:
            self._switch(InteractionMode.CONVERSATION, reason="approval")

    def _switch(self, target: InteractionMode, *, reason: str) -> None:
        previous = self._mode
        current = self._surfaces.get(previous)
        if current is not None:
            current.detach()
        self._mode = target
        self._surfaces[target].attach()
        log_event(logger, "mode.changed", previous=previous.value, mode=target.value, reason=reason)
        for listener in list(self.on_change):
            listener(previous, target)
