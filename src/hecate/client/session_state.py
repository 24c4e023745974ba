"""Lightweight UI state shared across client components."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionUIState:
    current_model: str
    cwd: str
    daemon_url: str
    show_status_on_start: bool = True
    pending_newline: bool = False
    exit_requested: bool = False
