from __future__ import annotations

from pathlib import Path

import pytest
from rich.text import Text

from hecate.client import display


@pytest.fixture(autouse=True)
def _isolate_home(tmp_path_factory, monkeypatch):
    """Force tests to use a temporary HOME/XDG dirs to avoid permission issues."""
    base = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(base))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(base / ".config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(base / ".local" / "state"))
    monkeypatch.setenv("XDG_DATA_HOME", str(base / ".local" / "share"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(base / ".cache"))
    monkeypatch.setattr(Path, "home", lambda: base)
    for name in ("HECATE_MODEL", "HECATE_TOOLS", "HECATE_PERSIST_PERMISSIONS", "HECATE_DAEMON_URL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def rendered(monkeypatch) -> list[str]:
    """Capture client output as plain text instead of writing to the terminal."""
    lines: list[str] = []
    monkeypatch.setattr(display, "_write", lambda output: lines.append(Text.from_ansi(output).plain))
    return lines
