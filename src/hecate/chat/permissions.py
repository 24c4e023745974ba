"""Per-tool permission levels with defaults derived from the tool catalog."""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Mapping

from hecate.log_utils import log_event
from hecate.tools.catalog import ToolCatalog

logger = logging.getLogger(__name__)

PermissionListener = Callable[[str, "PermissionLevel"], None]


class PermissionLevel(str, Enum):
    ALLOW = "allow"
    ASK = "ask"
    DENY = "deny"

    @classmethod
    def parse(cls, value: str) -> "PermissionLevel":
        lowered = value.strip().lower()
        if lowered in {"allow", "yes", "true", "on", "1"}:
            return cls.ALLOW
        if lowered in {"deny", "no", "false", "off", "0"}:
            return cls.DENY
        if lowered == "ask":
            return cls.ASK
        raise ValueError(f"Unknown permission level: {value!r}")


class PermissionStore:
    """Owns the tool name -> permission table for a client session.

    Absent entries fall back to the tool's default: ``ask`` when it requires
    approval, ``allow`` otherwise. Reads always reflect the latest write.
    """

    def __init__(self, catalog: ToolCatalog, overrides: Mapping[str, PermissionLevel] | None = None) -> None:
        self._catalog = catalog
        self._overrides: Dict[str, PermissionLevel] = {}
        self._listeners: list[PermissionListener] = []
        for name, level in (overrides or {}).items():
            if name in catalog:
                self._overrides[name] = PermissionLevel(level)
            else:
                log_event(logger, "permission.override.ignored", level=logging.WARNING, tool=name)

    def add_listener(self, listener: PermissionListener) -> None:
        self._listeners.append(listener)

    def default_for(self, name: str) -> PermissionLevel:
        tool = self._catalog.lookup(name)
        return PermissionLevel.ASK if tool.requires_approval else PermissionLevel.ALLOW

    def check(self, name: str) -> PermissionLevel:
        override = self._overrides.get(name)
        if override is not None:
            return override
        return self.default_for(name)

    def is_overridden(self, name: str) -> bool:
        return name in self._overrides

    def set(self, name: str, level: PermissionLevel) -> None:  # noqa: A003 - mirrors store API
        self._catalog.lookup(name)
        self._overrides[name] = level
        log_event(logger, "permission.set", tool=name, permission=level.value)
        self._notify(name)

    def reset(self, name: str) -> None:
        self._catalog.lookup(name)
        removed = self._overrides.pop(name, None)
        log_event(logger, "permission.reset", tool=name, previous=removed.value if removed else None)
        self._notify(name)

    def enable(self, name: str) -> None:
        """Re-enable a tool by dropping any override."""
        self.reset(name)

    def disable(self, name: str) -> None:
        self.set(name, PermissionLevel.DENY)

    def disabled(self) -> list[str]:
        return [name for name, level in self._overrides.items() if level is PermissionLevel.DENY]

    def overrides(self) -> Dict[str, PermissionLevel]:
        return dict(self._overrides)

    def _notify(self, name: str) -> None:
        level = self.check(name)
        for listener in list(self._listeners):
            listener(name, level)


def load_permission_overrides(path: Path) -> Dict[str, PermissionLevel]:
    """Read persisted overrides; unreadable or malformed files yield nothing."""
    if not path.is_file():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log_event(logger, "permission.load.failed", level=logging.WARNING, path=str(path), error=str(exc))
        return {}
    if not isinstance(raw, dict):
        return {}
    loaded: Dict[str, PermissionLevel] = {}
    for name, value in raw.items():
        try:
            loaded[str(name)] = PermissionLevel(str(value))
        except ValueError:
            log_event(logger, "permission.load.invalid", level=logging.WARNING, tool=name, value=value)
    return loaded


def save_permission_overrides(path: Path, overrides: Mapping[str, PermissionLevel]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {name: level.value for name, level in sorted(overrides.items())}
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
