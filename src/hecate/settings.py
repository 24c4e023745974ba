"""Runtime settings loaded from the environment and ``.env`` files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from hecate.log_utils import parse_bool, parse_float, parse_int
from hecate.paths import config_dir, permissions_file

DEFAULT_MODEL = "test"
DEFAULT_DAEMON_URL = "http://localhost:4444"
DEFAULT_TOOL_TIMEOUT_S = 60.0
DEFAULT_TOOL_OUTPUT_LIMIT = 20_000
DEFAULT_MAX_TOOL_TURNS = 20

DEFAULT_SYSTEM_PROMPT = (
    "You are Hecate, a helpful assistant running in the user's terminal. "
    "You can call tools to read and edit files, search code, run commands, "
    "browse the web and talk to the Hecate mesh. Some tools need the user's "
    "approval; if a tool is denied or blocked, explain what you wanted to do "
    "and continue without it."
)


@dataclass(frozen=True)
class Settings:
    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    daemon_url: str = DEFAULT_DAEMON_URL
    tools_enabled: bool = True
    tool_timeout_s: float = DEFAULT_TOOL_TIMEOUT_S
    tool_output_limit: int = DEFAULT_TOOL_OUTPUT_LIMIT
    max_tool_turns: int = DEFAULT_MAX_TOOL_TURNS
    persist_permissions: bool = False
    permissions_path: Path = field(default_factory=permissions_file)


def load_env_files(cwd: Path | None = None) -> None:
    """Load ``.env`` from the config dir, then from the working directory.

    Values already present in the process environment are never overridden.
    """

    load_dotenv(config_dir() / ".env", override=False)
    load_dotenv(Path(cwd or Path.cwd()) / ".env", override=False)


def load_settings(*, cwd: Path | None = None, load_env: bool = True) -> Settings:
    if load_env:
        load_env_files(cwd)

    max_turns = parse_int(os.getenv("HECATE_MAX_TOOL_TURNS"), DEFAULT_MAX_TOOL_TURNS)
    timeout_s = parse_float(os.getenv("HECATE_TOOL_TIMEOUT"), DEFAULT_TOOL_TIMEOUT_S)
    output_limit = parse_int(os.getenv("HECATE_TOOL_OUTPUT_LIMIT"), DEFAULT_TOOL_OUTPUT_LIMIT)
    return Settings(
        model=os.getenv("HECATE_MODEL") or DEFAULT_MODEL,
        system_prompt=os.getenv("HECATE_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
        daemon_url=(os.getenv("HECATE_DAEMON_URL") or DEFAULT_DAEMON_URL).rstrip("/"),
        tools_enabled=parse_bool(os.getenv("HECATE_TOOLS"), True),
        tool_timeout_s=timeout_s if timeout_s > 0 else DEFAULT_TOOL_TIMEOUT_S,
        tool_output_limit=output_limit if output_limit > 0 else DEFAULT_TOOL_OUTPUT_LIMIT,
        max_tool_turns=max(1, max_turns),
        persist_permissions=parse_bool(os.getenv("HECATE_PERSIST_PERMISSIONS"), False),
    )
