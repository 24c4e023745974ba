"""System tools: shell commands, environment lookups and asking the user."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from hecate.tools.args import AskUserArgs, CwdArgs, GetEnvArgs, RunCommandArgs
from hecate.tools.catalog import Tool, ToolCategory, ToolError
from hecate.tools.filesystem import resolve_path

MAX_COMMAND_TIMEOUT_S = 300
STDOUT_LIMIT = 10_000
STDERR_LIMIT = 5_000

AskUserHandler = Callable[[str, Sequence[str] | None], Awaitable[str]]

_SENSITIVE_ENV = {
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "NPM_TOKEN",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENROUTER_API_KEY",
    "DATABASE_URL",
    "DB_PASSWORD",
}
_SENSITIVE_MARKERS = ("SECRET", "PASSWORD", "TOKEN", "API_KEY")


async def run_command(args: RunCommandArgs) -> str:
    timeout = min(args.timeout, MAX_COMMAND_TIMEOUT_S)
    workdir = resolve_path(args.working_dir) if args.working_dir else Path.cwd()
    if not workdir.is_dir():
        raise ToolError(f"working directory not found: {workdir}")

    started = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        "sh",
        "-c",
        args.command,
        cwd=str(workdir),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    timed_out = False
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        timed_out = True
        proc.kill()
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        raise
    duration = time.monotonic() - started

    out = [f"$ {args.command}", f"Working directory: {workdir}", f"Duration: {duration:.2f}s", ""]
    stdout_text = stdout.decode(errors="replace") if stdout else ""
    stderr_text = stderr.decode(errors="replace") if stderr else ""
    if stdout_text:
        if len(stdout_text) > STDOUT_LIMIT:
            omitted = len(stdout_text) - STDOUT_LIMIT
            stdout_text = stdout_text[:STDOUT_LIMIT] + f"\n... (truncated, {omitted} chars omitted)"
        out.append("STDOUT:")
        out.append(stdout_text.rstrip("\n"))
    if stderr_text:
        if len(stderr_text) > STDERR_LIMIT:
            stderr_text = stderr_text[:STDERR_LIMIT] + "\n... (truncated)"
        out.append("")
        out.append("STDERR:")
        out.append(stderr_text.rstrip("\n"))

    out.append("")
    if timed_out:
        out.append(f"Command timed out after {timeout} seconds")
    else:
        out.append(f"Exit code: {proc.returncode}")
    return "\n".join(out)


def is_sensitive_env(name: str) -> bool:
    upper = name.upper()
    return upper in _SENSITIVE_ENV or any(marker in upper for marker in _SENSITIVE_MARKERS)


async def get_env(args: GetEnvArgs) -> str:
    if is_sensitive_env(args.name):
        raise ToolError(f"access to sensitive environment variable '{args.name}' is blocked")
    value = os.environ.get(args.name)
    if not value:
        return f"Environment variable '{args.name}' is not set"
    return f"{args.name}={value}"


async def cwd(_args: CwdArgs) -> str:
    return str(Path.cwd())


def make_ask_user(handler: AskUserHandler | None) -> Callable[[AskUserArgs], Awaitable[str]]:
    async def ask_user(args: AskUserArgs) -> str:
        if handler is None:
            raise ToolError("ask_user is not configured (no handler set)")
        answer = await handler(args.question, args.options)
        return f"User answered: {answer}"

    return ask_user


def system_tools(ask_user: AskUserHandler | None = None) -> list[Tool]:
    return [
        Tool(
            name="run_command",
            category=ToolCategory.SYSTEM,
            description="Execute a shell command and return its output and exit code.",
            args_model=RunCommandArgs,
            handler=run_command,
            requires_approval=True,
            summary="Run: {command}",
            timeout_s=MAX_COMMAND_TIMEOUT_S + 10,
        ),
        Tool(
            name="ask_user",
            category=ToolCategory.SYSTEM,
            description="Ask the user a question and wait for the answer. Use when you need clarification.",
            args_model=AskUserArgs,
            handler=make_ask_user(ask_user),
            summary="Ask: {question}",
            timeout_s=0,
        ),
        Tool(
            name="get_env",
            category=ToolCategory.SYSTEM,
            description="Get the value of an environment variable. Secrets are never returned.",
            args_model=GetEnvArgs,
            handler=get_env,
            summary="Read env: {name}",
        ),
        Tool(
            name="cwd",
            category=ToolCategory.SYSTEM,
            description="Get the current working directory.",
            args_model=CwdArgs,
            handler=cwd,
            summary="Current directory",
        ),
    ]
