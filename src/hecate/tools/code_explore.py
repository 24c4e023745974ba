"""Code exploration tools: regex search, symbol definitions and line context."""

from __future__ import annotations

import asyncio
import fnmatch
import os
import re
import shutil
from pathlib import Path

from hecate.tools.args import CodeContextArgs, GrepSearchArgs, SymbolSearchArgs
from hecate.tools.catalog import Tool, ToolCategory, ToolError
from hecate.tools.filesystem import resolve_path

SEARCH_TIMEOUT_S = 30.0

_SKIP_DIRS = {".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv", ".tox"}

_LANGUAGE_EXTENSIONS = {
    "go": {".go"},
    "rust": {".rs"},
    "typescript": {".ts", ".tsx"},
    "javascript": {".js", ".jsx", ".mjs"},
    "python": {".py"},
    "erlang": {".erl", ".hrl"},
    "elixir": {".ex", ".exs"},
}

_CODE_EXTENSIONS = set().union(*_LANGUAGE_EXTENSIONS.values()) | {
    ".c", ".cpp", ".h", ".hpp", ".java", ".kt", ".scala", ".rb", ".php",
    ".cs", ".swift", ".m", ".sh", ".bash", ".zsh", ".fish",
}


def _ripgrep_path() -> str | None:
    return shutil.which("rg")


def _iter_files(root: Path):
    if root.is_file():
        yield root
        return
    for current, subdirs, filenames in os.walk(root):
        subdirs[:] = sorted(d for d in subdirs if d not in _SKIP_DIRS)
        for name in sorted(filenames):
            yield Path(current, name)


def _is_binary(path: Path) -> bool:
    try:
        with path.open("rb") as handle:
            head = handle.read(512)
    except OSError:
        return True
    return not head or b"\x00" in head


def _display_path(path: Path, root: Path) -> str:
    if root.is_file():
        return path.name
    return path.relative_to(root).as_posix()


async def grep_search(args: GrepSearchArgs) -> str:
    root = resolve_path(args.path or ".")
    if not root.exists():
        raise ToolError(f"path not found: {args.path}")

    rg = _ripgrep_path()
    if rg:
        return await _grep_with_ripgrep(rg, args, root)
    return _grep_fallback(args, root)


async def _grep_with_ripgrep(rg: str, args: GrepSearchArgs, root: Path) -> str:
    cmd = [rg, "--line-number", "--no-heading", "--color", "never", "--max-count", str(args.limit)]
    if args.case_insensitive:
        cmd.append("-i")
    if args.context_lines:
        cmd.extend(["-C", str(args.context_lines)])
    if args.glob:
        cmd.extend(["-g", args.glob])
    cmd.extend(["--", args.pattern, str(root)])

    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=SEARCH_TIMEOUT_S)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.communicate()
        raise ToolError(f"search timed out after {SEARCH_TIMEOUT_S:.0f}s") from None

    if proc.returncode == 1:
        return f"No matches found for pattern: {args.pattern}"
    if proc.returncode != 0:
        detail = stderr.decode(errors="replace").strip() if stderr else f"exit code {proc.returncode}"
        raise ToolError(f"ripgrep error: {detail}")

    output = stdout.decode(errors="replace")
    if not output.strip():
        return f"No matches found for pattern: {args.pattern}"
    return f"Search results for '{args.pattern}':\n\n{output}"


def _grep_fallback(args: GrepSearchArgs, root: Path) -> str:
    flags = re.IGNORECASE if args.case_insensitive else 0
    try:
        regex = re.compile(args.pattern, flags)
    except re.error as exc:
        raise ToolError(f"invalid regex pattern: {exc}") from exc

    matches: list[str] = []
    for file in _iter_files(root):
        if args.glob and not fnmatch.fnmatch(file.name, args.glob):
            continue
        if _is_binary(file):
            continue
        try:
            lines = file.read_text(encoding="utf-8", errors="ignore").splitlines()
        except OSError:
            continue
        rel = _display_path(file, root)
        for idx, line in enumerate(lines, start=1):
            if regex.search(line):
                matches.append(f"{rel}:{idx}: {line}")
                if len(matches) >= args.limit:
                    break
        if len(matches) >= args.limit:
            break

    if not matches:
        return f"No matches found for pattern: {args.pattern}"
    return f"Found {len(matches)} matches for '{args.pattern}':\n\n" + "\n".join(matches) + "\n"


def _function_patterns(symbol: str, language: str | None) -> list[str]:
    by_language = {
        "go": [rf"func\s+(\([^)]*\)\s*)?{symbol}\s*\("],
        "rust": [rf"fn\s+{symbol}\s*[<(]"],
        "typescript": [
            rf"function\s+{symbol}\s*[<(]",
            rf"(const|let|var)\s+{symbol}\s*=\s*(async\s+)?\([^)]*\)\s*=>",
        ],
        "python": [rf"def\s+{symbol}\s*\("],
        "erlang": [rf"^{symbol}\s*\("],
        "elixir": [rf"defp?\s+{symbol}[(\s]"],
    }
    by_language["javascript"] = by_language["typescript"]
    if language in by_language:
        return by_language[language]
    return [
        rf"func\s+{symbol}\s*\(",
        rf"fn\s+{symbol}\s*[<(]",
        rf"function\s+{symbol}\s*[<(]",
        rf"def\s+{symbol}\s*\(",
    ]


def _type_patterns(symbol: str, language: str | None) -> list[str]:
    by_language = {
        "go": [rf"type\s+{symbol}\s+(struct|interface|=)"],
        "rust": [rf"(struct|enum|trait|type)\s+{symbol}[<\s{{]"],
        "typescript": [rf"(interface|type|class)\s+{symbol}[<\s{{=]"],
        "python": [rf"class\s+{symbol}[(\s:]"],
        "erlang": [rf"-record\({symbol},"],
        "elixir": [rf"defmodule\s+{symbol}\s+do"],
    }
    by_language["javascript"] = by_language["typescript"]
    if language in by_language:
        return by_language[language]
    return [rf"type\s+{symbol}\b", rf"(struct|enum|trait|interface|class)\s+{symbol}\b"]


def _variable_patterns(symbol: str, language: str | None) -> list[str]:
    by_language = {
        "go": [rf"var\s+{symbol}\s+", rf"\b{symbol}\s*:="],
        "rust": [rf"(let|const|static)\s+(mut\s+)?{symbol}\s*[=:]"],
        "typescript": [rf"(const|let|var)\s+{symbol}\s*[=:]"],
        "python": [rf"^{symbol}\s*(:[^=]+)?="],
    }
    by_language["javascript"] = by_language["typescript"]
    if language in by_language:
        return by_language[language]
    return [rf"(var|let|const)\s+{symbol}\s*[=:]"]


def build_symbol_patterns(symbol: str, kind: str, language: str | None) -> list[re.Pattern[str]]:
    escaped = re.escape(symbol)
    if kind == "function":
        raw = _function_patterns(escaped, language)
    elif kind == "type":
        raw = _type_patterns(escaped, language)
    elif kind == "variable":
        raw = _variable_patterns(escaped, language)
    else:
        raw = (
            _function_patterns(escaped, language)
            + _type_patterns(escaped, language)
            + _variable_patterns(escaped, language)
        )
    return [re.compile(pattern) for pattern in raw]


async def symbol_search(args: SymbolSearchArgs) -> str:
    root = resolve_path(args.path or ".")
    if not root.exists():
        raise ToolError(f"path not found: {args.path}")

    patterns = build_symbol_patterns(args.symbol, args.type, args.language)
    allowed = _LANGUAGE_EXTENSIONS.get(args.language or "", _CODE_EXTENSIONS)

    found: dict[str, None] = {}
    for file in _iter_files(root):
        if file.suffix not in allowed:
            continue
        try:
            lines = file.read_text(encoding="utf-8", errors="ignore").splitlines()
        except OSError:
            continue
        rel = _display_path(file, root)
        for idx, line in enumerate(lines, start=1):
            if any(pattern.search(line) for pattern in patterns):
                found[f"{rel}:{idx}: {line.strip()}"] = None

    if not found:
        return f"No definitions found for symbol: {args.symbol}"
    return f"Found {len(found)} definitions for '{args.symbol}':\n\n" + "\n".join(found) + "\n"


async def code_context(args: CodeContextArgs) -> str:
    path = resolve_path(args.path)
    try:
        lines = path.read_text(encoding="utf-8", errors="replace").split("\n")
    except OSError as exc:
        raise ToolError(f"failed to read file: {exc}") from exc

    if args.line > len(lines):
        raise ToolError(f"line {args.line} is out of range (file has {len(lines)} lines)")

    start = max(0, args.line - args.context_lines - 1)
    end = min(len(lines), args.line + args.context_lines)
    out = [f"File: {args.path} (lines {start + 1}-{end})", ""]
    for i in range(start, end):
        marker = ">" if i + 1 == args.line else " "
        out.append(f"{marker}{i + 1:5}│ {lines[i]}")
    return "\n".join(out) + "\n"


def code_explore_tools() -> list[Tool]:
    return [
        Tool(
            name="grep_search",
            category=ToolCategory.CODE_EXPLORE,
            description=(
                "Search file contents with a regular expression. Uses ripgrep when available. "
                "Returns matching lines with file paths and line numbers."
            ),
            args_model=GrepSearchArgs,
            handler=grep_search,
            summary="Search for: {pattern}",
        ),
        Tool(
            name="symbol_search",
            category=ToolCategory.CODE_EXPLORE,
            description="Find function, type or variable definitions using language-aware patterns.",
            args_model=SymbolSearchArgs,
            handler=symbol_search,
            summary="Find symbol: {symbol}",
        ),
        Tool(
            name="code_context",
            category=ToolCategory.CODE_EXPLORE,
            description="Show the code surrounding a specific line, e.g. around a search match.",
            args_model=CodeContextArgs,
            handler=code_context,
            summary="Context: {path}:{line}",
        ),
    ]
