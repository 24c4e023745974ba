"""File system tools: read, write, edit, list and glob."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Callable

import pathspec  # type: ignore

from hecate.tools.args import (
    EditFileArgs,
    GlobSearchArgs,
    ListDirectoryArgs,
    ReadFileArgs,
    WriteFileArgs,
)
from hecate.tools.catalog import Tool, ToolCategory, ToolError

MAX_LIST_ENTRIES = 500

_DEFAULT_IGNORES = {
    ".git",
    ".hg",
    ".svn",
    ".cache",
    ".pytest_cache",
    ".ruff_cache",
    ".mypy_cache",
    ".tox",
    ".venv",
    "venv",
    "__pycache__",
    "node_modules",
}


def resolve_path(target: str, base: str | None = None) -> Path:
    """Expand ``~`` and anchor relative paths at ``base`` (default: cwd)."""
    path = Path(target).expanduser()
    if path.is_absolute():
        return path
    return Path(base or Path.cwd()).expanduser() / path


async def read_file(args: ReadFileArgs) -> str:
    path = resolve_path(args.path)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ToolError(f"failed to read file: {exc}") from exc

    lines = text.split("\n")
    start = args.offset - 1
    if start >= len(lines):
        return f"File has only {len(lines)} lines, offset {args.offset} is out of range"
    end = min(start + args.limit, len(lines))

    out = [f"File: {args.path} ({len(lines)} lines total)"]
    if start > 0 or end < len(lines):
        out.append(f"Showing lines {start + 1}-{end}")
    out.append("")
    out.extend(f"{i + 1:6}│ {lines[i]}" for i in range(start, end))
    return "\n".join(out) + "\n"


async def write_file(args: WriteFileArgs) -> str:
    path = resolve_path(args.path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(args.content, encoding="utf-8")
    except OSError as exc:
        raise ToolError(f"failed to write file: {exc}") from exc
    line_count = args.content.count("\n") + 1
    size = len(args.content.encode("utf-8"))
    return f"Successfully wrote {size} bytes ({line_count} lines) to {args.path}"


async def edit_file(args: EditFileArgs) -> str:
    path = resolve_path(args.path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ToolError(f"failed to read file: {exc}") from exc

    count = content.count(args.old_string)
    if count == 0:
        raise ToolError("old_string not found in file")

    if args.replace_all:
        updated = content.replace(args.old_string, args.new_string)
        replaced = count
    else:
        updated = content.replace(args.old_string, args.new_string, 1)
        replaced = 1

    try:
        path.write_text(updated, encoding="utf-8")
    except OSError as exc:
        raise ToolError(f"failed to write file: {exc}") from exc

    if count > 1 and not args.replace_all:
        return f"Replaced 1 of {count} occurrences in {args.path}"
    return f"Successfully replaced {replaced} occurrence(s) in {args.path}"


async def list_directory(args: ListDirectoryArgs) -> str:
    root = resolve_path(args.path)
    if not root.exists():
        raise ToolError(f"path not found: {args.path}")
    if not root.is_dir():
        raise ToolError("path is not a directory")

    matcher = _build_matcher(_load_gitignore_patterns(root))

    def _skip(rel: Path, is_dir: bool) -> bool:
        if not args.show_hidden and rel.name.startswith("."):
            return True
        if any(part in _DEFAULT_IGNORES for part in rel.parts):
            return True
        return matcher(rel, is_dir)

    dirs: list[str] = []
    files: list[str] = []
    if args.recursive:
        for current, subdirs, filenames in os.walk(root):
            rel_root = Path(current).relative_to(root)
            for name in list(subdirs):
                if _skip(rel_root / name, True):
                    subdirs.remove(name)
            subdirs.sort()
            for name in subdirs:
                dirs.append(f"{(rel_root / name).as_posix()}/")
            for name in sorted(filenames):
                rel = rel_root / name
                if not _skip(rel, False):
                    files.append(rel.as_posix())
    else:
        for entry in sorted(root.iterdir(), key=lambda p: p.name):
            rel = Path(entry.name)
            is_dir = entry.is_dir()
            if _skip(rel, is_dir):
                continue
            if is_dir:
                dirs.append(f"{entry.name}/")
            else:
                files.append(entry.name)

    lines = [f"[dir]  {name}" for name in sorted(dirs)] + [f"[file] {name}" for name in files]
    truncated = len(lines) > MAX_LIST_ENTRIES
    lines = lines[:MAX_LIST_ENTRIES]
    body = "\n".join(lines) if lines else "(empty)"
    result = f"Directory: {args.path}\n\n{body}\n"
    if truncated:
        result += f"\n(limited to {MAX_LIST_ENTRIES} entries)\n"
    return result


async def glob_search(args: GlobSearchArgs) -> str:
    base = resolve_path(args.path or ".")
    if not base.is_dir():
        raise ToolError(f"path is not a directory: {args.path}")

    matches: list[str] = []
    pattern = args.pattern
    if "**" in pattern:
        prefix, _, suffix = pattern.partition("**")
        prefix = prefix.rstrip("/")
        suffix = suffix.lstrip("/")
        search_root = base / prefix if prefix else base
        for current, subdirs, filenames in os.walk(search_root):
            subdirs[:] = sorted(d for d in subdirs if d not in _DEFAULT_IGNORES)
            for name in sorted(filenames):
                if suffix and not fnmatch.fnmatch(name, suffix):
                    continue
                matches.append(Path(current, name).relative_to(base).as_posix())
                if len(matches) >= args.limit:
                    break
            if len(matches) >= args.limit:
                break
    else:
        try:
            found = sorted(base.glob(pattern))
        except ValueError as exc:
            raise ToolError(f"invalid glob pattern: {exc}") from exc
        matches = [p.relative_to(base).as_posix() for p in found[: args.limit]]

    if not matches:
        return f"No files found matching pattern: {pattern}"

    out = [f"Found {len(matches)} files matching '{pattern}':", ""]
    out.extend(matches)
    if len(matches) == args.limit:
        out.append("")
        out.append(f"(limited to {args.limit} results)")
    return "\n".join(out)


def _load_gitignore_patterns(root: Path) -> list[str]:
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return []
    try:
        raw = gitignore.read_text(encoding="utf-8")
    except OSError:
        return []
    return [line.strip() for line in raw.splitlines() if line.strip() and not line.strip().startswith("#")]


def _build_matcher(patterns: list[str]) -> Callable[[Path, bool], bool]:
    spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns) if patterns else None

    def _match(path: Path, is_dir: bool) -> bool:
        if spec is None:
            return False
        return spec.match_file(path.as_posix() + ("/" if is_dir else ""))

    return _match


def filesystem_tools() -> list[Tool]:
    return [
        Tool(
            name="read_file",
            category=ToolCategory.FILESYSTEM,
            description=(
                "Read the contents of a file. Returns the content with line numbers. "
                "Use offset and limit for large files."
            ),
            args_model=ReadFileArgs,
            handler=read_file,
            summary="Read file: {path}",
        ),
        Tool(
            name="write_file",
            category=ToolCategory.FILESYSTEM,
            description="Write content to a file, creating it and any parent directories if needed.",
            args_model=WriteFileArgs,
            handler=write_file,
            requires_approval=True,
            summary="Write file: {path}",
        ),
        Tool(
            name="edit_file",
            category=ToolCategory.FILESYSTEM,
            description="Edit a file by replacing an exact string. The old_string must match exactly.",
            args_model=EditFileArgs,
            handler=edit_file,
            requires_approval=True,
            summary="Edit file: {path}",
        ),
        Tool(
            name="list_directory",
            category=ToolCategory.FILESYSTEM,
            description="List files and directories. Directories are listed first; .gitignore is honored.",
            args_model=ListDirectoryArgs,
            handler=list_directory,
            summary="List directory: {path}",
        ),
        Tool(
            name="glob_search",
            category=ToolCategory.FILESYSTEM,
            description="Find files matching a glob pattern. Supports ** for recursive matching.",
            args_model=GlobSearchArgs,
            handler=glob_search,
            summary="Search for files: {pattern}",
        ),
    ]
