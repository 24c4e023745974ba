from __future__ import annotations

from pathlib import Path

import pytest

from hecate.tools.args import EditFileArgs, GlobSearchArgs, ListDirectoryArgs, ReadFileArgs, WriteFileArgs
from hecate.tools.catalog import ToolError
from hecate.tools.filesystem import edit_file, glob_search, list_directory, read_file, resolve_path, write_file


def test_resolve_path_anchors_relative_paths(tmp_path: Path) -> None:
    assert resolve_path("a/b.txt", str(tmp_path)) == tmp_path / "a" / "b.txt"
    assert resolve_path(str(tmp_path / "x")) == tmp_path / "x"


@pytest.mark.asyncio
async def test_read_file_numbers_lines_and_pages(tmp_path: Path) -> None:
    target = tmp_path / "notes.txt"
    target.write_text("one\ntwo\nthree\nfour")

    full = await read_file(ReadFileArgs(path=str(target)))
    page = await read_file(ReadFileArgs(path=str(target), offset=2, limit=2))

    assert "(4 lines total)" in full
    assert "     1│ one" in full
    assert "Showing lines 2-3" in page
    assert "two" in page and "three" in page and "four" not in page


@pytest.mark.asyncio
async def test_read_file_offset_out_of_range(tmp_path: Path) -> None:
    target = tmp_path / "short.txt"
    target.write_text("only")

    result = await read_file(ReadFileArgs(path=str(target), offset=10))

    assert result == "File has only 1 lines, offset 10 is out of range"


@pytest.mark.asyncio
async def test_read_missing_file_raises_tool_error(tmp_path: Path) -> None:
    with pytest.raises(ToolError, match="failed to read file"):
        await read_file(ReadFileArgs(path=str(tmp_path / "missing.txt")))


@pytest.mark.asyncio
async def test_write_file_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "deep" / "dir" / "out.txt"

    result = await write_file(WriteFileArgs(path=str(target), content="hello\nworld"))

    assert target.read_text() == "hello\nworld"
    assert result == f"Successfully wrote 11 bytes (2 lines) to {target}"


@pytest.mark.asyncio
async def test_edit_file_replaces_first_or_all(tmp_path: Path) -> None:
    target = tmp_path / "code.py"
    target.write_text("x = 1\nx = 1\n")

    first = await edit_file(EditFileArgs(path=str(target), old_string="x = 1", new_string="x = 2"))
    assert target.read_text() == "x = 2\nx = 1\n"
    assert first == f"Replaced 1 of 2 occurrences in {target}"

    target.write_text("x = 1\nx = 1\n")
    every = await edit_file(EditFileArgs(path=str(target), old_string="x = 1", new_string="y", replace_all=True))
    assert target.read_text() == "y\ny\n"
    assert every == f"Successfully replaced 2 occurrence(s) in {target}"


@pytest.mark.asyncio
async def test_edit_file_requires_a_match(tmp_path: Path) -> None:
    target = tmp_path / "code.py"
    target.write_text("a")

    with pytest.raises(ToolError, match="old_string not found"):
        await edit_file(EditFileArgs(path=str(target), old_string="zzz", new_string="b"))
    assert target.read_text() == "a"


@pytest.mark.asyncio
async def test_list_directory_honors_gitignore_and_hidden(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("build/\n*.log\n")
    (tmp_path / "build").mkdir()
    (tmp_path / "build" / "artifact.bin").write_text("x")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print()")
    (tmp_path / "debug.log").write_text("log")
    (tmp_path / "README.md").write_text("readme")
    (tmp_path / "node_modules").mkdir()

    flat = await list_directory(ListDirectoryArgs(path=str(tmp_path)))
    deep = await list_directory(ListDirectoryArgs(path=str(tmp_path), recursive=True))
    hidden = await list_directory(ListDirectoryArgs(path=str(tmp_path), show_hidden=True))

    assert "[dir]  src/" in flat
    assert "[file] README.md" in flat
    assert "build" not in flat
    assert "debug.log" not in flat
    assert "node_modules" not in flat
    assert ".gitignore" not in flat
    assert "[file] src/main.py" in deep
    assert "[file] .gitignore" in hidden


@pytest.mark.asyncio
async def test_list_directory_errors(tmp_path: Path) -> None:
    (tmp_path / "file.txt").write_text("x")

    with pytest.raises(ToolError, match="path not found"):
        await list_directory(ListDirectoryArgs(path=str(tmp_path / "nope")))
    with pytest.raises(ToolError, match="not a directory"):
        await list_directory(ListDirectoryArgs(path=str(tmp_path / "file.txt")))


@pytest.mark.asyncio
async def test_glob_search_recursive_and_flat(tmp_path: Path) -> None:
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "a.py").write_text("")
    (tmp_path / "pkg" / "b.txt").write_text("")
    (tmp_path / "top.py").write_text("")

    recursive = await glob_search(GlobSearchArgs(pattern="**/*.py", path=str(tmp_path)))
    flat = await glob_search(GlobSearchArgs(pattern="*.py", path=str(tmp_path)))
    none = await glob_search(GlobSearchArgs(pattern="*.rs", path=str(tmp_path)))

    assert recursive.startswith("Found 2 files matching '**/*.py':")
    assert "pkg/a.py" in recursive and "top.py" in recursive
    assert "b.txt" not in recursive
    assert flat.splitlines()[2:] == ["top.py"]
    assert none == "No files found matching pattern: *.rs"


@pytest.mark.asyncio
async def test_glob_search_limit(tmp_path: Path) -> None:
    for index in range(5):
        (tmp_path / f"f{index}.txt").write_text("")

    result = await glob_search(GlobSearchArgs(pattern="*.txt", path=str(tmp_path), limit=3))

    assert "(limited to 3 results)" in result
