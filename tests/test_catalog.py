from __future__ import annotations

import pytest
from pydantic import ValidationError

from hecate.tools import build_default_catalog
from hecate.tools.catalog import ToolCatalog, ToolCategory, ToolNotFoundError
from tests.utils import PathArgs, make_tool


def test_lookup_and_get() -> None:
    catalog = ToolCatalog([make_tool("alpha"), make_tool("beta")])

    assert catalog.lookup("alpha").name == "alpha"
    assert catalog.get("missing") is None
    with pytest.raises(ToolNotFoundError) as excinfo:
        catalog.lookup("missing")
    assert str(excinfo.value) == "Unknown tool: missing"
    assert excinfo.value.name == "missing"


def test_duplicate_names_are_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate tool name: alpha"):
        ToolCatalog([make_tool("alpha"), make_tool("alpha")])


def test_all_preserves_registration_order() -> None:
    catalog = ToolCatalog([make_tool("zeta"), make_tool("alpha"), make_tool("mid")])

    assert [tool.name for tool in catalog.all()] == ["zeta", "alpha", "mid"]
    assert catalog.names() == ["zeta", "alpha", "mid"]
    assert len(catalog) == 3
    assert "alpha" in catalog
    assert [tool.name for tool in catalog] == ["zeta", "alpha", "mid"]


def test_by_category_and_grouped() -> None:
    catalog = ToolCatalog(
        [
            make_tool("web_one", category=ToolCategory.WEB),
            make_tool("fs_one", category=ToolCategory.FILESYSTEM),
            make_tool("web_two", category=ToolCategory.WEB),
        ]
    )

    assert [tool.name for tool in catalog.by_category(ToolCategory.WEB)] == ["web_one", "web_two"]
    assert catalog.by_category(ToolCategory.MESH) == ()
    grouped = catalog.grouped()
    assert list(grouped) == [ToolCategory.FILESYSTEM, ToolCategory.WEB]


def test_parameters_schema_comes_from_args_model() -> None:
    tool = make_tool("reader", args_model=PathArgs)

    schema = tool.parameters_schema()

    assert schema["type"] == "object"
    assert "path" in schema["properties"]
    assert schema["required"] == ["path"]
    assert "title" not in schema


def test_validate_args_rejects_missing_fields() -> None:
    tool = make_tool("reader", args_model=PathArgs)

    assert tool.validate_args({"path": "a.txt"}).path == "a.txt"
    with pytest.raises(ValidationError):
        tool.validate_args({})


def test_describe_call_uses_summary_and_falls_back() -> None:
    tool = make_tool("reader", args_model=PathArgs)

    assert tool.describe_call({"path": "notes.md"}) == "reader: notes.md"
    assert tool.describe_call({"other": 1}) == "reader(other)"
    long_path = "x" * 100
    assert tool.describe_call({"path": long_path}).endswith("...")


def test_default_catalog_contents() -> None:
    catalog = build_default_catalog()

    assert catalog.names() == [
        "read_file",
        "write_file",
        "edit_file",
        "list_directory",
        "glob_search",
        "grep_search",
        "symbol_search",
        "code_context",
        "run_command",
        "ask_user",
        "get_env",
        "cwd",
        "web_search",
        "web_fetch",
        "mesh_search",
        "mesh_call",
        "mesh_publish",
    ]
    approval = {tool.name for tool in catalog if tool.requires_approval}
    assert approval == {"write_file", "edit_file", "run_command", "mesh_call", "mesh_publish"}
    schemas = catalog.schemas()
    assert schemas[0]["name"] == "read_file"
    assert "path" in schemas[0]["input_schema"]["properties"]
