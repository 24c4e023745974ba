"""Pydantic argument models for the built-in tools.

Each model is both the JSON schema sent to the model provider and the
validator applied to a model-issued call before the tool runs.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ReadFileArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(..., min_length=1, description="Path to the file to read")
    offset: int = Field(1, ge=1, description="Line number to start reading from (1-based)")
    limit: int = Field(500, ge=1, description="Maximum number of lines to read")


class WriteFileArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(..., min_length=1, description="Path to the file to write")
    content: str = Field(..., description="Content to write to the file")


class EditFileArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(..., min_length=1, description="Path to the file to edit")
    old_string: str = Field(..., min_length=1, description="The exact text to find and replace")
    new_string: str = Field(..., description="The replacement text")
    replace_all: bool = Field(False, description="Replace all occurrences instead of just the first")


class ListDirectoryArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(".", description="Directory to list, default '.'")
    recursive: bool = Field(False, description="List contents recursively")
    show_hidden: bool = Field(False, description="Include hidden files")


class GlobSearchArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pattern: str = Field(..., min_length=1, description="Glob pattern, e.g. '**/*.py' or 'src/*.ts'")
    path: str | None = Field(None, description="Base directory (default: current directory)")
    limit: int = Field(100, ge=1, description="Maximum number of results")


class GrepSearchArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    pattern: str = Field(..., min_length=1, description="Regular expression to search for")
    path: str | None = Field(None, description="File or directory to search (default: current directory)")
    glob: str | None = Field(None, description="Only search files matching this glob, e.g. '*.py'")
    context_lines: int = Field(0, ge=0, le=20, description="Lines of context around each match")
    case_insensitive: bool = Field(False, description="Case-insensitive matching")
    limit: int = Field(50, ge=1, description="Maximum number of matches")


SymbolKind = Literal["function", "type", "variable", "any"]
SymbolLanguage = Literal["go", "rust", "typescript", "javascript", "python", "erlang", "elixir"]


class SymbolSearchArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(..., min_length=1, description="Symbol name (function, type or variable)")
    type: SymbolKind = Field("any", description="Kind of symbol to look for")
    path: str | None = Field(None, description="Directory to search (default: current directory)")
    language: SymbolLanguage | None = Field(None, description="Programming language hint")


class CodeContextArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(..., min_length=1, description="Path to the file")
    line: int = Field(..., ge=1, description="Line number to center the context on")
    context_lines: int = Field(10, ge=1, le=200, description="Lines before and after to include")


class RunCommandArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    command: str = Field(..., min_length=1, description="Shell command to execute (do not leave blank).")
    working_dir: str | None = Field(None, description="Working directory (default: current directory)")
    timeout: int = Field(60, ge=1, description="Timeout in seconds (max 300)")


class GetEnvArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, description="Environment variable name")


class CwdArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AskUserArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question: str = Field(..., min_length=1, description="The question to ask the user")
    options: list[str] | None = Field(None, description="Optional list of choices to offer")


class WebSearchArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = Field(..., min_length=1, description="Search query")
    num_results: int = Field(5, ge=1, description="Number of results to return (max 10)")


class WebFetchArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = Field(..., min_length=1, description="http(s) URL to fetch")
    max_length: int = Field(5000, ge=1, description="Maximum characters of text to return (max 50000)")


class MeshSearchArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query: str = Field(..., min_length=1, description="Search query or tag to filter capabilities")
    realm: str | None = Field(None, description="Realm to search in")
    limit: int = Field(10, ge=1, le=100, description="Maximum number of results")


class MeshCallArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    procedure: str = Field(..., min_length=1, description="MRI of the procedure, e.g. 'mri:proc:hecate:llm.chat'")
    args: dict[str, Any] | None = Field(None, description="Arguments for the procedure (JSON object)")


class MeshPublishArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    topic: str = Field(..., min_length=1, description="Topic to publish to, e.g. 'hecate.status'")
    payload: dict[str, Any] = Field(..., description="Data to publish (JSON object)")
