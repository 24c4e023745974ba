"""Tool descriptors and the catalog the rest of the client looks tools up in."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, Mapping

from pydantic import BaseModel

ToolHandler = Callable[[Any], Awaitable[str]]

_SUMMARY_LIMIT = 60


class ToolCategory(str, Enum):
    FILESYSTEM = "filesystem"
    CODE_EXPLORE = "code_explore"
    SYSTEM = "system"
    WEB = "web"
    MESH = "mesh"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @property
    def badge(self) -> str:
        return _CATEGORY_BADGES[self]


_CATEGORY_LABELS = {
    ToolCategory.FILESYSTEM: "File System",
    ToolCategory.CODE_EXPLORE: "Code Exploration",
    ToolCategory.SYSTEM: "System",
    ToolCategory.WEB: "Web",
    ToolCategory.MESH: "Mesh",
}

_CATEGORY_BADGES = {
    ToolCategory.FILESYSTEM: "FS",
    ToolCategory.CODE_EXPLORE: "CODE",
    ToolCategory.SYSTEM: "SYS",
    ToolCategory.WEB: "WEB",
    ToolCategory.MESH: "MESH",
}


class ToolError(Exception):
    """Expected tool failure; the message is shown to the model as the result."""


class ToolNotFoundError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


@dataclass(frozen=True)
class Tool:
    """A named capability the model may ask to run.

    ``args_model`` doubles as the parameter schema advertised to the model and
    as the validator applied before the handler is called. ``timeout_s``
    overrides the pipeline default; ``0`` means the call is never timed out.
    """

    name: str
    category: ToolCategory
    description: str
    args_model: type[BaseModel]
    handler: ToolHandler
    requires_approval: bool = False
    summary: str | None = None
    timeout_s: float | None = None

    def parameters_schema(self) -> Dict[str, Any]:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def validate_args(self, arguments: Mapping[str, Any] | None) -> BaseModel:
        return self.args_model.model_validate(dict(arguments or {}))

    def describe_call(self, arguments: Mapping[str, Any] | None) -> str:
        """One-line summary of a call, e.g. ``Run: ls -la``."""
        args = dict(arguments or {})
        if self.summary:
            try:
                return _clip(self.summary.format_map(args))
            except (KeyError, IndexError, ValueError):
                pass
        return f"{self.name}({', '.join(sorted(args))})"


def _clip(text: str) -> str:
    text = " ".join(text.split())
    if len(text) > _SUMMARY_LIMIT:
        return text[:_SUMMARY_LIMIT] + "..."
    return text


class ToolCatalog:
    """Immutable, ordered collection of tools keyed by name."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def lookup(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def all(self) -> tuple[Tool, ...]:
        return tuple(self._tools.values())

    def by_category(self, category: ToolCategory) -> tuple[Tool, ...]:
        return tuple(tool for tool in self._tools.values() if tool.category == category)

    def grouped(self) -> Dict[ToolCategory, tuple[Tool, ...]]:
        """Tools grouped by category, in category declaration order."""
        groups = {category: self.by_category(category) for category in ToolCategory}
        return {category: tools for category, tools in groups.items() if tools}

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[Dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters_schema(),
            }
            for tool in self._tools.values()
        ]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
