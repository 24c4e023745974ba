"""Built-in tools and the catalog they are registered in."""

from __future__ import annotations

from hecate.daemon import MeshClient
from hecate.tools.catalog import Tool, ToolCatalog, ToolCategory, ToolError, ToolNotFoundError
from hecate.tools.code_explore import code_explore_tools
from hecate.tools.filesystem import filesystem_tools
from hecate.tools.mesh import mesh_tools
from hecate.tools.system import AskUserHandler, system_tools
from hecate.tools.web import web_tools


def build_default_catalog(
    mesh_client: MeshClient | None = None,
    ask_user: AskUserHandler | None = None,
) -> ToolCatalog:
    """Register every built-in tool, grouped by category."""
    return ToolCatalog(
        [
            *filesystem_tools(),
            *code_explore_tools(),
            *system_tools(ask_user=ask_user),
            *web_tools(),
            *mesh_tools(mesh_client),
        ]
    )


__all__ = [
    "Tool",
    "ToolCatalog",
    "ToolCategory",
    "ToolError",
    "ToolNotFoundError",
    "build_default_catalog",
]
