"""Mesh tools: discover capabilities, call procedures and publish messages."""

from __future__ import annotations

import json
from typing import Awaitable, Callable

from hecate.daemon import DaemonError, MeshClient
from hecate.tools.args import MeshCallArgs, MeshPublishArgs, MeshSearchArgs
from hecate.tools.catalog import Tool, ToolCategory, ToolError

PUBLISH_PROCEDURE = "mri:proc:hecate:pubsub.publish"


def short_id(identity: str) -> str:
    if len(identity) > 16:
        return f"{identity[:8]}...{identity[-8:]}"
    return identity


def _require(client: MeshClient | None) -> MeshClient:
    if client is None:
        raise ToolError("mesh client not configured - daemon connection required")
    return client


def make_mesh_search(client: MeshClient | None) -> Callable[[MeshSearchArgs], Awaitable[str]]:
    async def mesh_search(args: MeshSearchArgs) -> str:
        mesh = _require(client)
        try:
            capabilities = await mesh.discover_capabilities(args.realm, args.query, args.limit)
        except DaemonError as exc:
            raise ToolError(f"mesh search failed: {exc}") from exc

        if not capabilities:
            return f"No capabilities found matching: {args.query}"
        out = [f"Found {len(capabilities)} capabilities matching '{args.query}':", ""]
        for number, cap in enumerate(capabilities, start=1):
            out.append(f"{number}. {cap.mri}")
            if cap.description:
                out.append(f"   Description: {cap.description}")
            if cap.tags:
                out.append(f"   Tags: {', '.join(cap.tags)}")
            if cap.demo_procedure:
                out.append(f"   Demo: {cap.demo_procedure}")
            out.append(f"   Agent: {short_id(cap.agent_identity)}")
            out.append("")
        return "\n".join(out)

    return mesh_search


def make_mesh_call(client: MeshClient | None) -> Callable[[MeshCallArgs], Awaitable[str]]:
    async def mesh_call(args: MeshCallArgs) -> str:
        mesh = _require(client)
        try:
            result = await mesh.rpc_call(args.procedure, args.args)
        except DaemonError as exc:
            raise ToolError(f"RPC call failed: {exc}") from exc

        if result.error:
            return f"RPC Error: {result.error}"
        out = [f"RPC Call: {args.procedure}"]
        if result.duration:
            out.append(f"Duration: {result.duration}")
        out.append("")
        out.append("Result:")
        if result.result is None:
            out.append("(no result)")
        else:
            out.append(json.dumps(result.result, indent=2, default=str))
        return "\n".join(out)

    return mesh_call


def make_mesh_publish(client: MeshClient | None) -> Callable[[MeshPublishArgs], Awaitable[str]]:
    async def mesh_publish(args: MeshPublishArgs) -> str:
        mesh = _require(client)
        try:
            result = await mesh.rpc_call(PUBLISH_PROCEDURE, {"topic": args.topic, "payload": args.payload})
        except DaemonError as exc:
            raise ToolError(f"publish failed (daemon may not support pubsub.publish): {exc}") from exc
        if result.error:
            return f"Publish Error: {result.error}"
        return f"Successfully published to topic: {args.topic}"

    return mesh_publish


def mesh_tools(client: MeshClient | None = None) -> list[Tool]:
    return [
        Tool(
            name="mesh_search",
            category=ToolCategory.MESH,
            description="Search the Hecate mesh for capabilities, agents and services.",
            args_model=MeshSearchArgs,
            handler=make_mesh_search(client),
            summary="Mesh search: {query}",
        ),
        Tool(
            name="mesh_call",
            category=ToolCategory.MESH,
            description="Call a remote procedure on the Hecate mesh. Use mesh_search first to find procedures.",
            args_model=MeshCallArgs,
            handler=make_mesh_call(client),
            requires_approval=True,
            summary="Mesh call: {procedure}",
        ),
        Tool(
            name="mesh_publish",
            category=ToolCategory.MESH,
            description="Publish a message to a topic on the Hecate mesh for subscribed agents.",
            args_model=MeshPublishArgs,
            handler=make_mesh_publish(client),
            requires_approval=True,
            summary="Publish to: {topic}",
        ),
    ]
