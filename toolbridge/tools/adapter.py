"""
Adapter from remote MCP tools to host tool definitions.

Usage:
    tools, links = await create_tools_from_server("filesystem", client)
    for tool in tools:
        tool_registry.register(tool)

    # or in one step
    links = await register_server_tools(tool_registry, "filesystem", client)

Each remote tool ``read_file`` on server ``filesystem`` becomes the host
tool ``mcp_filesystem_read_file``. Calls are bounded by a timeout and
results are flattened to a single string.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from toolbridge.client import RemoteToolClient, default_initialize_params
from toolbridge.config import BridgeSettings, get_settings
from toolbridge.errors import ErrorCode, ProtocolError, ProtocolTimeoutError
from toolbridge.models import CallToolResult, ListToolsResult, RemoteTool, WrappedToolLink
from toolbridge.tools.registry import ToolDefinition, ToolRegistry
from toolbridge.tools.schema import ToolArguments, create_parameters_model

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True)
class ToolWrapperOptions:
    name_prefix: str = "mcp"
    category: str = "deploy"
    request_timeout: float = 60.0  # seconds

    @classmethod
    def from_settings(cls, settings: Optional[BridgeSettings] = None) -> "ToolWrapperOptions":
        settings = settings or get_settings()
        return cls(name_prefix=settings.name_prefix, request_timeout=settings.request_timeout_seconds)


def create_tool_name(server_name: str, tool_name: str, prefix: str = "mcp") -> str:
    return _UNSAFE_NAME_CHARS.sub("_", f"{prefix}_{server_name}_{tool_name}")


def format_tool_result(result: Any) -> str:
    """
    Render a tool result as text.

    Text items are kept as-is, images and resources become placeholders and
    unknown item types are dropped.
    """
    result = _coerce_result(result)
    pieces = []

    for item in result.content:
        if item.type == "text":
            pieces.append(item.text or "")
        elif item.type == "image":
            pieces.append(f"[Image: {item.mime_type or 'unknown'}]")
        elif item.type == "resource":
            uri = item.resource.uri if item.resource else None
            pieces.append(f"[Resource: {uri or 'unknown'}]")

    return "\n".join(piece for piece in pieces if piece)


def _coerce_result(raw: Any) -> CallToolResult:
    if isinstance(raw, CallToolResult):
        return raw
    return CallToolResult.model_validate(raw)


def _coerce_tool(raw: Any) -> RemoteTool:
    if isinstance(raw, RemoteTool):
        return raw
    return RemoteTool.model_validate(raw)


async def _call_with_timeout(
    client: RemoteToolClient,
    tool_name: str,
    arguments: dict,
    timeout: float,
) -> Any:
    """
    Race the remote call against the timeout.

    The pending call is cancelled locally whichever side wins; the remote
    server is not told to stop.
    """
    call = asyncio.ensure_future(client.call_tool(tool_name, arguments))
    try:
        done, _ = await asyncio.wait({call}, timeout=timeout)
        if call not in done:
            raise ProtocolTimeoutError(f"Tool '{tool_name}' timed out after {timeout:g}s")
        return call.result()
    finally:
        if not call.done():
            call.cancel()


def wrap_tool(
    tool: Any,
    server_name: str,
    client: RemoteToolClient,
    options: Optional[ToolWrapperOptions] = None,
) -> Tuple[ToolDefinition, WrappedToolLink]:
    """
    Wrap a single remote tool as a host ToolDefinition.

    Args:
        tool: RemoteTool, or anything with the same shape (dict, SDK Tool)
        server_name: Server the tool belongs to
        client: Connection used to run the tool
        options: Naming, category and timeout options

    Returns:
        The host tool and the link back to the remote tool
    """
    opts = options or ToolWrapperOptions()
    remote = _coerce_tool(tool)
    wrapped_name = create_tool_name(server_name, remote.name, opts.name_prefix)
    input_model = create_parameters_model(remote)
    details = {"server": server_name, "tool": remote.name}

    async def handler(payload: ToolArguments) -> str:
        try:
            raw = await _call_with_timeout(client, remote.name, payload.to_arguments(), opts.request_timeout)
            result = _coerce_result(raw)
            if result.is_error:
                message = "\n".join(item.text or "" for item in result.content)
                raise ProtocolError(
                    code=ErrorCode.INTERNAL_ERROR,
                    message=f"Tool execution failed ({server_name}/{remote.name}): {message}",
                    details=dict(details),
                )
            return format_tool_result(result)
        except ProtocolError as e:
            if e.details is None:
                e.details = dict(details)
            raise
        except Exception as e:
            raise ProtocolError(
                code=ErrorCode.INTERNAL_ERROR,
                message=f"Tool execution failed ({server_name}/{remote.name}): {e}",
                details=dict(details),
            ) from e

    definition = ToolDefinition(
        name=wrapped_name,
        description=remote.description or f"MCP tool: {remote.name}",
        input_model=input_model,
        handler=handler,
        category=opts.category,
    )
    link = WrappedToolLink(original_tool=remote, server_name=server_name, wrapped_name=wrapped_name)
    return definition, link


def wrap_tools(
    tools: Iterable[Any],
    server_name: str,
    client: RemoteToolClient,
    options: Optional[ToolWrapperOptions] = None,
) -> Tuple[List[ToolDefinition], List[WrappedToolLink]]:
    definitions: List[ToolDefinition] = []
    links: List[WrappedToolLink] = []

    for tool in tools:
        definition, link = wrap_tool(tool, server_name, client, options)
        definitions.append(definition)
        links.append(link)

    return definitions, links


async def create_tools_from_server(
    server_name: str,
    client: RemoteToolClient,
    options: Optional[ToolWrapperOptions] = None,
) -> Tuple[List[ToolDefinition], List[WrappedToolLink]]:
    """Initialize the client if needed, discover its tools and wrap them."""
    if not client.is_connected():
        await client.initialize(default_initialize_params())

    listing = ListToolsResult.model_validate(await client.list_tools())
    logger.debug(f"Discovered tools from {server_name}: {[t.name for t in listing.tools]}")

    return wrap_tools(listing.tools, server_name, client, options)


async def register_server_tools(
    tool_registry: ToolRegistry,
    server_name: str,
    client: RemoteToolClient,
    options: Optional[ToolWrapperOptions] = None,
) -> List[WrappedToolLink]:
    definitions, links = await create_tools_from_server(server_name, client, options)

    for definition in definitions:
        tool_registry.register(definition)

    logger.info(f"Registered {len(definitions)} tools from {server_name}")
    return links


def get_tool_link(wrapped_name: str, links: Iterable[WrappedToolLink]) -> Optional[WrappedToolLink]:
    return next((link for link in links if link.wrapped_name == wrapped_name), None)


def extract_original_tool_name(wrapped_name: str, server_name: str, prefix: str = "mcp") -> Optional[str]:
    """Strip the ``<prefix>_<server>_`` segment, or return None if it is absent."""
    segment = f"{prefix}_{server_name}_"
    if wrapped_name.startswith(segment):
        return wrapped_name[len(segment):]
    return None
