from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from toolbridge.errors import ErrorCode, ProtocolError

logger = logging.getLogger(__name__)

ToolHandler = Callable[[BaseModel], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: ToolHandler
    category: str = "deploy"

    async def execute(self, raw_args: Optional[Dict[str, Any]] = None) -> Any:
        """Validate raw arguments against the input model and run the handler."""
        raw_args = raw_args or {}

        try:
            payload = self.input_model.model_validate(raw_args)
        except ValidationError as e:
            raise ProtocolError(
                code=ErrorCode.INVALID_PARAMS,
                message=f"Invalid parameters for tool {self.name}: {e.error_count()} error(s)",
                details={"error": str(e), "tool": self.name, "args": raw_args},
            ) from e

        return await self.handler(payload)


class ToolRegistry:
    """Host-side registry that adapted MCP tools are registered into."""

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            logger.debug(f"Replacing tool {tool.name}")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> List[ToolDefinition]:
        return sorted(self._tools.values(), key=lambda t: t.name)

    def get(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if not tool:
            raise ProtocolError(
                code=ErrorCode.METHOD_NOT_FOUND,
                message=f"Unknown tool: {name}",
                details={"tool": name},
            )
        return tool

    async def call(self, name: str, raw_args: Optional[Dict[str, Any]] = None) -> Any:
        return await self.get(name).execute(raw_args)
