"""
In-memory RemoteToolClient for tests.

Records every call and returns canned results; ``call_tool`` can be made
to hang or raise to exercise timeouts and error wrapping.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional


class FakeToolClient:
    def __init__(
        self,
        tools: Optional[List[Dict[str, Any]]] = None,
        result: Optional[Dict[str, Any]] = None,
        connected: bool = False,
    ) -> None:
        self.tools = tools or []
        self.result = result or {"content": [{"type": "text", "text": "ok"}]}
        self.connected = connected
        self.hang = False
        self.error: Optional[BaseException] = None
        self.initialize_calls: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.closed = False
        self.cancelled = False

    async def initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.initialize_calls.append(params)
        self.connected = True
        return {"protocolVersion": params["protocolVersion"], "serverInfo": {"name": "fake", "version": "1.0"}}

    async def list_tools(self) -> Dict[str, Any]:
        return {"tools": self.tools}

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        if self.hang:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return self.result

    def is_connected(self) -> bool:
        return self.connected

    async def close(self) -> None:
        self.connected = False
        self.closed = True
