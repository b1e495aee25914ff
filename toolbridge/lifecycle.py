"""
MCP Server Lifecycle Manager.

Starts, stops, restarts and health-checks connections to MCP servers.
One manager is created by the host at startup and passed to whoever
needs it.

Usage:
    manager = ServerManager()
    await manager.start_all(registry.list_enabled_servers())

    links = await manager.register_tools(tool_registry, "filesystem")

    await manager.stop_all()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from toolbridge.client import MCPSessionClient, RemoteToolClient, default_initialize_params
from toolbridge.config import get_settings
from toolbridge.errors import ServerConnectionError
from toolbridge.models import ListToolsResult, ServerDefinition, WrappedToolLink
from toolbridge.tools.adapter import ToolWrapperOptions, register_server_tools
from toolbridge.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ServerDefinition], RemoteToolClient]


@dataclass
class ServerConnection:
    name: str
    client: RemoteToolClient
    definition: ServerDefinition
    connected_at: datetime
    tool_count: int = 0
    healthy: bool = True


@dataclass
class HealthCheckResult:
    name: str
    healthy: bool
    tool_count: int
    latency_ms: float
    error: Optional[str] = None


class ServerManager:
    """
    Manages connections to MCP servers.

    Responsibilities:
    - Open a client per server definition and run the handshake
    - Track connected servers by name
    - Probe server health with a bounded tools/list call
    - Register a server's tools with the host ToolRegistry
    """

    def __init__(
        self,
        client_factory: ClientFactory = MCPSessionClient,
        health_check_timeout: Optional[float] = None,
        restart_delay: float = 0.5,
    ):
        """
        Args:
            client_factory: Builds a RemoteToolClient for a definition
            health_check_timeout: Seconds allowed for a health probe
                                  (default: from settings)
            restart_delay: Seconds to wait between stop and start on restart
        """
        self._client_factory = client_factory
        self._health_check_timeout = health_check_timeout or get_settings().health_check_timeout_seconds
        self._restart_delay = restart_delay
        self._connections: Dict[str, ServerConnection] = {}

    async def start_server(self, definition: ServerDefinition) -> ServerConnection:
        existing = self._connections.get(definition.name)
        if existing:
            logger.warning(f"Server '{definition.name}' already connected")
            return existing

        logger.info(f"Starting MCP server: {definition.name}")

        client = self._client_factory(definition)
        try:
            await client.initialize(default_initialize_params())
        except Exception:
            await client.close()
            raise

        tool_count = 0
        try:
            listing = ListToolsResult.model_validate(await client.list_tools())
            tool_count = len(listing.tools)
        except Exception as e:
            # Servers without tools/list still count as started
            logger.warning(f"Could not list tools of '{definition.name}': {e}")

        connection = ServerConnection(
            name=definition.name,
            client=client,
            definition=definition,
            connected_at=datetime.now(timezone.utc),
            tool_count=tool_count,
        )
        self._connections[definition.name] = connection

        logger.info(f"Server '{definition.name}' started with {tool_count} tools")
        return connection

    async def stop_server(self, name: str) -> bool:
        """
        Stop a server.

        Returns:
            True if stopped, False if it was not connected
        """
        connection = self._connections.pop(name, None)
        if connection is None:
            logger.warning(f"Server '{name}' not found")
            return False

        logger.info(f"Stopping MCP server: {name}")
        try:
            await connection.client.close()
        except Exception as e:
            logger.error(f"Error disconnecting server '{name}': {e}")

        return True

    async def restart_server(self, name: str) -> ServerConnection:
        connection = self._connections.get(name)
        if connection is None:
            raise ServerConnectionError(f"Server '{name}' not found", details={"server": name})

        await self.stop_server(name)
        await asyncio.sleep(self._restart_delay)
        return await self.start_server(connection.definition)

    async def health_check(self, name: str, timeout: Optional[float] = None) -> HealthCheckResult:
        """Probe a server with tools/list and record the outcome on its connection."""
        connection = self._connections.get(name)
        if connection is None:
            return HealthCheckResult(
                name=name, healthy=False, tool_count=0, latency_ms=0.0, error="Server not connected"
            )

        started = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                connection.client.list_tools(),
                timeout=timeout or self._health_check_timeout,
            )
            listing = ListToolsResult.model_validate(raw)
        except asyncio.TimeoutError:
            connection.healthy = False
            return HealthCheckResult(
                name=name,
                healthy=False,
                tool_count=0,
                latency_ms=(time.perf_counter() - started) * 1000,
                error="Health check timeout",
            )
        except Exception as e:
            connection.healthy = False
            return HealthCheckResult(
                name=name,
                healthy=False,
                tool_count=0,
                latency_ms=(time.perf_counter() - started) * 1000,
                error=str(e),
            )

        connection.healthy = True
        connection.tool_count = len(listing.tools)
        return HealthCheckResult(
            name=name,
            healthy=True,
            tool_count=connection.tool_count,
            latency_ms=(time.perf_counter() - started) * 1000,
        )

    async def start_all(self, definitions: Iterable[ServerDefinition]) -> Dict[str, ServerConnection]:
        """Start every enabled server; failures are logged and skipped."""
        results: Dict[str, ServerConnection] = {}

        for definition in definitions:
            if definition.enabled is False:
                logger.debug(f"Server {definition.name} is disabled, skipping")
                continue

            try:
                results[definition.name] = await self.start_server(definition)
            except Exception as e:
                logger.error(f"Failed to start server '{definition.name}': {e}")

        return results

    async def stop_all(self) -> None:
        logger.info(f"Shutting down {len(self._connections)} MCP servers")
        for name in list(self._connections.keys()):
            await self.stop_server(name)

    async def register_tools(
        self,
        tool_registry: ToolRegistry,
        name: str,
        options: Optional[ToolWrapperOptions] = None,
    ) -> List[WrappedToolLink]:
        """Register the tools of a connected server with the host registry."""
        client = self.get_client(name)
        if client is None:
            raise ServerConnectionError(f"Server '{name}' not connected", details={"server": name})
        return await register_server_tools(tool_registry, name, client, options or ToolWrapperOptions.from_settings())

    def get_connected_servers(self) -> List[str]:
        return list(self._connections.keys())

    def get_connection(self, name: str) -> Optional[ServerConnection]:
        return self._connections.get(name)

    def get_all_connections(self) -> List[ServerConnection]:
        return list(self._connections.values())

    def get_client(self, name: str) -> Optional[RemoteToolClient]:
        connection = self._connections.get(name)
        return connection.client if connection else None
