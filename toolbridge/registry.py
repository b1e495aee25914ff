"""
MCP Server Registry.

Persistent catalog of known MCP servers, backed by a single JSON file:

    {"servers": [...], "version": "1.0"}

Every mutation is written to disk before it returns. ``load()`` is meant
to be called once at startup; a missing or corrupt file starts an empty
registry.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from toolbridge.config import get_default_registry_path
from toolbridge.errors import TransportError
from toolbridge.models import (
    ServerDefinition,
    parse_registry,
    serialize_registry,
    validate_many,
    validate_server_definition,
)

logger = logging.getLogger(__name__)


class ServerRegistry:
    """
    Map of server name -> ServerDefinition with save-on-write persistence.

    Not thread-safe: callers in a multi-threaded host must serialize
    mutating calls on the same instance.
    """

    def __init__(self, registry_path: Optional[Union[str, Path]] = None):
        """
        Args:
            registry_path: Backing file (default: ~/.config/toolbridge/mcp/registry.json)
        """
        self.registry_path = Path(registry_path) if registry_path else get_default_registry_path()
        self._servers: Dict[str, ServerDefinition] = {}

    def load(self) -> None:
        """Replace in-memory state with the contents of the backing file."""
        self._servers.clear()

        if not self.registry_path.exists():
            logger.debug(f"Registry file not found, starting empty: {self.registry_path}")
            return

        try:
            with open(self.registry_path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            logger.warning(f"Could not read registry {self.registry_path}, starting empty: {e}")
            return

        for server in validate_many(parse_registry(content), source=str(self.registry_path)):
            self._servers[server.name] = server

        logger.info(f"Loaded {len(self._servers)} servers from {self.registry_path}")

    def save(self) -> None:
        """
        Write the full registry to disk.

        Raises:
            TransportError: If the file cannot be written
        """
        try:
            self.registry_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.registry_path, "w", encoding="utf-8") as f:
                f.write(serialize_registry(self.list_servers()))
        except OSError as e:
            raise TransportError(
                f"Failed to save registry: {e}", details={"path": str(self.registry_path)}
            ) from e

        logger.debug(f"Registry saved to {self.registry_path}")

    def add_server(self, definition: Union[ServerDefinition, Mapping[str, Any]]) -> ServerDefinition:
        """
        Add a server, or fully replace the one with the same name.

        Returns:
            The validated definition that was stored

        Raises:
            ProtocolError: INVALID_PARAMS if the definition is invalid
            TransportError: If persisting fails (the change is rolled back)
        """
        server = validate_server_definition(definition)
        previous = self._servers.get(server.name)
        snapshot = dict(self._servers)

        self._servers[server.name] = server
        try:
            self.save()
        except TransportError:
            self._servers = snapshot
            raise

        logger.info(f"{'Updated' if previous else 'Added'} server {server.name} ({server.transport})")
        return server

    def remove_server(self, name: str) -> bool:
        """
        Remove a server by name.

        Returns:
            True if removed, False if not found
        """
        if name not in self._servers:
            return False

        snapshot = dict(self._servers)
        del self._servers[name]
        try:
            self.save()
        except TransportError:
            self._servers = snapshot
            raise

        logger.info(f"Removed server {name}")
        return True

    def get_server(self, name: str) -> Optional[ServerDefinition]:
        return self._servers.get(name)

    def has_server(self, name: str) -> bool:
        return name in self._servers

    def list_servers(self) -> List[ServerDefinition]:
        return list(self._servers.values())

    def list_enabled_servers(self) -> List[ServerDefinition]:
        return [server for server in self._servers.values() if server.enabled is not False]

    def get_registry_path(self) -> Path:
        return self.registry_path
