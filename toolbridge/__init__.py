"""
toolbridge - MCP tool server integration for coding agents.

Keeps a persistent catalog of MCP servers, loads server definitions from
config files, and adapts the tools those servers advertise into validated
host tools with bounded execution time.
"""

__version__ = "0.1.0"

from toolbridge.client import MCPSessionClient, RemoteToolClient
from toolbridge.config import BridgeSettings, get_default_registry_path, get_settings
from toolbridge.config_loader import load_from_host_config, load_standalone_config, merge_definitions
from toolbridge.errors import (
    ErrorCode,
    InitializationError,
    ProtocolError,
    ProtocolTimeoutError,
    ServerConnectionError,
    TransportError,
)
from toolbridge.lifecycle import ServerManager
from toolbridge.models import RemoteTool, ServerDefinition, WrappedToolLink, validate_server_definition
from toolbridge.registry import ServerRegistry

__all__ = [
    "BridgeSettings",
    "ErrorCode",
    "InitializationError",
    "MCPSessionClient",
    "ProtocolError",
    "ProtocolTimeoutError",
    "RemoteTool",
    "RemoteToolClient",
    "ServerConnectionError",
    "ServerDefinition",
    "ServerManager",
    "ServerRegistry",
    "TransportError",
    "WrappedToolLink",
    "get_default_registry_path",
    "get_settings",
    "load_from_host_config",
    "load_standalone_config",
    "merge_definitions",
    "validate_server_definition",
]
