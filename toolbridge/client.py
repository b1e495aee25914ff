"""
Remote tool clients.

``RemoteToolClient`` is the capability the tool adapter needs from a
connection to one MCP server. ``MCPSessionClient`` provides it on top of
the official MCP SDK, for both stdio and streamable HTTP servers.
"""

from __future__ import annotations

import logging
import os
from contextlib import AsyncExitStack
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from mcp import ClientSession, StdioServerParameters, types
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from toolbridge import __version__
from toolbridge.config import expand_env_vars
from toolbridge.errors import InitializationError, ServerConnectionError
from toolbridge.models import HttpConfig, ServerDefinition

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "toolbridge-mcp-client", "version": __version__}


def default_initialize_params() -> Dict[str, Any]:
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {},
        "clientInfo": dict(CLIENT_INFO),
    }


@runtime_checkable
class RemoteToolClient(Protocol):
    async def initialize(self, params: Dict[str, Any]) -> Any: ...

    async def list_tools(self) -> Any: ...

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any: ...

    def is_connected(self) -> bool: ...

    async def close(self) -> None: ...


def build_auth_headers(http: HttpConfig) -> Dict[str, str]:
    """
    Build request headers for an HTTP server, including authentication.

    The token comes from ``auth.token`` or, failing that, from the
    environment variable named by ``auth.tokenEnv``.
    """
    headers = dict(http.headers or {})
    auth = http.auth
    if auth is None:
        return headers

    token = auth.token
    if not token and auth.token_env:
        token = os.environ.get(auth.token_env, "")
        if not token:
            logger.warning(f"Environment variable not set: {auth.token_env}")

    if not token:
        return headers

    if auth.type == "apikey":
        headers[auth.header_name or "X-API-Key"] = token
    else:
        headers["Authorization"] = f"Bearer {token}"

    return headers


def build_env(env: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Build environment variables for a stdio server subprocess."""
    result = dict(os.environ)
    result.update({key: expand_env_vars(value) for key, value in (env or {}).items()})
    return result


class MCPSessionClient:
    """
    RemoteToolClient backed by an MCP SDK ``ClientSession``.

    The transport is opened by ``initialize`` and torn down by ``close``.
    """

    def __init__(self, definition: ServerDefinition):
        self.definition = definition
        self.session: Optional[ClientSession] = None
        self.server_info: Any = None
        self._exit_stack: Optional[AsyncExitStack] = None

    @property
    def name(self) -> str:
        return self.definition.name

    def is_connected(self) -> bool:
        return self.session is not None

    async def _open_transport(self, stack: AsyncExitStack) -> Tuple[Any, Any]:
        definition = self.definition

        if definition.transport == "stdio":
            stdio = definition.stdio
            server_params = StdioServerParameters(
                command=stdio.command,
                args=stdio.args or [],
                env=build_env(stdio.env),
                cwd=stdio.cwd,
            )
            logger.info(f"Connecting to {self.name}: {stdio.command} {' '.join(stdio.args or [])}")
            read_stream, write_stream = await stack.enter_async_context(stdio_client(server_params))
            return read_stream, write_stream

        http = definition.http
        logger.info(f"Connecting to {self.name}: {http.url}")
        read_stream, write_stream, _ = await stack.enter_async_context(
            streamablehttp_client(http.url, headers=build_auth_headers(http))
        )
        return read_stream, write_stream

    async def initialize(self, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Open the transport and perform the MCP handshake.

        The SDK negotiates the protocol version itself; ``clientInfo`` from
        ``params`` is sent as the client identity.

        Raises:
            ServerConnectionError: If the transport cannot be opened
            InitializationError: If the handshake fails
        """
        if self.session is not None:
            logger.warning(f"Server {self.name} already connected")
            return self.server_info

        params = params or default_initialize_params()
        client_info = types.Implementation(**params.get("clientInfo", CLIENT_INFO))

        self._exit_stack = AsyncExitStack()

        try:
            read_stream, write_stream = await self._open_transport(self._exit_stack)
        except Exception as e:
            await self.close()
            raise ServerConnectionError(
                f"Connection failed for {self.name}: {e}", details={"server": self.name}
            ) from e

        try:
            session = await self._exit_stack.enter_async_context(
                ClientSession(read_stream, write_stream, client_info=client_info)
            )
            self.server_info = await session.initialize()
        except Exception as e:
            await self.close()
            raise InitializationError(
                f"Initialization failed for {self.name}: {e}", details={"server": self.name}
            ) from e

        self.session = session
        logger.info(f"Connected to {self.name}")
        return self.server_info

    def _require_session(self) -> ClientSession:
        if self.session is None:
            raise ServerConnectionError(f"Server {self.name} not connected", details={"server": self.name})
        return self.session

    async def list_tools(self) -> Any:
        return await self._require_session().list_tools()

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        session = self._require_session()
        logger.debug(f"Calling {self.name}:{name} with {arguments}")
        return await session.call_tool(name, arguments or {})

    async def close(self) -> None:
        """Close the session and release the transport."""
        self.session = None
        self.server_info = None

        if self._exit_stack:
            try:
                await self._exit_stack.aclose()
            except Exception as e:
                logger.warning(f"Error during disconnect of {self.name}: {e}")
            finally:
                self._exit_stack = None
