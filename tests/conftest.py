"""
Shared pytest fixtures for toolbridge tests.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

# Ensure the project root is in the Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from toolbridge.config import get_settings
from toolbridge.registry import ServerRegistry
from toolbridge.tools.registry import ToolRegistry
from tests.utils.fake_client import FakeToolClient


# ==================== Settings Fixtures ====================


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """
    Point the settings at a temporary config directory.

    Keeps tests away from the real ~/.config and resets the cached settings.
    """
    monkeypatch.setenv("TOOLBRIDGE_CONFIG_DIR", str(tmp_path / "config"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ==================== Definition Fixtures ====================


@pytest.fixture
def stdio_definition() -> Dict[str, Any]:
    """A valid stdio server definition."""
    return {
        "name": "filesystem",
        "transport": "stdio",
        "stdio": {"command": "npx", "args": ["-y", "@modelcontextprotocol/server-filesystem", "."]},
        "description": "Local files",
    }


@pytest.fixture
def http_definition() -> Dict[str, Any]:
    """A valid http server definition."""
    return {
        "name": "remote-search",
        "transport": "http",
        "http": {"url": "https://mcp.example.com/mcp", "auth": {"type": "bearer", "tokenEnv": "SEARCH_TOKEN"}},
    }


# ==================== Registry Fixtures ====================


@pytest.fixture
def registry_path(tmp_path: Path) -> Path:
    """Backing file for a test registry (not created yet)."""
    return tmp_path / "mcp" / "registry.json"


@pytest.fixture
def server_registry(registry_path: Path) -> ServerRegistry:
    """Fresh, loaded ServerRegistry backed by a temporary file."""
    registry = ServerRegistry(registry_path)
    registry.load()
    return registry


@pytest.fixture
def tool_registry() -> ToolRegistry:
    """Empty host tool registry."""
    return ToolRegistry()


# ==================== Client Fixtures ====================


@pytest.fixture
def read_file_tool() -> Dict[str, Any]:
    """Remote tool advertised by a filesystem server."""
    return {
        "name": "read_file",
        "description": "Read a file",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path"},
                "encoding": {"type": "string"},
            },
            "required": ["path"],
        },
    }


@pytest.fixture
def fake_client(read_file_tool: Dict[str, Any]) -> FakeToolClient:
    """Connected-on-initialize fake client advertising read_file."""
    return FakeToolClient(tools=[read_file_tool])
