"""
MCP Server Config Loading.

Loads server definitions from a standalone catalog file or from the
``mcp`` section of a host project config, and merges definition lists.

Catalog format (JSON or YAML):

    version: "1.0"
    servers:
      - name: filesystem
        transport: stdio
        stdio:
          command: npx
          args: ["-y", "@modelcontextprotocol/server-filesystem", "."]

Host config format (flat entries under ``mcp.servers``):

    mcp:
      enabled: true
      servers:
        - name: filesystem
          transport: stdio
          command: npx
          args: ["-y", "@modelcontextprotocol/server-filesystem", "."]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import yaml

from toolbridge.config import expand_env_vars
from toolbridge.errors import ErrorCode, ProtocolError, ServerConnectionError
from toolbridge.models import ServerDefinition, validate_many

logger = logging.getLogger(__name__)

_HOST_STDIO_FIELDS = ("command", "args", "env", "cwd")
_HOST_HTTP_FIELDS = ("url", "auth", "headers", "timeout")


def _read_structured(path: Path) -> Any:
    """Read a JSON (by suffix) or YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ServerConnectionError(f"Failed to read config file {path}: {e}", details={"path": str(path)}) from e

    try:
        if path.suffix.lower() == ".json":
            return json.loads(content)
        return yaml.safe_load(content)
    except (ValueError, yaml.YAMLError) as e:
        raise ProtocolError(
            code=ErrorCode.PARSE_ERROR,
            message=f"Invalid config file {path}: {e}",
            details={"path": str(path)},
        ) from e


def _expand_values(node: Any) -> Any:
    """Expand environment references in every string of a parsed config tree."""
    if isinstance(node, list):
        return [_expand_values(item) for item in node]
    if isinstance(node, dict):
        return {key: _expand_values(value) for key, value in node.items()}
    return expand_env_vars(node) if isinstance(node, str) else node


def load_standalone_config(config_path: Union[str, Path]) -> List[ServerDefinition]:
    """
    Load server definitions from a standalone catalog file.

    Args:
        config_path: Path to a file containing ``{"servers": [...]}``

    Returns:
        The valid definitions, in file order. Invalid entries are logged
        and dropped.

    Raises:
        ProtocolError: If the file is missing or unreadable (CONNECTION_ERROR),
            not parseable (PARSE_ERROR), or has no ``servers`` list
            (INVALID_PARAMS)
    """
    path = Path(config_path)
    if not path.exists():
        raise ServerConnectionError(f"Config file not found: {path}", details={"path": str(path)})

    logger.info(f"Loading MCP servers from {path}")
    data = _read_structured(path)

    if not isinstance(data, dict) or not isinstance(data.get("servers"), list):
        raise ProtocolError(
            code=ErrorCode.INVALID_PARAMS,
            message=f'Config file {path} must have a "servers" array',
            details={"path": str(path), "field": "servers"},
        )

    servers = validate_many(_expand_values(data["servers"]), source=str(path))
    logger.info(f"Loaded {len(servers)} of {len(data['servers'])} servers from {path}")
    return servers


def _normalize_host_entry(entry: Any) -> Any:
    """Nest the flat transport fields of a host config entry."""
    if not isinstance(entry, dict):
        return entry

    normalized: Dict[str, Any] = {
        key: value
        for key, value in entry.items()
        if key not in _HOST_STDIO_FIELDS and key not in _HOST_HTTP_FIELDS
    }

    transport = entry.get("transport")
    if transport == "stdio" and entry.get("command"):
        normalized["stdio"] = {k: entry[k] for k in _HOST_STDIO_FIELDS if entry.get(k) is not None}
    elif transport == "http" and entry.get("url"):
        normalized["http"] = {k: entry[k] for k in _HOST_HTTP_FIELDS if entry.get(k) is not None}

    return normalized


def load_from_host_config(config_path: Union[str, Path]) -> List[ServerDefinition]:
    """
    Load server definitions from the ``mcp`` section of a host project config.

    A missing file, a missing ``mcp`` section or ``mcp.enabled: false``
    yields an empty list. If ``mcp.configFile`` names a catalog, it is
    loaded first and the inline servers override it by name.

    Raises:
        ProtocolError: If the file cannot be parsed or the ``mcp`` section
            is malformed
    """
    path = Path(config_path)
    if not path.exists():
        logger.debug(f"Host config not found: {path}")
        return []

    data = _read_structured(path) or {}
    if not isinstance(data, dict):
        raise ProtocolError(
            code=ErrorCode.INVALID_PARAMS,
            message=f"Host config {path} must be an object",
            details={"path": str(path)},
        )

    section = data.get("mcp")
    if section is None:
        return []
    if not isinstance(section, dict):
        raise ProtocolError(
            code=ErrorCode.INVALID_PARAMS,
            message=f'Host config {path}: "mcp" must be an object',
            details={"path": str(path), "field": "mcp"},
        )

    if section.get("enabled", True) is False:
        logger.info(f"MCP disabled in {path}")
        return []

    entries = section.get("servers") or []
    if not isinstance(entries, list):
        raise ProtocolError(
            code=ErrorCode.INVALID_PARAMS,
            message=f'Host config {path}: "mcp.servers" must be an array',
            details={"path": str(path), "field": "mcp.servers"},
        )

    inline = validate_many(
        [_normalize_host_entry(entry) for entry in _expand_values(entries)],
        source=str(path),
    )

    catalog_file = section.get("configFile")
    if not catalog_file:
        return inline

    catalog_path = Path(catalog_file)
    if not catalog_path.is_absolute():
        catalog_path = path.parent / catalog_path
    return merge_definitions(load_standalone_config(catalog_path), inline)


def merge_definitions(
    base: Iterable[ServerDefinition],
    *overrides: Iterable[ServerDefinition],
) -> List[ServerDefinition]:
    """
    Merge definition lists by name; later lists win.

    An override replaces the whole base entry in place (no field-level
    merge). Names not present in the base are appended in override order.
    """
    merged: Dict[str, ServerDefinition] = {}

    for server in base:
        merged[server.name] = server

    for override in overrides:
        for server in override:
            merged[server.name] = server

    return list(merged.values())
