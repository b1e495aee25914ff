"""
Data model for MCP server definitions, remote tools and tool results.

Server definitions are validated pydantic models. Field names are snake_case
in Python and camelCase on disk (``tokenEnv``, ``headerName``), and either
spelling is accepted on input.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from toolbridge.errors import ProtocolError, invalid_params

logger = logging.getLogger(__name__)

REGISTRY_VERSION = "1.0"

SERVER_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
SERVER_NAME_MAX_LENGTH = 64

_URL_ADAPTER = TypeAdapter(AnyUrl)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ==================== Server Definitions ====================


class StdioConfig(_WireModel):
    command: str
    args: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    cwd: Optional[str] = None

    @field_validator("command")
    @classmethod
    def _command_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("stdio.command is required")
        return value


class HttpAuth(_WireModel):
    type: Literal["oauth", "bearer", "apikey"]
    token: Optional[str] = None
    token_env: Optional[str] = None
    header_name: Optional[str] = None


class HttpConfig(_WireModel):
    url: str
    auth: Optional[HttpAuth] = None
    headers: Optional[Dict[str, str]] = None
    timeout: Optional[float] = None

    @field_validator("url")
    @classmethod
    def _url_well_formed(cls, value: str) -> str:
        # Parsed for validation only; the original string is kept so that
        # definitions round-trip unchanged.
        try:
            _URL_ADAPTER.validate_python(value)
        except ValidationError as e:
            raise ValueError("http.url must be a valid URL") from e
        return value


class ServerDefinition(_WireModel):
    name: str = Field(min_length=1, max_length=SERVER_NAME_MAX_LENGTH)
    transport: Literal["stdio", "http"]
    stdio: Optional[StdioConfig] = None
    http: Optional[HttpConfig] = None
    description: Optional[str] = None
    enabled: bool = True
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("name")
    @classmethod
    def _name_pattern(cls, value: str) -> str:
        if not SERVER_NAME_PATTERN.match(value):
            raise ValueError("Server name must contain only letters, numbers, underscores, and hyphens")
        return value

    @model_validator(mode="after")
    def _transport_block_matches(self) -> "ServerDefinition":
        if self.transport == "stdio":
            if self.stdio is None:
                raise ValueError("stdio transport requires stdio configuration")
            if self.http is not None:
                raise ValueError("stdio transport must not carry http configuration")
        else:
            if self.http is None:
                raise ValueError("http transport requires http configuration")
            if self.stdio is not None:
                raise ValueError("http transport must not carry stdio configuration")
        return self


def _format_validation_error(error: ValidationError) -> tuple[str, str]:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "definition"
    message = first.get("msg", "invalid value")
    # pydantic prefixes messages raised from validators
    message = message.removeprefix("Value error, ")
    return field, message


def validate_server_definition(raw: Union[ServerDefinition, Mapping[str, Any], Any]) -> ServerDefinition:
    """
    Validate a server definition.

    Args:
        raw: A mapping (file or API input) or an existing ServerDefinition,
             which is re-validated since models can be mutated after creation.

    Returns:
        A validated ServerDefinition

    Raises:
        ProtocolError: INVALID_PARAMS describing the first offending field
    """
    if isinstance(raw, ServerDefinition):
        raw = raw.model_dump(by_alias=True, exclude_none=True)

    if not isinstance(raw, Mapping):
        raise invalid_params("Server config must be an object")

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise invalid_params("Server name is required and must be a string", field="name")

    try:
        return ServerDefinition.model_validate(dict(raw))
    except ValidationError as e:
        field, message = _format_validation_error(e)
        raise invalid_params(f"Invalid server '{name}': {field}: {message}", server=name, field=field) from e


def validate_many(entries: List[Any], source: str) -> List[ServerDefinition]:
    """
    Validate entries one by one, dropping the ones that fail.

    Invalid entries are logged and skipped; the valid ones keep their
    relative order.
    """
    valid: List[ServerDefinition] = []
    for index, entry in enumerate(entries):
        try:
            valid.append(validate_server_definition(entry))
        except ProtocolError as e:
            label = entry.get("name") if isinstance(entry, Mapping) else None
            logger.warning(f"Skipping server '{label or f'#{index}'}' from {source}: {e.message}")
    return valid


# ==================== Registry File Codec ====================


def serialize_registry(servers: List[ServerDefinition]) -> str:
    payload = {
        "servers": [server.to_wire() for server in servers],
        "version": REGISTRY_VERSION,
    }
    return json.dumps(payload, indent=2)


def parse_registry(text: str) -> List[Any]:
    """Return the raw server entries of a registry file, or [] if unusable."""
    try:
        parsed = json.loads(text)
    except ValueError:
        return []
    if not isinstance(parsed, dict) or not isinstance(parsed.get("servers"), list):
        return []
    return parsed["servers"]


# ==================== Remote Tools & Results ====================


class RemoteTool(_WireModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None


class ResourceRef(_WireModel):
    model_config = ConfigDict(from_attributes=True)

    uri: Optional[str] = None
    name: Optional[str] = None
    mime_type: Optional[str] = None

    @field_validator("uri", mode="before")
    @classmethod
    def _uri_as_str(cls, value: Any) -> Any:
        return None if value is None else str(value)


class ContentItem(_WireModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    text: Optional[str] = None
    data: Optional[str] = None
    mime_type: Optional[str] = None
    resource: Optional[ResourceRef] = None


class CallToolResult(_WireModel):
    model_config = ConfigDict(from_attributes=True)

    content: List[ContentItem] = Field(default_factory=list)
    is_error: bool = False

    @field_validator("is_error", mode="before")
    @classmethod
    def _none_is_false(cls, value: Any) -> Any:
        return False if value is None else value


class ListToolsResult(_WireModel):
    model_config = ConfigDict(from_attributes=True)

    tools: List[RemoteTool] = Field(default_factory=list)


@dataclass(frozen=True)
class WrappedToolLink:
    original_tool: RemoteTool
    server_name: str
    wrapped_name: str
