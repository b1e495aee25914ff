from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    # JSON-RPC standard errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # MCP specific errors
    INITIALIZATION_ERROR = -32000
    TRANSPORT_ERROR = -32001
    TIMEOUT_ERROR = -32002
    CONNECTION_ERROR = -32003


@dataclass
class ProtocolError(Exception):
    code: int
    message: str
    details: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": int(self.code), "message": self.message, "details": self.details or {}}


class ProtocolTimeoutError(ProtocolError):
    def __init__(self, message: str = "Request timed out", details: Optional[Dict[str, Any]] = None):
        super().__init__(code=ErrorCode.TIMEOUT_ERROR, message=message, details=details)


class TransportError(ProtocolError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code=ErrorCode.TRANSPORT_ERROR, message=message, details=details)


class ServerConnectionError(ProtocolError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code=ErrorCode.CONNECTION_ERROR, message=message, details=details)


class InitializationError(ProtocolError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code=ErrorCode.INITIALIZATION_ERROR, message=message, details=details)


def invalid_params(message: str, **details: Any) -> ProtocolError:
    """Build the validation error raised by config loading and the registry."""
    return ProtocolError(code=ErrorCode.INVALID_PARAMS, message=message, details=details or None)
