from toolbridge.tools.adapter import (
    ToolWrapperOptions,
    create_tool_name,
    create_tools_from_server,
    extract_original_tool_name,
    format_tool_result,
    get_tool_link,
    register_server_tools,
    wrap_tool,
    wrap_tools,
)
from toolbridge.tools.registry import ToolDefinition, ToolRegistry
from toolbridge.tools.schema import ToolArguments, create_parameters_model, json_schema_to_type

__all__ = [
    "ToolArguments",
    "ToolDefinition",
    "ToolRegistry",
    "ToolWrapperOptions",
    "create_parameters_model",
    "create_tool_name",
    "create_tools_from_server",
    "extract_original_tool_name",
    "format_tool_result",
    "get_tool_link",
    "json_schema_to_type",
    "register_server_tools",
    "wrap_tool",
    "wrap_tools",
]
