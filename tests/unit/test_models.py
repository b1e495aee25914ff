"""
Unit tests for toolbridge/models.py - server definitions and validation.
"""

import json

import pytest

from toolbridge.errors import ErrorCode, ProtocolError
from toolbridge.models import (
    CallToolResult,
    ListToolsResult,
    RemoteTool,
    ServerDefinition,
    parse_registry,
    serialize_registry,
    validate_many,
    validate_server_definition,
)


def _assert_invalid(raw, match=None):
    with pytest.raises(ProtocolError, match=match) as exc_info:
        validate_server_definition(raw)
    assert exc_info.value.code == ErrorCode.INVALID_PARAMS
    return exc_info.value


class TestValidateServerDefinition:
    """Tests for validate_server_definition."""

    def test_stdio_without_command_is_invalid(self):
        """Test a stdio server without stdio.command is rejected."""
        _assert_invalid({"name": "fs", "transport": "stdio"}, match="stdio")

    def test_stdio_with_command_is_valid(self):
        """Test the minimal stdio definition validates."""
        server = validate_server_definition({"name": "fs", "transport": "stdio", "stdio": {"command": "npx"}})

        assert server.name == "fs"
        assert server.stdio.command == "npx"
        assert server.http is None

    def test_enabled_defaults_to_true(self):
        """Test an absent enabled field counts as enabled."""
        server = validate_server_definition({"name": "fs", "transport": "stdio", "stdio": {"command": "npx"}})
        assert server.enabled is True

    def test_empty_command_is_invalid(self):
        """Test a blank command is rejected."""
        _assert_invalid({"name": "fs", "transport": "stdio", "stdio": {"command": "  "}})

    def test_http_with_valid_url(self, http_definition):
        """Test an http definition with auth validates."""
        server = validate_server_definition(http_definition)

        assert server.http.url == "https://mcp.example.com/mcp"
        assert server.http.auth.type == "bearer"
        assert server.http.auth.token_env == "SEARCH_TOKEN"

    def test_http_url_is_kept_verbatim(self):
        """Test URL validation does not normalize the stored string."""
        server = validate_server_definition(
            {"name": "api", "transport": "http", "http": {"url": "http://localhost:8080"}}
        )
        assert server.http.url == "http://localhost:8080"

    @pytest.mark.parametrize("url", ["not a url", "", "://missing-scheme"])
    def test_http_malformed_url_is_invalid(self, url):
        """Test malformed URLs are rejected."""
        _assert_invalid({"name": "api", "transport": "http", "http": {"url": url}})

    def test_http_without_block_is_invalid(self):
        """Test an http server without http configuration is rejected."""
        _assert_invalid({"name": "api", "transport": "http"}, match="http")

    def test_both_blocks_is_invalid(self):
        """Test a definition populating the other transport's block is rejected."""
        _assert_invalid(
            {
                "name": "fs",
                "transport": "stdio",
                "stdio": {"command": "npx"},
                "http": {"url": "https://example.com"},
            }
        )

    def test_unknown_transport_is_invalid(self):
        """Test only stdio and http transports are accepted."""
        _assert_invalid({"name": "fs", "transport": "sse", "stdio": {"command": "npx"}})

    def test_missing_name_is_invalid(self):
        """Test a definition without a name is rejected."""
        error = _assert_invalid({"transport": "stdio", "stdio": {"command": "npx"}}, match="name")
        assert error.details == {"field": "name"}

    def test_non_string_name_is_invalid(self):
        """Test a numeric name is rejected."""
        _assert_invalid({"name": 42, "transport": "stdio", "stdio": {"command": "npx"}})

    @pytest.mark.parametrize("name", ["has space", "dot.name", "slash/name", "ünicode"])
    def test_name_pattern(self, name):
        """Test names outside [A-Za-z0-9_-] are rejected."""
        _assert_invalid({"name": name, "transport": "stdio", "stdio": {"command": "npx"}})

    def test_name_length_limit(self):
        """Test 64 characters is the maximum name length."""
        ok = {"name": "a" * 64, "transport": "stdio", "stdio": {"command": "npx"}}
        assert validate_server_definition(ok).name == "a" * 64

        _assert_invalid({**ok, "name": "a" * 65})

    def test_error_names_server_and_field(self):
        """Test validation errors carry the server name and offending field."""
        error = _assert_invalid({"name": "fs", "transport": "stdio", "stdio": {"command": ""}})
        assert error.details["server"] == "fs"
        assert error.details["field"] == "stdio.command"
        assert "fs" in error.message

    def test_not_a_mapping_is_invalid(self):
        """Test non-object input is rejected."""
        _assert_invalid(["fs"], match="object")

    def test_revalidates_mutated_model(self):
        """Test an existing model is validated again."""
        server = validate_server_definition({"name": "fs", "transport": "stdio", "stdio": {"command": "npx"}})
        server.stdio = None

        _assert_invalid(server)

    def test_accepts_snake_and_camel_case(self):
        """Test auth fields are accepted in either spelling."""
        camel = validate_server_definition(
            {"name": "a", "transport": "http", "http": {"url": "https://x.io", "auth": {"type": "apikey", "headerName": "X-Key"}}}
        )
        snake = validate_server_definition(
            {"name": "a", "transport": "http", "http": {"url": "https://x.io", "auth": {"type": "apikey", "header_name": "X-Key"}}}
        )
        assert camel == snake

    def test_metadata_is_opaque(self):
        """Test metadata is kept as given."""
        server = validate_server_definition(
            {"name": "fs", "transport": "stdio", "stdio": {"command": "npx"}, "metadata": {"team": {"id": 7}}}
        )
        assert server.metadata == {"team": {"id": 7}}


class TestValidateMany:
    """Tests for the per-entry drop policy."""

    def test_drops_invalid_entries_in_order(self):
        """Test N valid and M invalid entries yield exactly the N valid ones, in order."""
        entries = [
            {"name": "a", "transport": "stdio", "stdio": {"command": "x"}},
            {"name": "bad name", "transport": "stdio", "stdio": {"command": "x"}},
            "not-an-object",
            {"name": "b", "transport": "http", "http": {"url": "https://b.io"}},
            {"name": "c", "transport": "http"},
        ]

        result = validate_many(entries, source="test")

        assert [s.name for s in result] == ["a", "b"]

    def test_empty_list(self):
        """Test an empty list is fine."""
        assert validate_many([], source="test") == []


class TestRegistryCodec:
    """Tests for serialize_registry and parse_registry."""

    def test_serialize_uses_wire_names(self, http_definition):
        """Test the file format uses camelCase and a version."""
        server = validate_server_definition(http_definition)
        payload = json.loads(serialize_registry([server]))

        assert payload["version"] == "1.0"
        assert payload["servers"][0]["http"]["auth"]["tokenEnv"] == "SEARCH_TOKEN"
        assert "stdio" not in payload["servers"][0]

    def test_round_trip(self, stdio_definition, http_definition):
        """Test serialized servers parse back to equal definitions."""
        servers = [validate_server_definition(stdio_definition), validate_server_definition(http_definition)]
        parsed = [ServerDefinition.model_validate(s) for s in parse_registry(serialize_registry(servers))]
        assert parsed == servers

    @pytest.mark.parametrize("text", ["", "{not json", "[]", '{"servers": {}}', '{"version": "1.0"}'])
    def test_parse_unusable_returns_empty(self, text):
        """Test unusable registry content parses to an empty list."""
        assert parse_registry(text) == []


class TestRemoteShapes:
    """Tests for remote tool and result models."""

    def test_remote_tool_from_dict(self, read_file_tool):
        """Test RemoteTool reads inputSchema."""
        tool = RemoteTool.model_validate(read_file_tool)
        assert tool.name == "read_file"
        assert tool.input_schema["required"] == ["path"]

    def test_remote_tool_from_attributes(self):
        """Test RemoteTool accepts attribute objects like SDK tools."""

        class SdkTool:
            name = "search"
            description = None
            inputSchema = {"type": "object"}

        tool = RemoteTool.model_validate(SdkTool())
        assert tool.name == "search"
        assert tool.input_schema == {"type": "object"}

    def test_call_tool_result_defaults(self):
        """Test isError defaults to False, also when null."""
        assert CallToolResult.model_validate({"content": []}).is_error is False
        assert CallToolResult.model_validate({"content": [], "isError": None}).is_error is False
        assert CallToolResult.model_validate({"content": [], "isError": True}).is_error is True

    def test_content_item_fields(self):
        """Test image and resource items expose mime type and uri."""
        result = CallToolResult.model_validate(
            {
                "content": [
                    {"type": "image", "data": "AAA", "mimeType": "image/png"},
                    {"type": "resource", "resource": {"uri": "file:///a.txt", "mimeType": "text/plain"}},
                ]
            }
        )
        assert result.content[0].mime_type == "image/png"
        assert result.content[1].resource.uri == "file:///a.txt"

    def test_list_tools_result(self, read_file_tool):
        """Test ListToolsResult parses a tools listing."""
        listing = ListToolsResult.model_validate({"tools": [read_file_tool]})
        assert [t.name for t in listing.tools] == ["read_file"]
