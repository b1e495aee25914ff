"""
JSON Schema -> pydantic translation for remote tool input schemas.

Tool schemas only arrive at runtime, so argument models are built with
``pydantic.create_model``. Supported kinds: string, number, integer,
boolean, null, array (``items``), object (``properties``/``required``),
plus ``enum``, ``const``, ``nullable``, ``anyOf``/``oneOf``, ``allOf``, string
``format`` (uri, email, date-time) and the common length/range constraints.
Anything else is accepted unchecked (``Any``).

Primitive values are checked strictly: ``"5"`` is not an integer and ``1`` is
not a boolean, so arguments reach the remote tool exactly as given.
"""

from __future__ import annotations

import keyword
import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import (
    AfterValidator,
    AnyUrl,
    AwareDatetime,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    create_model,
)

from toolbridge.models import RemoteTool

_PRIMITIVE_TYPES: Dict[str, Any] = {
    "string": StrictStr,
    "number": Union[StrictInt, StrictFloat],
    "integer": StrictInt,
    "boolean": StrictBool,
    "null": type(None),
}

_CONSTRAINTS: Dict[str, Dict[str, str]] = {
    "string": {"minLength": "min_length", "maxLength": "max_length"},
    "number": {
        "minimum": "ge",
        "maximum": "le",
        "exclusiveMinimum": "gt",
        "exclusiveMaximum": "lt",
    },
    "integer": {
        "minimum": "ge",
        "maximum": "le",
        "exclusiveMinimum": "gt",
        "exclusiveMaximum": "lt",
    },
    "array": {"minItems": "min_length", "maxItems": "max_length"},
}

_LITERAL_TYPES = (str, int, float, bool, type(None))

_STRING_FORMATS: Dict[str, TypeAdapter] = {
    "uri": TypeAdapter(AnyUrl),
    "url": TypeAdapter(AnyUrl),
    "email": TypeAdapter(EmailStr),
    "date-time": TypeAdapter(AwareDatetime),
    "datetime": TypeAdapter(AwareDatetime),
}


class ToolArguments(BaseModel):
    """Base for generated argument models; fields keep the remote names as aliases."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=(), extra="ignore")

    def to_arguments(self) -> Dict[str, Any]:
        """Arguments as the remote tool expects them: original names, caller-supplied fields only."""
        arguments = self.model_dump(by_alias=True, exclude_unset=True)
        if self.model_extra:
            arguments.update(self.model_extra)
        return arguments


class OpenToolArguments(ToolArguments):
    model_config = ConfigDict(extra="allow")


def _model_name(*parts: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", "_".join(parts)) or "Arguments"


def _is_safe_field_name(name: str) -> bool:
    return (
        name.isidentifier()
        and not keyword.iskeyword(name)
        and not name.startswith("_")
        and not hasattr(ToolArguments, name)
    )


def _with_constraints(kind: str, annotation: Any, schema: Dict[str, Any]) -> Any:
    constraints = {
        target: schema[source]
        for source, target in _CONSTRAINTS.get(kind, {}).items()
        if isinstance(schema.get(source), (int, float)) and not isinstance(schema.get(source), bool)
    }
    if not constraints:
        return annotation
    field = Field(**constraints)
    if kind == "number":
        return Union[Annotated[StrictInt, field], Annotated[StrictFloat, field]]
    return Annotated[annotation, field]


def _with_format(annotation: Any, fmt: str) -> Any:
    adapter = _STRING_FORMATS[fmt]

    def check(value: str) -> str:
        # Checked only; the caller's string is forwarded unchanged.
        try:
            adapter.validate_python(value)
        except ValidationError as e:
            raise ValueError(f"must be a valid {fmt}") from e
        return value

    return Annotated[annotation, AfterValidator(check)]


def _literal(values: List[Any]) -> Any:
    if values and all(isinstance(v, _LITERAL_TYPES) for v in values):
        return Literal[tuple(values)]
    return Any


def _union(schemas: List[Any], name: str) -> Any:
    types = [json_schema_to_type(s, f"{name}_{i}") for i, s in enumerate(schemas)]
    if not types:
        return Any
    if len(types) == 1:
        return types[0]
    return Union[tuple(types)]


def _merge_all_of(schema: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Fold ``allOf`` members into one schema node.

    Object members contribute their properties and required names; other
    keywords are overlaid in order. Returns None when members declare
    conflicting types.
    """
    merged = {key: value for key, value in schema.items() if key != "allOf"}
    properties = dict(merged.pop("properties", None) or {})
    required = list(merged.pop("required", None) or [])

    for member in schema["allOf"]:
        if not isinstance(member, dict):
            continue
        if isinstance(member.get("allOf"), list):
            member = _merge_all_of(member)
            if member is None:
                return None

        kind = member.get("type")
        if kind is not None and merged.get("type") not in (None, kind):
            return None

        merged.update({k: v for k, v in member.items() if k not in ("properties", "required")})
        if isinstance(member.get("properties"), dict):
            properties.update(member["properties"])
        required.extend(r for r in member.get("required") or [] if r not in required)

    if properties:
        merged["properties"] = properties
        merged.setdefault("type", "object")
    if required:
        merged["required"] = required
    return merged


def _object_model(schema: Dict[str, Any], name: str) -> Type[ToolArguments]:
    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    fields: Dict[str, Any] = {}

    for index, (prop, prop_schema) in enumerate(properties.items()):
        annotation = json_schema_to_type(prop_schema, _model_name(name, prop))
        description = prop_schema.get("description") if isinstance(prop_schema, dict) else None
        if not isinstance(description, str):
            description = None

        field_name = prop
        if not _is_safe_field_name(prop):
            field_name = f"field_{index}"
            while field_name in properties or field_name in fields:
                field_name += "_"

        if prop in required:
            fields[field_name] = (annotation, Field(..., alias=prop, description=description))
        else:
            fields[field_name] = (Optional[annotation], Field(None, alias=prop, description=description))

    return create_model(name, __base__=ToolArguments, **fields)


def json_schema_to_type(schema: Any, name: str = "Arguments") -> Any:
    """
    Translate one JSON schema node into a type annotation.

    Args:
        schema: The schema node (non-dicts translate to Any)
        name: Model name used if the node is an object with properties

    Returns:
        A type usable as a pydantic field annotation
    """
    if not isinstance(schema, dict):
        return Any

    if isinstance(schema.get("enum"), list):
        return _nullable(schema, _literal(schema["enum"]))

    if "const" in schema:
        return _literal([schema["const"]])

    for combinator in ("oneOf", "anyOf"):
        if isinstance(schema.get(combinator), list):
            return _nullable(schema, _union(schema[combinator], name))

    if isinstance(schema.get("allOf"), list):
        merged = _merge_all_of(schema)
        return Any if merged is None else json_schema_to_type(merged, name)

    kind = schema.get("type")

    if isinstance(kind, list):
        non_null = [k for k in kind if k != "null"]
        if not non_null:
            return type(None)
        annotation = _union([{**schema, "type": k} for k in non_null], name)
        return Optional[annotation] if "null" in kind else annotation

    if kind in _PRIMITIVE_TYPES:
        annotation = _with_constraints(kind, _PRIMITIVE_TYPES[kind], schema)
        if kind == "string" and schema.get("format") in _STRING_FORMATS:
            annotation = _with_format(annotation, schema["format"])
        return _nullable(schema, annotation)

    if kind == "array":
        items = schema.get("items")
        item_type = json_schema_to_type(items, _model_name(name, "item")) if items else Any
        return _nullable(schema, _with_constraints("array", List[item_type], schema))

    if kind == "object":
        if not isinstance(schema.get("properties"), dict):
            return _nullable(schema, Dict[str, Any])
        return _nullable(schema, _object_model(schema, name))

    # missing or unknown types
    return Any


def _nullable(schema: Dict[str, Any], annotation: Any) -> Any:
    if schema.get("nullable") is True:
        return Optional[annotation]
    return annotation


def create_parameters_model(tool: RemoteTool) -> Type[ToolArguments]:
    """
    Build the argument model for a remote tool.

    A missing or non-object top-level schema means the tool takes no
    parameters. An object schema without properties accepts any keys.
    A top-level ``allOf`` is folded into a single object first.
    """
    name = _model_name(tool.name, "Arguments")
    schema = tool.input_schema

    if isinstance(schema, dict) and isinstance(schema.get("allOf"), list):
        schema = _merge_all_of(schema)

    if not isinstance(schema, dict) or schema.get("type") != "object":
        return create_model(name, __base__=ToolArguments)

    if not isinstance(schema.get("properties"), dict):
        return create_model(name, __base__=OpenToolArguments)

    return _object_model(schema, name)
