"""Tool schema translation between provider formats.

Anthropic tools look like ``{"name", "description", "input_schema"}`` with
lower-case JSON Schema types.  Gemini function declarations look like
``{"name", "description", "parameters"}`` with upper-case OpenAPI types.
"""

from __future__ import annotations

from typing import Any

from llmrelay.wire import GeminiFunctionDeclaration


def _convert_property(prop: dict[str, Any], upper: bool) -> dict[str, Any]:
    type_name = str(prop.get("type", "string"))
    converted: dict[str, Any] = {
        "type": type_name.upper() if upper else type_name.lower(),
        "description": prop.get("description", ""),
    }
    if "enum" in prop:
        converted["enum"] = list(prop["enum"])
    if isinstance(prop.get("items"), dict):
        converted["items"] = _convert_property(prop["items"], upper)
    if isinstance(prop.get("properties"), dict):
        converted["properties"] = {
            key: _convert_property(value, upper)
            for key, value in prop["properties"].items()
        }
        if prop.get("required"):
            converted["required"] = [str(r) for r in prop["required"]]
    return converted


def _convert_object(schema: dict[str, Any], upper: bool) -> dict[str, Any]:
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        raise ValueError("tool schema must have an object 'properties'")
    return {
        "type": "OBJECT" if upper else "object",
        "properties": {
            key: _convert_property(value, upper) for key, value in properties.items()
        },
        "required": [str(r) for r in schema.get("required", [])],
    }


def convert_to_function_declaration(tool: dict[str, Any]) -> GeminiFunctionDeclaration:
    """Convert an Anthropic-style tool definition to a Gemini declaration.

    Raises
    ------
    ValueError
        If ``input_schema`` or its ``properties`` is missing.
    """
    input_schema = tool.get("input_schema")
    if not isinstance(input_schema, dict):
        raise ValueError(f"tool {tool.get('name', '?')!r}: input_schema must be an object")
    return GeminiFunctionDeclaration(
        name=tool.get("name", ""),
        description=tool.get("description", ""),
        parameters=_convert_object(input_schema, upper=True),
    )


def convert_to_anthropic_tool(declaration: dict[str, Any]) -> dict[str, Any]:
    """Convert a Gemini function declaration to an Anthropic tool definition."""
    parameters = declaration.get("parameters") or {"properties": {}}
    return {
        "name": declaration.get("name", ""),
        "description": declaration.get("description", ""),
        "input_schema": _convert_object(parameters, upper=False),
    }
