"""Tests for tool schema translation."""

from __future__ import annotations

import pytest

from llmrelay.providers.schema import convert_to_anthropic_tool, convert_to_function_declaration

WEATHER_TOOL = {
    "name": "get_weather",
    "description": "Weather for a city",
    "input_schema": {
        "type": "object",
        "properties": {
            "city": {"type": "string", "description": "City name"},
            "unit": {"type": "string", "enum": ["c", "f"]},
            "days": {"type": "array", "items": {"type": "integer"}},
            "where": {
                "type": "object",
                "properties": {"lat": {"type": "number"}},
                "required": ["lat"],
            },
        },
        "required": ["city"],
    },
}


class TestConvertToFunctionDeclaration:
    def test_types_upper_cased(self):
        declaration = convert_to_function_declaration(WEATHER_TOOL)
        assert declaration.name == "get_weather"
        assert declaration.description == "Weather for a city"
        params = declaration.parameters
        assert params["type"] == "OBJECT"
        assert params["required"] == ["city"]
        assert params["properties"]["city"] == {"type": "STRING", "description": "City name"}
        assert params["properties"]["unit"]["enum"] == ["c", "f"]
        assert params["properties"]["days"]["items"] == {"type": "INTEGER", "description": ""}
        assert params["properties"]["where"]["properties"]["lat"]["type"] == "NUMBER"
        assert params["properties"]["where"]["required"] == ["lat"]

    def test_missing_input_schema(self):
        with pytest.raises(ValueError, match="input_schema"):
            convert_to_function_declaration({"name": "broken"})

    def test_missing_properties(self):
        with pytest.raises(ValueError, match="properties"):
            convert_to_function_declaration({"name": "broken", "input_schema": {"type": "object"}})


class TestConvertToAnthropicTool:
    def test_round_trip_preserves_shape(self):
        declaration = convert_to_function_declaration(WEATHER_TOOL).to_wire()
        tool = convert_to_anthropic_tool(declaration)
        assert tool["name"] == "get_weather"
        assert tool["input_schema"]["type"] == "object"
        assert tool["input_schema"]["properties"]["city"]["type"] == "string"
        assert tool["input_schema"]["required"] == ["city"]

    def test_declaration_without_parameters(self):
        tool = convert_to_anthropic_tool({"name": "ping"})
        assert tool["input_schema"] == {"type": "object", "properties": {}, "required": []}
