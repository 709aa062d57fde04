"""
Unit tests for Tool validation and JSON Schema generation.
"""

from typing import Any, Dict, List

import pytest
from jsonschema import Draft7Validator

from stdio_tools.base import Tool, ToolParameter
from stdio_tools.errors import ErrorCode, ExitCode, ValidationError
from stdio_tools.registry import create_tool, list_tool_names


class EchoTool(Tool):
    """Minimal tool used to exercise the base class."""

    @property
    def name(self) -> str:
        return "test.echo"

    @property
    def description(self) -> str:
        return "Echo validated input"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter("text", "string", "Text to echo", aliases=["message", "msg"]),
            ToolParameter("times", "integer", "Repetitions", required=False,
                          default=1, minimum=1, maximum=3),
            ToolParameter("mode", "string", "Mode", required=False,
                          default="plain", enum=["plain", "loud"]),
            ToolParameter("tags", "array", "Tags", required=False, items_type="string"),
            ToolParameter("ratio", "number", "Ratio", required=False, exclusive_minimum=0),
        ]

    async def execute(self, **kwargs) -> Dict[str, Any]:
        return {"echo": kwargs}


class ClosedTool(EchoTool):
    @property
    def additional_properties(self) -> bool:
        return False


class PatternTool(EchoTool):
    @property
    def parameters(self) -> List[ToolParameter]:
        return [ToolParameter("code", "string", "Lowercase code", pattern=r"^[a-z]+$")]


@pytest.fixture
def tool(settings):
    return EchoTool(settings)


def _error(tool: Tool, arguments: Any) -> ValidationError:
    with pytest.raises(ValidationError) as exc_info:
        tool.validate(arguments)
    return exc_info.value


class TestValidation:
    """Request validation before any effect."""

    def test_defaults_applied(self, tool):
        validated = tool.validate({"text": "hi"})
        assert validated == {"text": "hi", "times": 1, "mode": "plain", "tags": None, "ratio": None}

    def test_non_object_is_invalid_json(self, tool):
        error = _error(tool, ["text"])
        assert error.code == ErrorCode.INVALID_JSON
        assert error.details["expected"] == "object"

    @pytest.mark.parametrize("arguments", [{}, {"text": None}, {"text": ""}, {"text": "   "}])
    def test_missing_required(self, tool, arguments):
        error = _error(tool, arguments)
        assert error.code == ErrorCode.MISSING_FIELD
        assert error.details == {"field": "text"}
        assert error.exit_code == ExitCode.INVALID_INPUT

    def test_wrong_type(self, tool):
        error = _error(tool, {"text": 42})
        assert error.code == ErrorCode.INVALID_TYPE
        assert error.details == {"field": "text", "expected": "string"}

    def test_boolean_is_not_integer(self, tool):
        error = _error(tool, {"text": "a", "times": True})
        assert error.code == ErrorCode.INVALID_TYPE

    def test_integral_float_accepted(self, tool):
        assert tool.validate({"text": "a", "times": 2.0})["times"] == 2

    def test_fractional_float_rejected_for_integer(self, tool):
        assert _error(tool, {"text": "a", "times": 2.5}).code == ErrorCode.INVALID_TYPE

    @pytest.mark.parametrize("times", [0, 4])
    def test_range(self, tool, times):
        error = _error(tool, {"text": "a", "times": times})
        assert error.code == ErrorCode.INVALID_VALUE
        assert error.details["field"] == "times"

    def test_exclusive_minimum(self, tool):
        assert _error(tool, {"text": "a", "ratio": 0}).code == ErrorCode.INVALID_VALUE
        assert tool.validate({"text": "a", "ratio": 0.5})["ratio"] == 0.5

    def test_enum(self, tool):
        assert _error(tool, {"text": "a", "mode": "quiet"}).code == ErrorCode.INVALID_VALUE

    @pytest.mark.parametrize("code", ["abc\n", "abc\r\n", "ABC", "ab1"])
    def test_pattern_must_match_whole_value(self, settings, code):
        error = _error(PatternTool(settings), {"code": code})
        assert error.code == ErrorCode.INVALID_VALUE
        assert error.details["field"] == "code"

    def test_pattern_match(self, settings):
        assert PatternTool(settings).validate({"code": "abc"}) == {"code": "abc"}

    def test_array_items(self, tool):
        error = _error(tool, {"text": "a", "tags": ["x", 1]})
        assert error.code == ErrorCode.INVALID_TYPE
        assert error.details["index"] == 1

    def test_unknown_fields_ignored_when_open(self, tool):
        assert "extra" not in tool.validate({"text": "a", "extra": 1})

    def test_unknown_fields_rejected_when_closed(self, settings):
        error = _error(ClosedTool(settings), {"text": "a", "extra": 1})
        assert error.code == ErrorCode.INVALID_VALUE
        assert error.details == {"field": "extra"}


class TestAliases:
    """Alias precedence: canonical name first, then aliases in declared order."""

    def test_alias_used_when_canonical_absent(self, tool):
        assert tool.validate({"message": "via alias"})["text"] == "via alias"

    def test_canonical_wins(self, tool):
        assert tool.validate({"text": "canonical", "message": "alias"})["text"] == "canonical"

    def test_alias_order(self, tool):
        assert tool.validate({"msg": "second", "message": "first"})["text"] == "first"

    def test_null_canonical_falls_back_to_alias(self, tool):
        assert tool.validate({"text": None, "msg": "alias"})["text"] == "alias"

    def test_alias_type_error_names_alias(self, tool):
        assert _error(tool, {"message": 5}).details["field"] == "message"


class TestRun:
    """Tool.run never raises and always returns an envelope."""

    @pytest.mark.asyncio
    async def test_success(self, tool):
        response = await tool.run({"text": "hi"})
        assert response.ok is True
        assert response.exit_code == ExitCode.SUCCESS
        assert response.body["echo"]["text"] == "hi"

    @pytest.mark.asyncio
    async def test_validation_failure(self, tool):
        response = await tool.run({})
        assert response.body == {
            "ok": False,
            "error": "missing_field",
            "message": "Missing required field: text",
            "details": {"field": "text"},
        }
        assert response.exit_code == ExitCode.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, tool, monkeypatch):
        async def boom(**kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(tool, "execute", boom)
        response = await tool.run({"text": "hi"})
        assert response.body["error"] == "internal_error"
        assert response.body["message"] == "kaboom"
        assert response.exit_code == ExitCode.INTERNAL


class TestSchema:
    """Generated JSON Schema documents."""

    def test_alias_group_becomes_any_of(self, tool):
        schema = tool.to_json_schema()
        assert schema["anyOf"] == [
            {"required": ["text"]},
            {"required": ["message"]},
            {"required": ["msg"]},
        ]
        assert "required" not in schema
        assert schema["properties"]["message"]["type"] == "string"

    def test_constraints_exported(self, tool):
        props = tool.to_json_schema()["properties"]
        assert props["times"] == {
            "type": "integer",
            "description": "Repetitions",
            "default": 1,
            "minimum": 1,
            "maximum": 3,
        }
        assert props["mode"]["enum"] == ["plain", "loud"]
        assert props["tags"]["items"] == {"type": "string"}
        assert props["ratio"]["exclusiveMinimum"] == 0

    def test_schema_accepts_what_validate_accepts(self, tool):
        validator = Draft7Validator(tool.to_json_schema())
        assert validator.is_valid({"text": "a", "times": 3})
        assert validator.is_valid({"msg": "a"})
        assert not validator.is_valid({})
        assert not validator.is_valid({"text": "a", "times": 4})

    @pytest.mark.parametrize("name", list_tool_names())
    def test_every_tool_schema_is_draft7(self, settings, name):
        schema = create_tool(name, settings).to_json_schema()
        Draft7Validator.check_schema(schema)
        assert schema["type"] == "object"
        assert schema["title"] == name

    @pytest.mark.parametrize("name", list_tool_names())
    def test_schema_is_stable(self, settings, name):
        first = create_tool(name, settings).to_json_schema()
        second = create_tool(name, settings).to_json_schema()
        assert first == second


def test_unsupported_parameter_type():
    with pytest.raises(ValueError):
        ToolParameter("x", "float", "not a JSON Schema type")
