"""
Tests for json.format and json.query.
"""

import pytest

from stdio_tools.errors import ExitCode
from stdio_tools.tools.jsontools import (
    JsonFormatTool,
    JsonQueryTool,
    QueryError,
    evaluate,
    parse_expression,
)

DOC = {
    "name": "stdio-tools",
    "items": [
        {"name": "a", "size": 1},
        {"name": "b", "size": 2},
        {"name": "c", "size": 3},
    ],
    "meta": {"a key": "spaced", "empty": None},
}


class TestParseExpression:
    @pytest.mark.parametrize("expression,steps", [
        (".", []),
        (" . ", []),
        (".name", [("key", "name")]),
        (".meta.empty", [("key", "meta"), ("key", "empty")]),
        (".items[0]", [("key", "items"), ("index", 0)]),
        (".items[-1].name", [("key", "items"), ("index", -1), ("key", "name")]),
        (".items[].name", [("key", "items"), ("iterate", None), ("key", "name")]),
        ('.meta["a key"]', [("key", "meta"), ("key", "a key")]),
        ('.["a.b"]', [("key", "a.b")]),
        (".[2]", [("index", 2)]),
        (".[]", [("iterate", None)]),
    ])
    def test_valid(self, expression, steps):
        assert parse_expression(expression) == steps

    @pytest.mark.parametrize("expression", [
        "name",
        "",
        ".a.",
        ".items[",
        ".items[x]",
        ".items[0",
        '.["unterminated]',
        ".a b",
        ".1abc",
    ])
    def test_invalid(self, expression):
        with pytest.raises(QueryError):
            parse_expression(expression)


class TestEvaluate:
    def test_missing_key_is_null(self):
        assert evaluate(parse_expression(".nope.deeper"), DOC) == [None]

    def test_out_of_range_index_is_null(self):
        assert evaluate(parse_expression(".items[10]"), DOC) == [None]

    def test_iterate_object_values(self):
        assert evaluate(parse_expression(".meta[]"), DOC) == ["spaced", None]

    def test_type_mismatch(self):
        with pytest.raises(QueryError, match="Cannot index string"):
            evaluate(parse_expression(".name.first"), DOC)
        with pytest.raises(QueryError, match="Cannot index object with number"):
            evaluate(parse_expression(".meta[0]"), DOC)
        with pytest.raises(QueryError, match="Cannot iterate over number"):
            evaluate(parse_expression(".items[0].size[]"), DOC)


class TestJsonFormat:
    @pytest.mark.asyncio
    async def test_default_indent(self, settings):
        response = await JsonFormatTool(settings).run({"json": {"b": 1, "a": [1, 2]}})
        assert response.body["result"] == '{\n  "b": 1,\n  "a": [\n    1,\n    2\n  ]\n}'

    @pytest.mark.asyncio
    async def test_sort_keys_and_compact(self, settings):
        response = await JsonFormatTool(settings).run(
            {"json": {"b": 1, "a": {"d": None, "c": "é"}}, "sort_keys": True, "compact": True}
        )
        assert response.body["result"] == '{"a":{"c":"é","d":null},"b":1}'

    @pytest.mark.asyncio
    async def test_string_document_is_parsed(self, settings):
        response = await JsonFormatTool(settings).run({"json": "[1, 2,   3]", "indent": 0})
        assert response.body["result"] == "[\n1,\n2,\n3\n]"

    @pytest.mark.asyncio
    async def test_invalid_string_document(self, settings):
        response = await JsonFormatTool(settings).run({"json": "{broken"})
        assert response.body["error"] == "invalid_json"
        assert response.body["details"]["field"] == "json"
        assert response.exit_code == ExitCode.INVALID_INPUT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", ["[1e400]", '{"a": -1e999}'])
    async def test_number_overflowing_to_infinity(self, settings, document):
        response = await JsonFormatTool(settings).run({"json": document})
        assert response.body["error"] == "invalid_json"
        assert response.body["details"]["field"] == "json"

    @pytest.mark.asyncio
    async def test_missing_document(self, settings):
        response = await JsonFormatTool(settings).run({"indent": 2})
        assert response.body["error"] == "missing_field"

    @pytest.mark.asyncio
    async def test_indent_range(self, settings):
        response = await JsonFormatTool(settings).run({"json": [], "indent": 9})
        assert response.body["error"] == "invalid_value"


class TestJsonQuery:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("expression,result", [
        (".", DOC),
        (".name", "stdio-tools"),
        (".items[1].size", 2),
        (".items[-1].name", "c"),
        (".items[].name", ["a", "b", "c"]),
        ('.meta["a key"]', "spaced"),
        (".meta.empty", None),
        (".missing", None),
    ])
    async def test_expressions(self, settings, expression, result):
        response = await JsonQueryTool(settings).run({"json": DOC, "expression": expression})
        assert response.ok
        assert response.body["expression"] == expression
        assert response.body["result"] == result

    @pytest.mark.asyncio
    async def test_default_expression(self, settings):
        response = await JsonQueryTool(settings).run({"json": [1, 2]})
        assert response.body["result"] == [1, 2]

    @pytest.mark.asyncio
    async def test_query_alias(self, settings):
        response = await JsonQueryTool(settings).run({"json": DOC, "query": ".name"})
        assert response.body["result"] == "stdio-tools"

    @pytest.mark.asyncio
    async def test_string_document(self, settings):
        response = await JsonQueryTool(settings).run({"json": '{"a": {"b": 42}}', "expression": ".a.b"})
        assert response.body["result"] == 42

    @pytest.mark.asyncio
    async def test_syntax_error(self, settings):
        response = await JsonQueryTool(settings).run({"json": DOC, "expression": "items"})
        assert response.body["error"] == "invalid_value"
        assert response.body["details"]["field"] == "expression"
        assert response.exit_code == ExitCode.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_type_error(self, settings):
        response = await JsonQueryTool(settings).run({"json": DOC, "expression": ".items.name"})
        assert response.body["error"] == "invalid_value"
        assert "Cannot index array" in response.body["message"]
