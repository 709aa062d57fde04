"""
JSON Tools

Format and query JSON documents. No external effect: the document travels
in the request itself.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from .. import envelope
from ..base import Tool, ToolParameter
from ..errors import ErrorCode, ExecutionError, ValidationError

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INDEX_RE = re.compile(r"-?\d+")

Step = Tuple[str, Any]


class QueryError(ValueError):
    """Raised for malformed expressions or type mismatches during evaluation."""


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def parse_expression(expression: str) -> List[Step]:
    """
    Parse a path expression into steps.

    Supported syntax: ".", ".key", '.["any key"]', "[n]" (negative counts from
    the end) and "[]" (iterate), chained, e.g. ".items[].name" or ".a[-1]".
    """
    expr = expression.strip()
    if not expr.startswith("."):
        raise QueryError("Expression must start with '.'")

    decoder = json.JSONDecoder()
    steps: List[Step] = []
    pos = 0
    n = len(expr)

    while pos < n:
        ch = expr[pos]

        if ch == ".":
            pos += 1
            if pos == n:
                if pos == 1:
                    break
                raise QueryError("Expression ends with '.'")
            if expr[pos] == "[":
                continue
            match = _IDENT_RE.match(expr, pos)
            if not match:
                raise QueryError(f"Expected a key at position {pos}")
            steps.append(("key", match.group()))
            pos = match.end()

        elif ch == "[":
            if expr.startswith("[]", pos):
                steps.append(("iterate", None))
                pos += 2
                continue
            if pos + 1 < n and expr[pos + 1] == '"':
                try:
                    key, end = decoder.raw_decode(expr, pos + 1)
                except ValueError:
                    raise QueryError(f"Invalid string key at position {pos + 1}")
                steps.append(("key", key))
            else:
                match = _INDEX_RE.match(expr, pos + 1)
                if not match:
                    raise QueryError(f"Expected an index or string at position {pos + 1}")
                steps.append(("index", int(match.group())))
                end = match.end()
            if end >= n or expr[end] != "]":
                raise QueryError(f"Expected ']' at position {end}")
            pos = end + 1

        else:
            raise QueryError(f"Unexpected character {ch!r} at position {pos}")

    return steps


def evaluate(steps: List[Step], document: Any) -> List[Any]:
    """Apply steps to a document; returns every output (more than one after '[]')."""
    outputs = [document]

    for kind, arg in steps:
        next_outputs = []
        for item in outputs:
            if kind == "iterate":
                if isinstance(item, list):
                    next_outputs.extend(item)
                elif isinstance(item, dict):
                    next_outputs.extend(item.values())
                else:
                    raise QueryError(f"Cannot iterate over {_json_type(item)}")
            elif item is None:
                next_outputs.append(None)
            elif kind == "key":
                if not isinstance(item, dict):
                    raise QueryError(f'Cannot index {_json_type(item)} with "{arg}"')
                next_outputs.append(item.get(arg))
            else:
                if not isinstance(item, list):
                    raise QueryError(f"Cannot index {_json_type(item)} with number")
                next_outputs.append(item[arg] if -len(item) <= arg < len(item) else None)
        outputs = next_outputs

    return outputs


def _document_parameter() -> ToolParameter:
    return ToolParameter(
        name="json",
        type="any",
        description="The JSON document; a string value is parsed as JSON text",
        required=True,
    )


class JsonTool(Tool):
    """Parses string documents during validation."""

    def validate(self, arguments: Any) -> Dict[str, Any]:
        validated = super().validate(arguments)
        document = validated["json"]
        if isinstance(document, str):
            try:
                validated["json"] = envelope.loads(document)
            except ValueError as e:
                raise ValidationError(
                    f"Field 'json' is not valid JSON text: {e}",
                    tool_name=self.name,
                    code=ErrorCode.INVALID_JSON,
                    details={"field": "json"},
                )
        return validated


class JsonFormatTool(JsonTool):
    """Pretty-print or compact a JSON document."""

    @property
    def name(self) -> str:
        return "json.format"

    @property
    def description(self) -> str:
        return "Format a JSON document as indented or compact text"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            _document_parameter(),
            ToolParameter(
                name="indent",
                type="integer",
                description="Spaces per indentation level",
                required=False,
                default=2,
                minimum=0,
                maximum=8,
            ),
            ToolParameter(
                name="sort_keys",
                type="boolean",
                description="Sort object keys",
                required=False,
                default=False,
            ),
            ToolParameter(
                name="compact",
                type="boolean",
                description="Single line without spaces; overrides indent",
                required=False,
                default=False,
            ),
        ]

    @property
    def examples(self) -> List[str]:
        return ['{"json":{"b":1,"a":[1,2]},"sort_keys":true}', '{"json":"[1, 2, 3]","compact":true}']

    async def execute(self, json: Any, indent: int = 2, sort_keys: bool = False,
                      compact: bool = False) -> Dict[str, Any]:
        if compact:
            text = _dumps(json, indent=None, separators=(",", ":"), sort_keys=sort_keys)
        else:
            text = _dumps(json, indent=indent, sort_keys=sort_keys)
        return {"result": text}


def _dumps(document: Any, indent: Optional[int], sort_keys: bool, **kwargs) -> str:
    return json.dumps(document, indent=indent, sort_keys=sort_keys, ensure_ascii=False,
                      allow_nan=False, **kwargs)


class JsonQueryTool(JsonTool):
    """Extract values from a JSON document with a path expression."""

    @property
    def name(self) -> str:
        return "json.query"

    @property
    def description(self) -> str:
        return "Select values from a JSON document with a jq-style path expression"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            _document_parameter(),
            ToolParameter(
                name="expression",
                type="string",
                description="Path expression, e.g. '.', '.a.b', '.items[0]', '.items[].name', '.[\"a key\"]'",
                required=False,
                default=".",
                max_length=1000,
                aliases=["query"],
            ),
        ]

    @property
    def examples(self) -> List[str]:
        return ['{"json":{"items":[{"name":"a"},{"name":"b"}]},"expression":".items[].name"}']

    def validate(self, arguments: Any) -> Dict[str, Any]:
        validated = super().validate(arguments)
        try:
            validated["steps"] = parse_expression(validated["expression"])
        except QueryError as e:
            raise ValidationError(
                f"Invalid expression: {e}",
                tool_name=self.name,
                code=ErrorCode.INVALID_VALUE,
                details={"field": "expression"},
            )
        return validated

    async def execute(self, json: Any, expression: str = ".",
                      steps: Optional[List[Step]] = None) -> Dict[str, Any]:
        steps = parse_expression(expression) if steps is None else steps
        try:
            outputs = evaluate(steps, json)
        except QueryError as e:
            raise ExecutionError(
                str(e),
                tool_name=self.name,
                code=ErrorCode.INVALID_VALUE,
                details={"field": "expression"},
            )

        iterates = any(kind == "iterate" for kind, _ in steps)
        return {
            "expression": expression,
            "result": outputs if iterates else outputs[0],
        }
