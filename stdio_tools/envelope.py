"""Unified JSON envelope for all tools.

Every tool writes exactly one JSON object to stdout:
  ok=True:  {"ok": true, ...tool fields}
  ok=False: {"ok": false, "error": "<code>", "message": "...", "details": {...}, "status": 404}

Exit codes: 0=success, 1=internal, 2=invalid input, 22=network, 127=missing dependency.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, TextIO

from .errors import ErrorCode, ExitCode, ToolError, exit_code_for


@dataclass
class ToolResponse:
    """The single deliverable of one invocation."""
    body: Dict[str, Any]
    exit_code: ExitCode = ExitCode.SUCCESS

    @property
    def ok(self) -> bool:
        return bool(self.body.get("ok"))


def success(fields: Optional[Dict[str, Any]] = None) -> ToolResponse:
    """Build a success envelope. `ok` always comes first and cannot be overridden."""
    body: Dict[str, Any] = {"ok": True}
    for key, value in (fields or {}).items():
        if key != "ok":
            body[key] = value
    return ToolResponse(body=body, exit_code=ExitCode.SUCCESS)


def failure(
    code: ErrorCode,
    message: str = "",
    *,
    details: Optional[Dict[str, Any]] = None,
    status: Optional[int] = None,
) -> ToolResponse:
    """Build an error envelope with the exit code the taxonomy assigns."""
    code = ErrorCode(code)
    body: Dict[str, Any] = {"ok": False, "error": code.value}
    if message:
        body["message"] = message
    if details:
        body["details"] = details
    if status is not None:
        body["status"] = status
    return ToolResponse(body=body, exit_code=exit_code_for(code))


def from_error(error: ToolError) -> ToolResponse:
    return failure(error.code, error.message, details=error.details, status=error.status)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"Number out of range: {text}")
    return value


def loads(text: str) -> Any:
    """Parse JSON text, rejecting NaN, Infinity and numbers that overflow to them."""
    return json.loads(text, parse_constant=_reject_constant, parse_float=_finite_float)


def dumps(body: Dict[str, Any]) -> str:
    return json.dumps(body, ensure_ascii=False, allow_nan=False, default=str)


def write(response: ToolResponse, stream: TextIO) -> int:
    """Serialize one response as a single line and return its exit code."""
    stream.write(dumps(response.body) + "\n")
    stream.flush()
    return int(response.exit_code)
