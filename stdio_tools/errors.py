"""
Error Taxonomy

Machine-readable error codes shared by every tool, the process exit codes
they map to, and the exception hierarchy tools raise to signal them.
"""

from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INVALID_JSON = "invalid_json"
    MISSING_FIELD = "missing_field"
    INVALID_TYPE = "invalid_type"
    INVALID_VALUE = "invalid_value"
    INVALID_PATH = "invalid_path"
    UNKNOWN_OPTION = "unknown_option"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    RATE_LIMITED = "rate_limited"
    DEPENDENCY_MISSING = "dependency_missing"
    INTERNAL_ERROR = "internal_error"


class ExitCode(IntEnum):
    SUCCESS = 0
    INTERNAL = 1
    INVALID_INPUT = 2
    NETWORK = 22
    DEPENDENCY_MISSING = 127


EXIT_CODES: Dict[ErrorCode, ExitCode] = {
    ErrorCode.INVALID_JSON: ExitCode.INVALID_INPUT,
    ErrorCode.MISSING_FIELD: ExitCode.INVALID_INPUT,
    ErrorCode.INVALID_TYPE: ExitCode.INVALID_INPUT,
    ErrorCode.INVALID_VALUE: ExitCode.INVALID_INPUT,
    ErrorCode.INVALID_PATH: ExitCode.INVALID_INPUT,
    ErrorCode.UNKNOWN_OPTION: ExitCode.INVALID_INPUT,
    ErrorCode.NETWORK_ERROR: ExitCode.NETWORK,
    ErrorCode.HTTP_ERROR: ExitCode.NETWORK,
    ErrorCode.RATE_LIMITED: ExitCode.NETWORK,
    ErrorCode.NOT_FOUND: ExitCode.INTERNAL,
    ErrorCode.PERMISSION_DENIED: ExitCode.INTERNAL,
    ErrorCode.INTERNAL_ERROR: ExitCode.INTERNAL,
    ErrorCode.DEPENDENCY_MISSING: ExitCode.DEPENDENCY_MISSING,
}


def exit_code_for(code: ErrorCode) -> ExitCode:
    """Return the process exit code for an error code."""
    return EXIT_CODES.get(ErrorCode(code), ExitCode.INTERNAL)


class ToolError(Exception):
    """Base exception for tool errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        tool_name: str = None,
        details: Dict[str, Any] = None,
        code: Optional[ErrorCode] = None,
        status: Optional[int] = None,
    ):
        self.message = message
        self.tool_name = tool_name
        self.details = details or {}
        self.status = status
        if code is not None:
            self.code = ErrorCode(code)
        super().__init__(self.message)

    @property
    def exit_code(self) -> ExitCode:
        return exit_code_for(self.code)


class ValidationError(ToolError):
    """Raised when tool input validation fails."""
    code = ErrorCode.INVALID_VALUE


class ExecutionError(ToolError):
    """Raised when the tool's external effect fails."""
    code = ErrorCode.INTERNAL_ERROR


class DependencyMissingError(ToolError):
    """Raised when a library or program the tool needs is not available."""
    code = ErrorCode.DEPENDENCY_MISSING

    def __init__(self, dependency: str, tool_name: str = None):
        self.dependency = dependency
        super().__init__(
            f"Missing required dependency: {dependency}",
            tool_name=tool_name,
            details={"dependency": dependency},
        )
