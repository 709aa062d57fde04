"""
Tool Base Classes

Provides the parameter declarations, input validation, JSON Schema generation
and error handling shared by all stdio tools.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type

from .config import Settings
from .envelope import ToolResponse, failure, from_error, success
from .errors import ErrorCode, ToolError, ValidationError

logger = logging.getLogger(__name__)

SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"

PARAMETER_TYPES = ("string", "integer", "number", "boolean", "array", "object", "any")


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""
    name: str
    type: str
    description: str
    required: bool = True
    default: Any = None
    items_type: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    enum: Optional[List[Any]] = None
    pattern: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    allow_empty: bool = False
    aliases: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Unsupported parameter type for {self.name}: {self.type}")

    @property
    def keys(self) -> Tuple[str, ...]:
        """Input keys accepted for this parameter, canonical name first."""
        return (self.name, *self.aliases)

    def to_schema(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {}
        if self.type != "any":
            prop["type"] = self.type
        prop["description"] = self.description
        if self.type == "array" and self.items_type:
            prop["items"] = {} if self.items_type == "any" else {"type": self.items_type}
        if self.default is not None:
            prop["default"] = self.default
        if self.minimum is not None:
            prop["minimum"] = self.minimum
        if self.maximum is not None:
            prop["maximum"] = self.maximum
        if self.exclusive_minimum is not None:
            prop["exclusiveMinimum"] = self.exclusive_minimum
        if self.enum is not None:
            prop["enum"] = list(self.enum)
        if self.pattern is not None:
            prop["pattern"] = self.pattern
        if self.min_length is not None:
            prop["minLength"] = self.min_length
        if self.max_length is not None:
            prop["maxLength"] = self.max_length
        return prop


@dataclass
class ToolDefinition:
    """Complete definition of a tool, as held by the registry."""
    name: str
    description: str
    parameters: List[ToolParameter] = field(default_factory=list)
    tool_class: Optional[Type["Tool"]] = None
    category: str = "general"
    side_effects: bool = False


def _matches_type(value: Any, expected: str) -> bool:
    if expected == "any":
        return True
    if expected == "boolean":
        return isinstance(value, bool)
    # bool is a subclass of int; JSON true/false is never a number
    if isinstance(value, bool):
        return False
    if expected == "integer":
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if expected == "number":
        return isinstance(value, (int, float))
    if expected == "string":
        return isinstance(value, str)
    if expected == "array":
        return isinstance(value, list)
    if expected == "object":
        return isinstance(value, dict)
    return False


def _is_empty(value: Any, allow_empty: bool = False) -> bool:
    if value is None:
        return True
    return not allow_empty and isinstance(value, str) and not value.strip()


class Tool(ABC):
    """
    Abstract base class for stdio tools.

    All tools must inherit from this class and implement:
    - name: Tool identifier, "<namespace>.<tool>"
    - description: What the tool does
    - parameters: List of ToolParameter definitions
    - execute(): The actual tool logic, performing at most one external effect

    Side-effecting tools set side_effects and implement preview() for --dry-run.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.from_env()

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for the tool."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        pass

    @property
    def parameters(self) -> List[ToolParameter]:
        """List of parameters the tool accepts."""
        return []

    @property
    def category(self) -> str:
        """Namespace used to group tools, e.g. "wiki" for wiki.search."""
        return self.name.split(".", 1)[0]

    @property
    def side_effects(self) -> bool:
        """Whether execute() mutates the environment."""
        return False

    @property
    def additional_properties(self) -> bool:
        """False makes the request object closed: unknown keys are rejected."""
        return True

    @property
    def examples(self) -> List[str]:
        """Example stdin payloads shown in --help."""
        return []

    def missing_dependencies(self) -> List[str]:
        """Names of runtime dependencies that are not importable."""
        return []

    def validate(self, arguments: Any) -> Dict[str, Any]:
        """
        Validate the request object.
        Returns validated/normalized parameters keyed by canonical name.
        Raises ValidationError if validation fails.
        """
        if not isinstance(arguments, dict):
            raise ValidationError(
                "Request must be a JSON object",
                tool_name=self.name,
                code=ErrorCode.INVALID_JSON,
                details={"expected": "object", "received": type(arguments).__name__},
            )

        if not self.additional_properties:
            known = {key for param in self.parameters for key in param.keys}
            for key in arguments:
                if key not in known:
                    raise ValidationError(
                        f"Unknown field: {key}",
                        tool_name=self.name,
                        code=ErrorCode.INVALID_VALUE,
                        details={"field": key},
                    )

        validated = {}

        for param in self.parameters:
            key, value = self._lookup(arguments, param)

            if _is_empty(value, param.allow_empty):
                if param.required:
                    raise ValidationError(
                        f"Missing required field: {param.name}",
                        tool_name=self.name,
                        code=ErrorCode.MISSING_FIELD,
                        details={"field": param.name},
                    )
                validated[param.name] = param.default
                continue

            validated[param.name] = self._check_value(param, key, value)

        return validated

    def _lookup(self, arguments: Dict[str, Any], param: ToolParameter) -> Tuple[str, Any]:
        # The canonical name wins over aliases, then aliases in declared order
        for key in param.keys:
            if arguments.get(key) is not None:
                if key != param.name:
                    logger.debug(f"{self.name}: using alias '{key}' for '{param.name}'")
                return key, arguments[key]
        return param.name, None

    def _check_value(self, param: ToolParameter, key: str, value: Any) -> Any:
        if not _matches_type(value, param.type):
            raise ValidationError(
                f"Field '{key}' must be of type {param.type}",
                tool_name=self.name,
                code=ErrorCode.INVALID_TYPE,
                details={"field": key, "expected": param.type},
            )

        if param.type == "integer":
            value = int(value)

        if param.type == "array" and param.items_type:
            for index, item in enumerate(value):
                if not _matches_type(item, param.items_type):
                    raise ValidationError(
                        f"Items of '{key}' must be of type {param.items_type}",
                        tool_name=self.name,
                        code=ErrorCode.INVALID_TYPE,
                        details={"field": key, "index": index, "expected": param.items_type},
                    )

        def invalid(reason: str, **extra) -> ValidationError:
            return ValidationError(
                f"Field '{key}' {reason}",
                tool_name=self.name,
                code=ErrorCode.INVALID_VALUE,
                details={"field": key, **extra},
            )

        if param.minimum is not None and value < param.minimum:
            raise invalid(f"must be >= {param.minimum}", minimum=param.minimum)
        if param.maximum is not None and value > param.maximum:
            raise invalid(f"must be <= {param.maximum}", maximum=param.maximum)
        if param.exclusive_minimum is not None and value <= param.exclusive_minimum:
            raise invalid(f"must be > {param.exclusive_minimum}",
                          exclusive_minimum=param.exclusive_minimum)
        if param.enum is not None and value not in param.enum:
            raise invalid(f"must be one of {param.enum}", allowed=list(param.enum))
        if param.pattern is not None and not re.fullmatch(param.pattern, value):
            raise invalid(f"does not match pattern {param.pattern}", pattern=param.pattern)
        if param.min_length is not None and len(value) < param.min_length:
            raise invalid(f"must be at least {param.min_length} characters",
                          min_length=param.min_length)
        if param.max_length is not None and len(value) > param.max_length:
            raise invalid(f"must be at most {param.max_length} characters",
                          max_length=param.max_length)

        return value

    @abstractmethod
    async def execute(self, **kwargs) -> Dict[str, Any]:
        """
        Execute the tool with validated parameters.
        Returns the tool-specific success fields.
        """
        pass

    async def preview(self, **kwargs) -> Dict[str, Any]:
        """Describe what execute() would do, without doing it."""
        raise NotImplementedError(f"{self.name} does not support --dry-run")

    async def run(self, arguments: Any, dry_run: bool = False) -> ToolResponse:
        """
        Public entry point: validate, then perform the effect.
        Returns the response envelope; never raises.
        """
        try:
            validated = self.validate(arguments)
            if dry_run and self.side_effects:
                result = await self.preview(**validated)
                result["dry_run"] = True
            else:
                result = await self.execute(**validated)
            return success(result)
        except ValidationError as e:
            logger.info(f"Validation error in {self.name}: {e.message}")
            return from_error(e)
        except ToolError as e:
            logger.error(f"Execution error in {self.name}: {e.message}")
            return from_error(e)
        except Exception as e:
            logger.exception(f"Unexpected error in {self.name}")
            return failure(ErrorCode.INTERNAL_ERROR, str(e) or type(e).__name__)

    def to_definition(self) -> ToolDefinition:
        """Convert tool to ToolDefinition for registry."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            tool_class=type(self),
            category=self.category,
            side_effects=self.side_effects,
        )

    def to_json_schema(self) -> Dict[str, Any]:
        """Draft-07 JSON Schema describing the request object."""
        properties: Dict[str, Dict[str, Any]] = {}
        required: List[str] = []
        alternatives: List[Dict[str, Any]] = []

        for param in self.parameters:
            prop = param.to_schema()
            properties[param.name] = prop
            for alias in param.aliases:
                properties[alias] = {**prop, "description": f"Alias of '{param.name}'."}

            if param.required:
                if param.aliases:
                    alternatives.append(
                        {"anyOf": [{"required": [key]} for key in param.keys]}
                    )
                else:
                    required.append(param.name)

        schema: Dict[str, Any] = {
            "$schema": SCHEMA_DRAFT,
            "title": self.name,
            "description": self.description,
            "type": "object",
            "properties": properties,
        }

        if required:
            schema["required"] = required
        if len(alternatives) == 1:
            schema.update(alternatives[0])
        elif alternatives:
            schema["allOf"] = alternatives
        schema["additionalProperties"] = self.additional_properties

        return schema

    def help_text(self) -> str:
        """Usage text printed for --help."""
        lines = [f"{self.name} - {self.description}", "", "Usage:"]
        examples = self.examples or ["{}"]
        for example in examples:
            lines.append(f"  echo '{example}' | {self.name}")
        lines.append(f"  {self.name} --schema")
        lines.append("")

        if self.parameters:
            lines.append("Input fields:")
            for param in self.parameters:
                flags = "required" if param.required else f"default: {param.default!r}"
                lines.append(f"  {param.name} ({param.type}, {flags})")
                lines.append(f"      {param.description}")
                if param.aliases:
                    lines.append(f"      Aliases: {', '.join(param.aliases)}")
            lines.append("")

        lines.extend([
            "Options:",
            "  --help       Show this help and exit",
            "  --schema     Print the JSON Schema for the input and exit",
            "  --version    Print the version and exit",
            "  --verbose    Log progress to stderr",
            "  --trace      Log debug details to stderr",
        ])
        if self.side_effects:
            lines.append("  --dry-run    Report what would happen without doing it")
        lines.extend([
            "",
            "Exit codes: 0 success, 1 internal error, 2 invalid input,"
            " 22 network/HTTP failure, 127 missing dependency",
        ])
        return "\n".join(lines) + "\n"
