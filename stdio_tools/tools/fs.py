"""
Filesystem Tools

Read, write and diff files under the allowed root (STDIO_TOOLS_FS_ROOT,
defaulting to the current directory). Paths are checked lexically during
validation, so traversal attempts never reach the filesystem.
"""

import codecs
import difflib
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from .. import envelope
from ..base import Tool, ToolParameter
from ..errors import ErrorCode, ExecutionError, ValidationError
from ..paths import atomic_write, display_path, ensure_within_root, resolve_request_path

logger = logging.getLogger(__name__)


def _encoding_parameter() -> ToolParameter:
    return ToolParameter(
        name="encoding",
        type="string",
        description="Text encoding of the file",
        required=False,
        default="utf-8",
    )


class FsTool(Tool):
    """Shared path handling and error mapping for filesystem tools."""

    path_fields: Tuple[str, ...] = ("path",)

    def validate(self, arguments: Any) -> Dict[str, Any]:
        validated = super().validate(arguments)

        if "encoding" in validated:
            # rot13, hex, base64 and friends are codecs but not text encodings
            try:
                codecs.lookup(validated["encoding"])
                "".encode(validated["encoding"])
                b"".decode(validated["encoding"])
            except LookupError:
                raise ValidationError(
                    f"Unknown encoding: {validated['encoding']}",
                    tool_name=self.name,
                    code=ErrorCode.INVALID_VALUE,
                    details={"field": "encoding"},
                )

        for field in self.path_fields:
            try:
                validated[field] = resolve_request_path(
                    validated[field], self.settings.fs_root, field=field
                )
            except ValidationError as e:
                e.tool_name = self.name
                raise
        return validated

    def display(self, path: Path) -> str:
        return display_path(path, self.settings.fs_root)

    def real_path(self, path: Path, field: str = "path") -> Path:
        """Symlink-resolved path, still confined to the root."""
        try:
            return ensure_within_root(path, self.settings.fs_root, field=field)
        except ValidationError as e:
            e.tool_name = self.name
            raise

    def os_error(self, error: OSError, path: Path, field: str = "path") -> ExecutionError:
        """Map an OSError onto the error taxonomy."""
        shown = self.display(path)
        details = {"field": field, "path": shown}

        if isinstance(error, FileNotFoundError):
            return ExecutionError(f"No such file: {shown}", tool_name=self.name,
                                  code=ErrorCode.NOT_FOUND, details=details)
        if isinstance(error, PermissionError):
            return ExecutionError(f"Permission denied: {shown}", tool_name=self.name,
                                  code=ErrorCode.PERMISSION_DENIED, details=details)
        if isinstance(error, IsADirectoryError):
            return ExecutionError(f"Is a directory: {shown}", tool_name=self.name,
                                  code=ErrorCode.INVALID_PATH, details=details)
        if isinstance(error, NotADirectoryError):
            return ExecutionError(f"Not a directory: {shown}", tool_name=self.name,
                                  code=ErrorCode.INVALID_PATH, details=details)
        return ExecutionError(f"{error.strerror or error}: {shown}", tool_name=self.name,
                              code=ErrorCode.INTERNAL_ERROR, details=details)

    def read_text(self, path: Path, encoding: str, field: str = "path") -> Tuple[str, int]:
        real = self.real_path(path, field)
        try:
            data = real.read_bytes()
        except OSError as e:
            raise self.os_error(e, path, field)

        try:
            return data.decode(encoding), len(data)
        except UnicodeDecodeError:
            raise ExecutionError(
                f"File is not valid {encoding} text: {self.display(path)}",
                tool_name=self.name,
                code=ErrorCode.INVALID_VALUE,
                details={"field": "encoding", "path": self.display(path)},
            )


class FsReadTool(FsTool):
    """Read a text file."""

    @property
    def name(self) -> str:
        return "fs.read"

    @property
    def description(self) -> str:
        return "Read a text file under the allowed root, optionally parsing it as JSON"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="path",
                type="string",
                description="File path relative to the allowed root",
                required=True,
            ),
            _encoding_parameter(),
            ToolParameter(
                name="format",
                type="string",
                description="'text' returns content only; 'json' also returns the parsed value as 'data'",
                required=False,
                default="text",
                enum=["text", "json"],
            ),
        ]

    @property
    def examples(self) -> List[str]:
        return ['{"path":"notes.txt"}', '{"path":"config.json","format":"json"}']

    async def execute(self, path: Path, encoding: str = "utf-8",
                      format: str = "text") -> Dict[str, Any]:
        content, size = self.read_text(path, encoding)
        result = {"path": self.display(path), "content": content, "bytes": size}

        if format == "json":
            try:
                result["data"] = envelope.loads(content)
            except ValueError as e:
                raise ExecutionError(
                    f"File is not valid JSON: {e}",
                    tool_name=self.name,
                    code=ErrorCode.INVALID_JSON,
                    details={"path": self.display(path)},
                )

        logger.info(f"Read {size} bytes from {result['path']}")
        return result


class FsWriteTool(FsTool):
    """Write (or append) text to a file."""

    @property
    def name(self) -> str:
        return "fs.write"

    @property
    def description(self) -> str:
        return "Write text to a file under the allowed root, replacing or appending"

    @property
    def side_effects(self) -> bool:
        return True

    @property
    def additional_properties(self) -> bool:
        return False

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="path",
                type="string",
                description="File path relative to the allowed root",
                required=True,
            ),
            ToolParameter(
                name="content",
                type="string",
                description="Text to write (may be empty)",
                required=True,
                allow_empty=True,
            ),
            ToolParameter(
                name="mode",
                type="string",
                description="'overwrite' replaces the file atomically; 'append' adds to the end",
                required=False,
                default="overwrite",
                enum=["overwrite", "append"],
            ),
            ToolParameter(
                name="create_dirs",
                type="boolean",
                description="Create missing parent directories instead of failing with not_found",
                required=False,
                default=False,
            ),
            _encoding_parameter(),
        ]

    @property
    def examples(self) -> List[str]:
        return [
            '{"path":"out.txt","content":"hello\\n"}',
            '{"path":"logs/run.log","content":"line\\n","mode":"append","create_dirs":true}',
        ]

    def _plan(self, path: Path, content: str, encoding: str,
              create_dirs: bool) -> Tuple[Path, bytes, bool, bool]:
        """Checks shared by execute() and preview(); touches nothing."""
        try:
            data = content.encode(encoding)
        except UnicodeEncodeError:
            raise ValidationError(
                f"Content cannot be encoded as {encoding}",
                tool_name=self.name,
                code=ErrorCode.INVALID_VALUE,
                details={"field": "content"},
            )

        real = self.real_path(path)
        if real.is_dir():
            raise self.os_error(IsADirectoryError(), path)

        parent_missing = not real.parent.exists()
        if parent_missing and not create_dirs:
            raise ExecutionError(
                f"Parent directory does not exist: {self.display(path.parent)}",
                tool_name=self.name,
                code=ErrorCode.NOT_FOUND,
                details={"field": "path", "path": self.display(path)},
            )

        return real, data, real.exists(), parent_missing

    async def preview(self, path: Path, content: str, mode: str = "overwrite",
                      create_dirs: bool = False, encoding: str = "utf-8") -> Dict[str, Any]:
        _, data, existed, parent_missing = self._plan(path, content, encoding, create_dirs)
        logger.info(f"Dry run: would write {len(data)} bytes to {self.display(path)}")
        return {
            "path": self.display(path),
            "bytes_written": len(data),
            "created": not existed,
            "mode": mode,
            "dirs_created": parent_missing,
        }

    async def execute(self, path: Path, content: str, mode: str = "overwrite",
                      create_dirs: bool = False, encoding: str = "utf-8") -> Dict[str, Any]:
        real, data, existed, parent_missing = self._plan(path, content, encoding, create_dirs)

        try:
            if parent_missing:
                real.parent.mkdir(parents=True, exist_ok=True)
            if mode == "append":
                with open(real, "ab") as f:
                    f.write(data)
            else:
                atomic_write(real, data)
        except OSError as e:
            raise self.os_error(e, path)

        logger.info(f"Wrote {len(data)} bytes to {self.display(path)} ({mode})")
        return {
            "path": self.display(path),
            "bytes_written": len(data),
            "created": not existed,
            "mode": mode,
            "dirs_created": parent_missing,
        }


def _unified_lines(diff: Iterable[str]) -> Iterator[str]:
    """
    Strip line terminators from unified_diff output, marking a last line
    that had none the way diff(1) does.
    """
    for index, line in enumerate(diff):
        # The two file headers and "@@" hunk headers carry no terminator
        if index < 2 or line.startswith("@@"):
            yield line
            continue
        stripped = line.splitlines()[0]
        yield stripped
        if stripped == line:
            yield "\\ No newline at end of file"


class FsDiffTool(FsTool):
    """Compare two text files line by line."""

    path_fields = ("a", "b")

    @property
    def name(self) -> str:
        return "fs.diff"

    @property
    def description(self) -> str:
        return "Compare two text files and return line-level changes and a unified diff"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="a",
                type="string",
                description="Original file path relative to the allowed root",
                required=True,
            ),
            ToolParameter(
                name="b",
                type="string",
                description="Changed file path relative to the allowed root",
                required=True,
            ),
            ToolParameter(
                name="context",
                type="integer",
                description="Lines of context around each hunk in the unified diff",
                required=False,
                default=3,
                minimum=0,
                maximum=100,
            ),
            _encoding_parameter(),
        ]

    @property
    def examples(self) -> List[str]:
        return ['{"a":"before.txt","b":"after.txt"}']

    async def execute(self, a: Path, b: Path, context: int = 3,
                      encoding: str = "utf-8") -> Dict[str, Any]:
        a_text, _ = self.read_text(a, encoding, field="a")
        b_text, _ = self.read_text(b, encoding, field="b")
        # Line endings are kept so a missing final newline is a change too
        a_lines = a_text.splitlines(keepends=True)
        b_lines = b_text.splitlines(keepends=True)

        # Line numbers are 1-based; an empty range has end == start - 1
        changes = []
        matcher = difflib.SequenceMatcher(None, a_lines, b_lines, autojunk=False)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                continue
            changes.append({
                "op": tag,
                "a_start": i1 + 1,
                "a_end": i2,
                "b_start": j1 + 1,
                "b_end": j2,
                "a_lines": a_lines[i1:i2],
                "b_lines": b_lines[j1:j2],
            })

        unified = "\n".join(_unified_lines(difflib.unified_diff(
            a_lines, b_lines,
            fromfile=self.display(a), tofile=self.display(b),
            n=context, lineterm="",
        )))

        return {
            "a": self.display(a),
            "b": self.display(b),
            "equal": a_text == b_text,
            "changes": changes,
            "unified": unified,
        }
