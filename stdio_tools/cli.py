#!/usr/bin/env python3
"""
Command-Line Entrypoint

Every tool runs through main(): control flags are handled before stdin is
touched, then one JSON request is read, validated and executed, and exactly
one JSON response is written to stdout.

    echo '{"q":"Linux"}' | wiki.search
    wiki.search --schema
    stdio-tools fs.read --help
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional, TextIO

from . import __version__, envelope
from .config import Settings, load_settings
from .errors import ErrorCode, ExitCode, ValidationError
from .registry import create_tool, list_tool_names

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class UsageError(Exception):
    """Raised instead of argparse printing usage and exiting."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser(prog: str) -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog=prog, add_help=False, allow_abbrev=False)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("--schema", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--trace", action="store_true")
    parser.add_argument("--dry-run", action="store_true")
    return parser


def configure_logging(settings: Settings, verbose: bool = False, trace: bool = False,
                      stream: Optional[TextIO] = None) -> None:
    """All log output goes to stderr; stdout is reserved for the response."""
    if trace:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = getattr(logging, settings.log_level, logging.WARNING)

    logging.basicConfig(
        stream=stream or sys.stderr,
        level=level,
        format=LOG_FORMAT,
        force=True,
    )


def read_request(stream: TextIO) -> Any:
    """
    Read the whole stream once and parse it as JSON.

    Raises:
        ValidationError: invalid_json for empty input, bad UTF-8 or bad JSON.
    """
    raw = stream.buffer.read() if hasattr(stream, "buffer") else stream.read()

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(
                "Input is not valid UTF-8",
                code=ErrorCode.INVALID_JSON,
                details={"position": e.start},
            )

    if not raw.strip():
        raise ValidationError("No JSON input on stdin", code=ErrorCode.INVALID_JSON)

    try:
        return envelope.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(
            f"Invalid JSON input: {e.msg}",
            code=ErrorCode.INVALID_JSON,
            details={"line": e.lineno, "column": e.colno},
        )
    except (ValueError, RecursionError) as e:
        raise ValidationError(f"Invalid JSON input: {e}", code=ErrorCode.INVALID_JSON)


def main(
    tool_name: str,
    argv: Optional[List[str]] = None,
    *,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    settings: Optional[Settings] = None,
) -> int:
    """Run one tool invocation and return the process exit code."""
    argv = sys.argv[1:] if argv is None else argv
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    try:
        options, extras = build_parser(tool_name).parse_known_args(argv)
    except UsageError as e:
        return envelope.write(envelope.failure(ErrorCode.UNKNOWN_OPTION, str(e)), stdout)

    settings = settings or load_settings()
    configure_logging(settings, verbose=options.verbose, trace=options.trace, stream=stderr)

    tool = create_tool(tool_name, settings)
    if tool is None:
        stderr.write(f"{tool_name}: no such tool\n")
        return int(ExitCode.INTERNAL)

    if options.help:
        stdout.write(tool.help_text())
        return int(ExitCode.SUCCESS)
    if options.version:
        stdout.write(f"{tool.name} (stdio-tools {__version__})\n")
        return int(ExitCode.SUCCESS)
    if options.schema:
        stdout.write(json.dumps(tool.to_json_schema(), indent=2) + "\n")
        return int(ExitCode.SUCCESS)

    if extras:
        return envelope.write(
            envelope.failure(
                ErrorCode.UNKNOWN_OPTION,
                f"Unknown option: {extras[0]}",
                details={"option": extras[0]},
            ),
            stdout,
        )

    missing = tool.missing_dependencies()
    if missing:
        stderr.write(f"{tool.name}: missing required dependency: {', '.join(missing)}\n")
        return int(ExitCode.DEPENDENCY_MISSING)

    try:
        try:
            arguments = read_request(stdin)
        except ValidationError as e:
            e.tool_name = tool.name
            logger.info(f"Rejected input for {tool.name}: {e.message}")
            return envelope.write(envelope.from_error(e), stdout)

        logger.debug(f"{tool.name} request: {json.dumps(arguments, ensure_ascii=False)[:500]}")
        response = asyncio.run(tool.run(arguments, dry_run=options.dry_run))
    except Exception as e:
        logger.exception(f"Unexpected error in {tool_name}")
        response = envelope.failure(ErrorCode.INTERNAL_ERROR, str(e) or type(e).__name__)

    if response.exit_code == ExitCode.DEPENDENCY_MISSING:
        stderr.write(f"{tool.name}: {response.body.get('message', 'missing dependency')}\n")
        return int(ExitCode.DEPENDENCY_MISSING)

    return envelope.write(response, stdout)


def dispatch(argv: Optional[List[str]] = None, *, stdout: Optional[TextIO] = None,
             **streams) -> int:
    """
    `stdio-tools <tool> [flags]` runs one tool; `stdio-tools --list` prints the tool ids.
    """
    argv = sys.argv[1:] if argv is None else argv
    stdout = stdout or sys.stdout

    if not argv or argv[0] in ("-h", "--help"):
        stdout.write("Usage: stdio-tools <tool> [--help|--schema|--version|--verbose|--trace|--dry-run]\n")
        stdout.write("       stdio-tools --list\n\nTools:\n")
        for name in list_tool_names():
            stdout.write(f"  {name}\n")
        return int(ExitCode.SUCCESS if argv else ExitCode.INVALID_INPUT)

    if argv[0] == "--version":
        stdout.write(f"stdio-tools {__version__}\n")
        return int(ExitCode.SUCCESS)

    if argv[0] == "--list":
        return envelope.write(envelope.success({"tools": list_tool_names()}), stdout)

    name = argv[0]
    if name not in list_tool_names():
        return envelope.write(
            envelope.failure(
                ErrorCode.INVALID_VALUE,
                f"Unknown tool: {name}",
                details={"tool": name, "available": list_tool_names()},
            ),
            stdout,
        )

    return main(name, argv[1:], stdout=stdout, **streams)


def _entry(tool_name: str):
    """Console-script entry point bound to one tool."""
    def entry() -> int:
        return main(tool_name)
    entry.__name__ = tool_name.replace(".", "_")
    entry.__doc__ = f"Run {tool_name}."
    return entry


hello_world = _entry("hello.world")
wiki_search = _entry("wiki.search")
web_fetch = _entry("web.fetch")
fs_read = _entry("fs.read")
fs_write = _entry("fs.write")
fs_diff = _entry("fs.diff")
json_format = _entry("json.format")
json_query = _entry("json.query")


if __name__ == "__main__":
    sys.exit(dispatch())
