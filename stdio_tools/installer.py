#!/usr/bin/env python3
"""
Tool Installer

Writes an executable launcher for each selected tool into an install
directory (default ~/.local/bin), named "<prefix><namespace>.<tool>".

Usage:
    stdio-tools-install wiki.search fs.read
    stdio-tools-install --group wiki
    stdio-tools-install --all --dir /opt/bin --prefix chuk-
    AGENT_MODE=1 stdio-tools-install --essential

In agent mode (AGENT_MODE=1, CI set, --agent/--json, or stdin not a TTY)
exactly one JSON report is printed to stdout and no prompt is shown.
"""

import argparse
import logging
import os
import stat
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple

from pydantic import BaseModel

from . import __version__
from .config import Settings, load_settings
from .registry import list_tool_names

logger = logging.getLogger(__name__)

ESSENTIAL_TOOLS = ("wiki.search", "fs.read", "fs.write", "web.fetch", "json.query")

ALL_GROUP = "ALL"

HELP_TEXT = f"""stdio-tools installer {__version__}

Usage:
    stdio-tools-install [options] [TOOL ...]

Options:
    --list           List all available tools
    --group GROUP    Install all tools from GROUP (wiki, fs, web, json, hello)
    --all            Install all available tools
    --essential      Install essential tools bundle ({' '.join(ESSENTIAL_TOOLS)})
    --agent, --json  Agent mode (JSON output, non-interactive)
    --dry-run        Show what would be installed
    --dir PATH       Install to PATH instead of ~/.local/bin
    --prefix PREFIX  Add PREFIX to tool names (e.g., chuk-)
    --force          Skip confirmations
    --verbose        Log progress to stderr
    --help           Show this help

Examples:
    stdio-tools-install wiki.search web.fetch
    stdio-tools-install --group wiki
    stdio-tools-install --prefix chuk- wiki.search    # creates chuk-wiki.search
    AGENT_MODE=1 stdio-tools-install wiki.search

Environment Variables:
    INSTALL_DIR      Installation directory (default: ~/.local/bin)
    TOOL_PREFIX      Prefix for tool names
    AGENT_MODE       Set to 1 for JSON output
    DRY_RUN          Set to 1 for a dry run
    FORCE            Set to 1 to skip confirmations
"""

LAUNCHER_TEMPLATE = """#!{python}
# {install_name}: launcher written by stdio-tools-install {version}
import sys

from stdio_tools.cli import main

if __name__ == "__main__":
    sys.exit(main({tool_name!r}))
"""


class ListReport(BaseModel):
    status: str = "success"
    tools: List[str]


class DryRunReport(BaseModel):
    status: str = "dry_run"
    tools: List[str]
    install_dir: str


class InstallReport(BaseModel):
    status: str
    installed: List[str]
    failed: Optional[List[str]] = None
    install_dir: str


class ErrorReport(BaseModel):
    status: str = "error"
    message: str
    tools: Optional[List[str]] = None


class InstallerError(Exception):
    """Raised for usage errors; reported as an ErrorReport."""

    def __init__(self, message: str, tools: Optional[List[str]] = None):
        self.message = message
        self.tools = tools
        super().__init__(message)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise InstallerError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="stdio-tools-install", add_help=False, allow_abbrev=False)
    parser.add_argument("tools", nargs="*")
    parser.add_argument("--list", action="store_true")
    parser.add_argument("--group", action="append", default=[])
    parser.add_argument("--all", action="store_true")
    parser.add_argument("--essential", action="store_true")
    parser.add_argument("--agent", "--json", action="store_true")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--dir", type=Path)
    parser.add_argument("--prefix")
    parser.add_argument("--force", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("-h", "--help", action="store_true")
    return parser


def expand_selection(
    requested: Sequence[str],
    groups: Sequence[str],
    available: Sequence[str],
) -> List[str]:
    """
    Expand groups into tool ids and merge with explicitly requested ids.

    Returns a sorted, de-duplicated list. A group that matches nothing adds
    nothing; unknown explicit ids are kept so they can be reported.
    """
    selected = list(requested)
    for group in groups:
        if group == ALL_GROUP:
            selected.extend(available)
        else:
            selected.extend(tool for tool in available if tool.startswith(f"{group}."))
    return sorted(set(selected))


def partition_tools(selected: Sequence[str], available: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Split selected ids into (valid, invalid)."""
    known = set(available)
    valid = [tool for tool in selected if tool in known]
    invalid = [tool for tool in selected if tool not in known]
    return valid, invalid


def launcher_script(tool_name: str, install_name: str, python: Optional[str] = None) -> str:
    return LAUNCHER_TEMPLATE.format(
        python=python or sys.executable,
        install_name=install_name,
        version=__version__,
        tool_name=tool_name,
    )


def install_tool(tool_name: str, install_dir: Path, prefix: str = "",
                 python: Optional[str] = None) -> Path:
    """
    Write one executable launcher.
    The file is written next to its target and renamed into place.
    """
    install_name = f"{prefix}{tool_name}"
    target = install_dir / install_name
    tmp_path = install_dir / f".{install_name}.tmp"

    try:
        tmp_path.write_text(launcher_script(tool_name, install_name, python), encoding="utf-8")
        mode = tmp_path.stat().st_mode
        tmp_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(tmp_path, target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.info(f"Installed {tool_name} -> {target}")
    return target


class Installer:
    """Selection, validation and copy of tool launchers."""

    def __init__(self, settings: Settings, stdout: TextIO, stderr: TextIO,
                 stdin: Optional[TextIO] = None):
        self.settings = settings
        self.stdout = stdout
        self.stderr = stderr
        self.stdin = stdin

    @property
    def agent_mode(self) -> bool:
        return self.settings.agent_mode

    def emit(self, report: BaseModel) -> None:
        self.stdout.write(report.model_dump_json(exclude_none=True) + "\n")

    def say(self, line: str = "") -> None:
        if not self.agent_mode:
            self.stdout.write(line + "\n")

    def error(self, message: str, tools: Optional[List[str]] = None) -> int:
        if self.agent_mode:
            self.emit(ErrorReport(message=message, tools=tools))
        else:
            self.stderr.write(f"✗ {message}\n")
            for tool in tools or []:
                self.stderr.write(f"  • {tool}\n")
        return 1

    def list_tools(self, available: List[str]) -> int:
        if self.agent_mode:
            self.emit(ListReport(tools=available))
            return 0

        self.say("Available tools:")
        current = None
        for tool in available:
            namespace = tool.split(".", 1)[0]
            if namespace != current:
                self.say()
                self.say(f"{namespace}/")
                current = namespace
            self.say(f"  • {tool}")
        return 0

    def confirm(self) -> bool:
        if self.agent_mode or self.settings.force or self.stdin is None:
            return True
        self.stdout.write("Continue with installation? [y/N] ")
        self.stdout.flush()
        reply = self.stdin.readline().strip().lower()
        return reply in ("y", "yes")

    def install(self, tools: List[str]) -> int:
        install_dir = self.settings.install_dir
        prefix = self.settings.tool_prefix

        if self.settings.dry_run or not self.agent_mode:
            self.say("Will install:")
            for tool in tools:
                self.say(f"  • {tool} → {install_dir / (prefix + tool)}")
            self.say()

        if self.settings.dry_run:
            if self.agent_mode:
                self.emit(DryRunReport(tools=tools, install_dir=str(install_dir)))
            else:
                self.say("Dry run complete (nothing installed)")
            return 0

        if not self.confirm():
            self.say("Installation cancelled")
            return 0

        try:
            install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.debug(f"mkdir {install_dir} failed: {e}")
            return self.error(f"Cannot create directory: {install_dir}")

        installed: List[str] = []
        failed: List[str] = []
        for tool in tools:
            try:
                install_tool(tool, install_dir, prefix)
                installed.append(tool)
            except OSError as e:
                logger.error(f"Failed to install {tool}: {e}")
                failed.append(tool)

        if self.agent_mode:
            if failed:
                self.emit(InstallReport(status="partial", installed=installed,
                                        failed=failed, install_dir=str(install_dir)))
            else:
                self.emit(InstallReport(status="success", installed=installed,
                                        install_dir=str(install_dir)))
        else:
            self._summary(installed, failed)

        return 1 if failed else 0

    def _summary(self, installed: List[str], failed: List[str]) -> None:
        install_dir = self.settings.install_dir
        prefix = self.settings.tool_prefix

        self.say()
        if installed:
            self.say("✓ Successfully installed:")
            for tool in installed:
                self.say(f"  • {prefix}{tool}")
        if failed:
            self.say("✗ Failed to install:")
            for tool in failed:
                self.say(f"  • {tool}")
        self.say()

        path_dirs = os.environ.get("PATH", "").split(os.pathsep)
        if str(install_dir) not in path_dirs:
            self.say("ACTION REQUIRED:")
            self.say("Add to your shell config:")
            self.say(f'  export PATH="$PATH:{install_dir}"')
            self.say()

        if installed:
            first = f"{prefix}{installed[0]}"
            self.say("Try it out:")
            if installed[0] == "wiki.search":
                self.say(f"  echo '{{\"q\":\"bash scripting\"}}' | {first}")
            else:
                self.say(f"  {first} --help")

    def run(self, options: argparse.Namespace) -> int:
        if options.help:
            if not self.agent_mode:
                self.stdout.write(HELP_TEXT)
            return 0

        available = list_tool_names()

        if options.list:
            return self.list_tools(available)

        if options.prefix and ("/" in options.prefix or os.sep in options.prefix):
            return self.error(f"Invalid prefix: {options.prefix}")

        requested = list(options.tools)
        if options.essential:
            requested.extend(ESSENTIAL_TOOLS)
        groups = list(options.group)
        if options.all:
            groups.append(ALL_GROUP)

        if not requested and not groups and not self.agent_mode:
            self.stderr.write(
                "No tools specified!\n\n"
                "Usage examples:\n"
                "  stdio-tools-install wiki.search fs.read\n"
                "  stdio-tools-install --group wiki\n"
                "  stdio-tools-install --all\n\n"
                "Run stdio-tools-install --list to see available tools\n"
            )
            return 1

        selected = expand_selection(requested, groups, available)
        valid, invalid = partition_tools(selected, available)
        if invalid:
            if self.agent_mode:
                return self.error("invalid_tools", tools=invalid)
            return self.error("Invalid tools specified:", tools=invalid)

        return self.install(valid)


def main(argv: Optional[List[str]] = None, *, stdin: Optional[TextIO] = None,
         stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None,
         settings: Optional[Settings] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    settings = settings or load_settings()

    try:
        options = build_parser().parse_args(argv)
        usage_error = None
    except InstallerError as e:
        options = None
        usage_error = e

    # A non-TTY stdin means a script or agent is driving
    agent = (options is not None and options.agent) or not stdin.isatty()
    settings = settings.with_overrides(
        agent_mode=True if agent else None,
        force=True if (agent or settings.agent_mode or (options and options.force)) else None,
        dry_run=True if (options and options.dry_run) else None,
        install_dir=options.dir.expanduser() if (options and options.dir) else None,
        tool_prefix=options.prefix if options else None,
    )

    logging.basicConfig(
        stream=stderr,
        level=logging.INFO if (options and options.verbose) else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )

    installer = Installer(settings, stdout=stdout, stderr=stderr, stdin=stdin)
    if usage_error is not None:
        return installer.error(usage_error.message)
    return installer.run(options)


if __name__ == "__main__":
    sys.exit(main())
