"""
Shared fixtures for stdio-tools tests.
"""

import io
import json
from typing import Any, List, Optional, Tuple

import pytest

from stdio_tools.cli import main
from stdio_tools.config import Settings
from stdio_tools.net import HttpTool
from stdio_tools.tools.fs import FsTool


class ExplodingStdin:
    """A stdin that counts read attempts and never yields data."""

    def __init__(self):
        self.reads = 0

    def read(self, *args):
        self.reads += 1
        raise AssertionError("stdin must not be read")

    def readline(self, *args):
        return self.read()

    def isatty(self) -> bool:
        return False


@pytest.fixture
def untouched_stdin() -> ExplodingStdin:
    """Stdin for invocations that must be answered without reading input."""
    return ExplodingStdin()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings confined to a per-test directory."""
    root = tmp_path / "root"
    root.mkdir()
    return Settings(
        fs_root=root,
        user_agent="stdio-tools-tests",
        install_dir=tmp_path / "bin",
    )


@pytest.fixture
def run_cli(settings):
    """Run one tool invocation; returns (exit_code, stdout, stderr)."""

    def _run(
        tool_name: str,
        payload: Any = None,
        argv: Optional[List[str]] = None,
        raw: Optional[str] = None,
        stdin: Any = None,
    ) -> Tuple[int, str, str]:
        if stdin is None:
            stdin = io.StringIO(raw if raw is not None else json.dumps(payload))
        stdout, stderr = io.StringIO(), io.StringIO()
        code = main(tool_name, argv or [], stdin=stdin, stdout=stdout,
                    stderr=stderr, settings=settings)
        return code, stdout.getvalue(), stderr.getvalue()

    return _run


@pytest.fixture
def no_effects(monkeypatch):
    """Fail the test if any tool reaches the network or the filesystem."""

    async def forbidden_fetch(self, *args, **kwargs):
        raise AssertionError("network access attempted")

    def forbidden_path(self, *args, **kwargs):
        raise AssertionError("filesystem access attempted")

    monkeypatch.setattr(HttpTool, "fetch", forbidden_fetch)
    monkeypatch.setattr(FsTool, "real_path", forbidden_path)
