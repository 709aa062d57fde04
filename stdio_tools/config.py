"""
Runtime Configuration

Settings are read from the environment (and an optional .env file) once at
process start and handed to tools and the installer explicitly.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from . import __version__

DEFAULT_USER_AGENT = f"stdio-tools/{__version__} (+https://pypi.org/project/stdio-tools/)"
DEFAULT_WIKIPEDIA_URL = "https://{lang}.wikipedia.org/w/api.php"

# Network timeouts in seconds
DEFAULT_TIMEOUT = 10.0
MAX_TIMEOUT = 60.0

_TRUTHY = ("1", "true", "yes", "on")


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    """Immutable configuration for one invocation."""
    fs_root: Path
    user_agent: str = DEFAULT_USER_AGENT
    wikipedia_url: str = DEFAULT_WIKIPEDIA_URL
    log_level: str = "WARNING"
    install_dir: Path = Path.home() / ".local" / "bin"
    tool_prefix: str = ""
    agent_mode: bool = False
    dry_run: bool = False
    force: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        fs_root = env.get("STDIO_TOOLS_FS_ROOT") or os.getcwd()
        install_dir = env.get("INSTALL_DIR") or str(Path.home() / ".local" / "bin")

        return cls(
            fs_root=Path(fs_root).expanduser().absolute(),
            user_agent=env.get("STDIO_TOOLS_USER_AGENT") or DEFAULT_USER_AGENT,
            wikipedia_url=env.get("STDIO_TOOLS_WIKIPEDIA_URL") or DEFAULT_WIKIPEDIA_URL,
            log_level=(env.get("STDIO_TOOLS_LOG_LEVEL") or "WARNING").upper(),
            install_dir=Path(install_dir).expanduser(),
            tool_prefix=env.get("TOOL_PREFIX", ""),
            # CI forces agent mode the same way AGENT_MODE=1 does
            agent_mode=_flag(env.get("AGENT_MODE")) or bool(env.get("CI")),
            dry_run=_flag(env.get("DRY_RUN")),
            force=_flag(env.get("FORCE")),
        )

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with command-line overrides applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def load_settings(dotenv: bool = True) -> Settings:
    """Load .env (without overriding the real environment) and build Settings."""
    if dotenv:
        load_dotenv(override=False)
    return Settings.from_env()
