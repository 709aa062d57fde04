"""
stdio-tools

Small command-line tools that read one JSON object on stdin and write one
JSON object on stdout. Tools are auto-discovered via registry.py
"""

__version__ = "0.3.0"

from .base import Tool, ToolParameter  # noqa: E402
from .registry import get_all_tools, get_tool  # noqa: E402

__all__ = ["__version__", "get_all_tools", "get_tool", "Tool", "ToolParameter"]
