"""
Tool Registry

Every concrete Tool subclass in a stdio_tools.tools module is registered
under its dotted name the first time the registry is consulted.
"""

import importlib
import inspect
import logging
import pkgutil
from pathlib import Path
from typing import Dict, List, Optional

from .base import Tool, ToolDefinition
from .config import Settings

logger = logging.getLogger(__name__)

# Global registry
_tool_registry: Dict[str, ToolDefinition] = {}
_initialized: bool = False


def _discover_tools() -> None:
    """Import each stdio_tools.tools module once and register its tools."""
    global _tool_registry, _initialized

    if _initialized:
        return

    tools_package = f"{__package__}.tools"
    tools_path = Path(__file__).parent / "tools"

    if not tools_path.exists():
        logger.warning(f"Tools directory not found: {tools_path}")
        _initialized = True
        return

    # Placeholder settings: definitions only read static properties
    settings = Settings(fs_root=Path.cwd())

    for _, module_name, _ in pkgutil.iter_modules([str(tools_path)]):
        if module_name.startswith("_"):
            continue

        full_module_name = f"{tools_package}.{module_name}"
        module = importlib.import_module(full_module_name)
        logger.debug(f"Loaded tool module: {full_module_name}")

        # Find all Tool subclasses defined in the module
        for name, obj in inspect.getmembers(module, inspect.isclass):
            if (
                issubclass(obj, Tool)
                and obj is not Tool
                and obj.__module__ == module.__name__
                and not inspect.isabstract(obj)
            ):
                definition = obj(settings).to_definition()
                if definition.name in _tool_registry:
                    raise RuntimeError(f"Duplicate tool name: {definition.name}")
                _tool_registry[definition.name] = definition
                logger.debug(f"Registered tool: {definition.name} ({module_name})")

    _initialized = True
    logger.debug(f"Tool discovery complete. Total tools: {len(_tool_registry)}")


def get_all_tools() -> Dict[str, ToolDefinition]:
    """Name -> ToolDefinition for every registered tool."""
    _discover_tools()
    return _tool_registry.copy()


def get_tool(name: str) -> Optional[ToolDefinition]:
    """Definition for `name`, or None if no such tool."""
    _discover_tools()
    return _tool_registry.get(name)


def get_tools_by_category(category: str) -> Dict[str, ToolDefinition]:
    """Get all tools in a specific namespace, e.g. "fs"."""
    _discover_tools()
    return {
        name: tool
        for name, tool in _tool_registry.items()
        if tool.category == category
    }


def list_tool_names() -> List[str]:
    """Sorted list of all registered tool names."""
    _discover_tools()
    return sorted(_tool_registry.keys())


def create_tool(name: str, settings: Settings) -> Optional[Tool]:
    """Instantiate a registered tool with the given settings."""
    definition = get_tool(name)
    if definition is None or definition.tool_class is None:
        return None
    return definition.tool_class(settings)


def reset_registry() -> None:
    """Forget all registrations; the next lookup rediscovers."""
    global _tool_registry, _initialized
    _tool_registry = {}
    _initialized = False
