"""
Hello Tool

Minimal example of the tool contract, with no external effect.
"""

from typing import Any, Dict, List

from ..base import Tool, ToolParameter

MAX_REPEAT = 10


class HelloWorldTool(Tool):
    """Greet someone."""

    @property
    def name(self) -> str:
        return "hello.world"

    @property
    def description(self) -> str:
        return "Return a greeting; a template for writing new tools"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="name",
                type="string",
                description="Who to greet",
                required=False,
                default="World",
                max_length=200,
            ),
            ToolParameter(
                name="greeting",
                type="string",
                description="Greeting word",
                required=False,
                default="Hello",
                max_length=50,
            ),
            ToolParameter(
                name="excited",
                type="boolean",
                description="End with '!' instead of '.'",
                required=False,
                default=False,
            ),
            ToolParameter(
                name="repeat",
                type="integer",
                description="Number of times to repeat the greeting",
                required=False,
                default=1,
                minimum=1,
                maximum=MAX_REPEAT,
            ),
        ]

    @property
    def examples(self) -> List[str]:
        return ['{"name":"Ada"}', '{"name":"AI","greeting":"Hey","excited":true}']

    async def execute(self, name: str = "World", greeting: str = "Hello",
                      excited: bool = False, repeat: int = 1) -> Dict[str, Any]:
        message = f"{greeting}, {name}{'!' if excited else '.'}"
        return {
            "message": message,
            "greeted": name,
            "count": repeat,
            "messages": [message] * repeat,
        }
