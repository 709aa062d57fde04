"""
Web Tools

Fetch a URL over HTTP(S) and return its body as text.
"""

from typing import Any, Dict, List

from ..base import ToolParameter
from ..errors import ErrorCode, ValidationError
from ..net import HttpTool, is_http_url, timeout_parameter

DEFAULT_MAX_BYTES = 1_000_000
MAX_BYTES_CEILING = 10_000_000


class WebFetchTool(HttpTool):
    """Fetch content from a specific URL."""

    @property
    def name(self) -> str:
        return "web.fetch"

    @property
    def description(self) -> str:
        return "Fetch a URL with a single GET request and return the status and body"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="url",
                type="string",
                description="Absolute http:// or https:// URL to fetch",
                required=True,
                max_length=8192,
            ),
            timeout_parameter(),
            ToolParameter(
                name="max_bytes",
                type="integer",
                description="Maximum number of body bytes to return; longer bodies are truncated",
                required=False,
                default=DEFAULT_MAX_BYTES,
                minimum=1,
                maximum=MAX_BYTES_CEILING,
            ),
        ]

    @property
    def examples(self) -> List[str]:
        return ['{"url":"https://example.com"}', '{"url":"https://example.com","timeout":5}']

    def validate(self, arguments: Any) -> Dict[str, Any]:
        validated = super().validate(arguments)
        if not is_http_url(validated["url"]):
            raise ValidationError(
                "Field 'url' must be an absolute http or https URL",
                tool_name=self.name,
                code=ErrorCode.INVALID_VALUE,
                details={"field": "url"},
            )
        return validated

    async def execute(self, url: str, timeout: float = 10.0,
                      max_bytes: int = DEFAULT_MAX_BYTES) -> Dict[str, Any]:
        response = await self.fetch(url, timeout=timeout, max_bytes=max_bytes)

        return {
            "url": url,
            "final_url": response.url,
            "status": response.status,
            "content_type": response.content_type,
            "content": response.text,
            "bytes": len(response.content),
            "truncated": response.truncated,
        }
