"""
Wikipedia Tools

Search Wikipedia through the MediaWiki action API.
"""

import html
import logging
import re
from typing import Any, Dict, List
from urllib.parse import quote

from .. import envelope
from ..base import ToolParameter
from ..errors import ErrorCode, ExecutionError
from ..net import HttpTool, timeout_parameter

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
MAX_LIMIT = 50

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")

# MediaWiki error codes that mean "slow down"
_THROTTLE_CODES = ("ratelimited", "maxlag")


def clean_snippet(snippet: str) -> str:
    """Strip search-match markup and entities from a result snippet."""
    text = html.unescape(_TAG_RE.sub("", snippet or ""))
    return _SPACE_RE.sub(" ", text).strip()


def article_url(api_url: str, lang: str, title: str) -> str:
    base = api_url.format(lang=lang).rsplit("/w/api.php", 1)[0]
    return f"{base}/wiki/{quote(title.replace(' ', '_'), safe='/:()_,-')}"


class WikiSearchTool(HttpTool):
    """Search Wikipedia articles."""

    @property
    def name(self) -> str:
        return "wiki.search"

    @property
    def description(self) -> str:
        return "Search Wikipedia and return matching article titles, snippets and URLs"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="q",
                type="string",
                description="Search term (e.g., 'Linux kernel')",
                required=True,
                max_length=300,
                aliases=["query"],
            ),
            ToolParameter(
                name="lang",
                type="string",
                description="Wikipedia language edition (e.g., 'en', 'fr', 'zh-yue')",
                required=False,
                default="en",
                pattern=r"^[a-z]{2,3}(-[a-z]+)*$",
            ),
            ToolParameter(
                name="limit",
                type="integer",
                description=f"Maximum number of results (values above {MAX_LIMIT} are rejected)",
                required=False,
                default=DEFAULT_LIMIT,
                minimum=1,
                maximum=MAX_LIMIT,
            ),
            timeout_parameter(),
        ]

    @property
    def examples(self) -> List[str]:
        return ['{"q":"Linux"}', '{"q":"Paris","lang":"fr","limit":1}']

    async def execute(self, q: str, lang: str = "en", limit: int = DEFAULT_LIMIT,
                      timeout: float = 10.0) -> Dict[str, Any]:
        api_url = self.settings.wikipedia_url.format(lang=lang)
        params = {
            "action": "query",
            "list": "search",
            "srsearch": q,
            "srlimit": limit,
            "srprop": "snippet",
            "format": "json",
            "formatversion": 2,
            "utf8": 1,
        }

        response = await self.fetch(api_url, params=params, timeout=timeout)

        try:
            payload = envelope.loads(response.text)
        except ValueError:
            raise ExecutionError(
                "Wikipedia returned a non-JSON response",
                tool_name=self.name,
                code=ErrorCode.NETWORK_ERROR,
                details={"reason": "invalid_response", "content_type": response.content_type},
            )

        if not isinstance(payload, dict):
            raise ExecutionError(
                "Wikipedia returned an unexpected response",
                tool_name=self.name,
                code=ErrorCode.NETWORK_ERROR,
                details={"reason": "invalid_response"},
            )

        if "error" in payload:
            self._raise_api_error(payload["error"], response.status)

        query = payload.get("query") or {}
        results = []
        seen = set()

        for hit in query.get("search", []):
            title = hit.get("title")
            if not title:
                continue
            page_id = hit.get("pageid", title)
            if page_id in seen:
                continue
            seen.add(page_id)
            results.append({
                "title": title,
                "id": page_id,
                "snippet": clean_snippet(hit.get("snippet", "")),
                "url": article_url(self.settings.wikipedia_url, lang, title),
            })
            if len(results) >= limit:
                break

        logger.info(f"wiki.search '{q}' ({lang}): {len(results)} results")

        return {
            "query": q,
            "lang": lang,
            "count": len(results),
            "results": results,
        }

    def _raise_api_error(self, error: Any, status: int) -> None:
        error = error if isinstance(error, dict) else {"info": str(error)}
        api_code = error.get("code", "")
        info = error.get("info", "Wikipedia API error")
        code = ErrorCode.RATE_LIMITED if api_code in _THROTTLE_CODES else ErrorCode.HTTP_ERROR
        raise ExecutionError(
            info,
            tool_name=self.name,
            code=code,
            status=status,
            details={"api_code": api_code},
        )
