"""
HTTP Effect

One bounded GET per invocation via httpx, with failures mapped onto the
network part of the error taxonomy.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from .base import Tool, ToolParameter
from .config import DEFAULT_TIMEOUT, MAX_TIMEOUT, Settings
from .errors import DependencyMissingError, ErrorCode, ExecutionError

# Try to import httpx
try:
    import httpx
    HAS_HTTPX = True
except ImportError:
    HAS_HTTPX = False

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Status, headers and (possibly truncated) body of one GET."""
    url: str
    status: int
    headers: Dict[str, str]
    content: bytes
    truncated: bool
    encoding: str

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def text(self) -> str:
        try:
            return self.content.decode(self.encoding, errors="replace")
        except LookupError:
            # Unknown charset label in Content-Type
            return self.content.decode("utf-8", errors="replace")


def timeout_parameter() -> ToolParameter:
    return ToolParameter(
        name="timeout",
        type="number",
        description=f"Request timeout in seconds (max {MAX_TIMEOUT:g})",
        required=False,
        default=DEFAULT_TIMEOUT,
        exclusive_minimum=0,
        maximum=MAX_TIMEOUT,
    )


def is_http_url(url: str) -> bool:
    """Syntax-only check: absolute http(s) URL with a host. Never resolves it."""
    # urlsplit silently drops tab, CR and LF, so check the raw text first
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7f for ch in url):
        return False
    try:
        parts = urlsplit(url)
        return parts.scheme in ("http", "https") and bool(parts.hostname)
    except ValueError:
        return False


def _check_status(tool_name: str, url: str, status: int, headers: Dict[str, str],
                  reason: str = "") -> None:
    if 200 <= status < 300:
        return

    retry_after = headers.get("retry-after")
    if status == 429 or (status == 503 and retry_after):
        details: Dict[str, Any] = {"url": url}
        if retry_after:
            details["retry_after"] = retry_after
        raise ExecutionError(
            "Rate limited by upstream",
            tool_name=tool_name,
            code=ErrorCode.RATE_LIMITED,
            status=status,
            details=details,
        )

    raise ExecutionError(
        f"HTTP {status} {reason}".strip(),
        tool_name=tool_name,
        code=ErrorCode.HTTP_ERROR,
        status=status,
        details={"url": url},
    )


class HttpTool(Tool):
    """Base for tools whose single effect is an outbound HTTP GET."""

    def __init__(self, settings: Optional[Settings] = None, transport: Any = None):
        super().__init__(settings)
        # Tests inject httpx.MockTransport here
        self.transport = transport

    def missing_dependencies(self) -> List[str]:
        return [] if HAS_HTTPX else ["httpx"]

    async def fetch(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_bytes: Optional[int] = None,
    ) -> FetchResult:
        """
        Issue one GET, following redirects, bounded by `timeout` overall.

        Raises:
            ExecutionError: network_error, http_error, rate_limited, or
                invalid_value for a URL httpx refuses to parse.
        """
        if not HAS_HTTPX:
            raise DependencyMissingError("httpx", tool_name=self.name)

        try:
            return await asyncio.wait_for(
                self._get(url, params=params, timeout=timeout, max_bytes=max_bytes),
                timeout=timeout,
            )
        except httpx.InvalidURL as e:
            raise ExecutionError(
                f"Invalid URL: {e}",
                tool_name=self.name,
                code=ErrorCode.INVALID_VALUE,
                details={"field": "url", "url": url},
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ExecutionError(
                f"Request timed out after {timeout:g}s",
                tool_name=self.name,
                code=ErrorCode.NETWORK_ERROR,
                details={"reason": "timeout", "url": url},
            )
        except httpx.HTTPError as e:
            raise ExecutionError(
                f"Could not reach {urlsplit(url).hostname}: {e}",
                tool_name=self.name,
                code=ErrorCode.NETWORK_ERROR,
                details={"reason": type(e).__name__, "url": url},
            )

    async def _get(self, url: str, params: Optional[Dict[str, Any]], timeout: float,
                   max_bytes: Optional[int]) -> FetchResult:
        headers = {"User-Agent": self.settings.user_agent}

        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers=headers,
            transport=self.transport,
        ) as client:
            logger.info(f"GET {url}")
            async with client.stream("GET", url, params=params) as response:
                final_url = str(response.url)
                logger.debug(f"{response.status_code} from {final_url}")
                response_headers = {k.lower(): v for k, v in response.headers.items()}
                _check_status(self.name, final_url, response.status_code,
                              response_headers, response.reason_phrase)

                chunks = []
                size = 0
                truncated = False
                async for chunk in response.aiter_bytes():
                    if max_bytes is not None and size + len(chunk) > max_bytes:
                        chunks.append(chunk[:max_bytes - size])
                        truncated = True
                        break
                    chunks.append(chunk)
                    size += len(chunk)

                return FetchResult(
                    url=final_url,
                    status=response.status_code,
                    headers=response_headers,
                    content=b"".join(chunks),
                    truncated=truncated,
                    encoding=response.charset_encoding or "utf-8",
                )
