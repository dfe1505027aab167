"""
HTTP transport - The network capability the scheduler invokes.

Wraps one shared aiohttp ClientSession. Headers, cookies, auth token and
proxy are forwarded opaquely. Failures are raised as NetworkError or
RequestTimeout; the caller decides about retries.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import aiohttp
import structlog
from yarl import URL

from ..errors import NetworkError, RequestTimeout


@dataclass
class HttpResponse:
    """What the core needs from a response"""
    status: int
    body: bytes
    content_type: str = ""
    encoding: str = "utf-8"

    @property
    def length(self) -> int:
        return len(self.body)

    @property
    def text(self) -> str:
        try:
            return self.body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class HttpTransport:
    """
    Async HTTP client used for every probe.

    Example:
        >>> async with HttpTransport(timeout=5) as transport:
        ...     response = await transport.fetch("http://example.com/admin")
    """

    def __init__(
        self,
        timeout: float = 10.0,
        headers: Optional[Sequence[Tuple[str, str]]] = None,
        cookies: Optional[Sequence[Tuple[str, str]]] = None,
        auth_token: Optional[str] = None,
        proxy: Optional[str] = None,
        connection_limit: int = 100,
        verify_ssl: bool = False,
    ):
        """
        Initialize the transport.

        Args:
            timeout: Per-request deadline in seconds
            headers: Extra request headers as (key, value) pairs
            cookies: Cookies as (key, value) pairs, sent as one Cookie header
            auth_token: Bearer token for the Authorization header
            proxy: HTTP(S) proxy URL
            connection_limit: Connector pool size
            verify_ssl: Verify TLS certificates
        """
        self.timeout = timeout
        self.proxy = proxy
        self.connection_limit = connection_limit
        self.verify_ssl = verify_ssl
        self.headers = self._build_headers(headers or [], cookies or [], auth_token)

        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = structlog.get_logger(__name__)

    @staticmethod
    def _build_headers(
        headers: Sequence[Tuple[str, str]],
        cookies: Sequence[Tuple[str, str]],
        auth_token: Optional[str],
    ) -> Dict[str, str]:
        result: Dict[str, str] = {"User-Agent": "PathFuzz/1.0"}
        for key, value in headers:
            result[key] = value
        if cookies:
            result["Cookie"] = "; ".join(f"{k}={v}" for k, v in cookies)
        if auth_token:
            result["Authorization"] = f"Bearer {auth_token}"
        return result

    async def __aenter__(self) -> "HttpTransport":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def open(self):
        if self.session is not None and not self.session.closed:
            return
        connector = aiohttp.TCPConnector(
            limit=self.connection_limit,
            ssl=None if self.verify_ssl else False,
        )
        self.session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers=self.headers,
            cookie_jar=aiohttp.DummyCookieJar(),
        )
        self.logger.debug(
            "transport_opened",
            timeout=self.timeout,
            proxy=self.proxy,
            headers=sorted(self.headers),
        )

    async def close(self):
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def fetch(self, url: str) -> HttpResponse:
        """
        Issue one GET request without following redirects.

        Args:
            url: Absolute URL, sent without re-encoding when possible

        Returns:
            HttpResponse with status and body

        Raises:
            RequestTimeout: If the deadline expires
            NetworkError: On connection, DNS or protocol failure (not
                transient for an invalid URL)
        """
        if self.session is None:
            raise RuntimeError("Transport not opened. Use 'async with' or call open() first.")

        try:
            async with self.session.get(
                self._request_url(url),
                allow_redirects=False,
                proxy=self.proxy,
            ) as resp:
                body = await resp.read()
                return HttpResponse(
                    status=resp.status,
                    body=body,
                    content_type=resp.headers.get("Content-Type", ""),
                    encoding=resp.charset or "utf-8",
                )
        except asyncio.TimeoutError as e:
            raise RequestTimeout(f"timed out after {self.timeout}s", url=url) from e
        except (aiohttp.InvalidURL, ValueError) as e:
            raise NetworkError(f"invalid URL: {e}", url=url, transient=False) from e
        except (aiohttp.ClientError, OSError) as e:
            raise NetworkError(str(e) or type(e).__name__, url=url) from e

    @staticmethod
    def _request_url(url: str) -> URL:
        # Keep percent-encoded bypass tokens as they are
        if any(ch.isspace() for ch in url):
            return URL(url)
        try:
            return URL(url, encoded=True)
        except ValueError:
            return URL(url)

    def __repr__(self) -> str:
        return f"HttpTransport(timeout={self.timeout}, proxy={self.proxy})"

