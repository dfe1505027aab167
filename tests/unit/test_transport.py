"""
Unit tests for HttpTransport error classification.

Run with: pytest tests/unit/test_transport.py -v
"""

import aiohttp
import pytest

from pathfuzz.core.transport import HttpTransport
from pathfuzz.errors import NetworkError


class RaisingSession:
    """Session stand-in whose get() fails before any I/O"""

    def __init__(self, error: Exception):
        self.error = error
        self.closed = False

    def get(self, url, **kwargs):
        raise self.error


class TestHttpTransport:
    """Test suite for HttpTransport failure mapping"""

    @pytest.mark.asyncio
    async def test_invalid_url_is_not_transient(self):
        transport = HttpTransport()
        transport.session = RaisingSession(aiohttp.InvalidURL("http://[broken/"))

        with pytest.raises(NetworkError) as exc_info:
            await transport.fetch("http://[broken/")

        assert exc_info.value.transient is False
        assert exc_info.value.url == "http://[broken/"

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        transport = HttpTransport()
        transport.session = RaisingSession(aiohttp.ClientConnectionError("connection reset"))

        with pytest.raises(NetworkError) as exc_info:
            await transport.fetch("http://x/admin")

        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_fetch_requires_open_session(self):
        with pytest.raises(RuntimeError):
            await HttpTransport().fetch("http://x/")
