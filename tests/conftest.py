"""
Shared fixtures for the PathFuzz test-suite.
"""

import asyncio
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest
import structlog

from pathfuzz.core.transport import HttpResponse
from pathfuzz.errors import NetworkError, RequestTimeout

Route = Tuple[int, Union[str, bytes], str]


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line("markers", "integration: end-to-end tests against a local aiohttp server")


class FakeTransport:
    """
    In-memory transport for scheduler and engine tests.

    Unknown URLs answer 404. ``failures`` maps a URL to the number of
    times it fails before answering (or ``None`` to fail forever).
    """

    def __init__(
        self,
        routes: Optional[Dict[str, Route]] = None,
        latency: float = 0.0,
        failures: Optional[Dict[str, Optional[int]]] = None,
        failure: Callable[[str], Exception] = lambda url: NetworkError("connection refused", url),
        hang: Optional[set] = None,
    ):
        self.routes = dict(routes or {})
        self.latency = latency
        self.failures = dict(failures or {})
        self.failure = failure
        self.hang = set(hang or ())

        self.calls: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def fetch(self, url: str) -> HttpResponse:
        self.calls.append(url)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if url in self.hang:
                await asyncio.sleep(3600)
            if self.latency:
                await asyncio.sleep(self.latency)

            if url in self.failures:
                remaining = self.failures[url]
                if remaining is None:
                    raise self.failure(url)
                if remaining > 0:
                    self.failures[url] = remaining - 1
                    raise self.failure(url)

            status, body, content_type = self.routes.get(url, (404, "not found", "text/plain"))
            if isinstance(body, str):
                body = body.encode("utf-8")
            return HttpResponse(status=status, body=body, content_type=content_type)
        finally:
            self.in_flight -= 1

    def count(self, url: str) -> int:
        return self.calls.count(url)


@pytest.fixture(autouse=True)
def reset_structlog():
    """The CLI binds log output to its own stderr; undo that after each test"""
    yield
    structlog.reset_defaults()


@pytest.fixture()
def fake_transport() -> Callable[..., FakeTransport]:
    """Factory for FakeTransport instances"""
    return FakeTransport


@pytest.fixture()
def timeout_error() -> Callable[[str], Exception]:
    return lambda url: RequestTimeout("timed out", url)


@pytest.fixture()
def wordlist_file(tmp_path) -> Callable[..., Path]:
    """Write words (one per line) to a temporary file and return its path"""

    def _write(words, name: str = "words.txt") -> Path:
        path = tmp_path / name
        path.write_text("\n".join(words) + "\n", encoding="utf-8")
        return path

    return _write
