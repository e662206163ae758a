# tests/conftest.py
from __future__ import annotations

import threading
from collections.abc import Iterable

import pytest
import requests

from site_crawler.robots import Robots


class FakeResponse:
    """Just enough of requests.Response for the robots.txt download."""

    def __init__(
        self,
        status: int = 200,
        body: bytes = b"",
        *,
        chunk: int = 16,
        fail_after: int | None = None,
        on_chunk=None,
    ):
        self.status_code = status
        self.headers = {"Content-Type": "text/plain"}
        self._body = body
        self._chunk = chunk
        self._fail_after = fail_after
        self._on_chunk = on_chunk
        self.closed = False

    def iter_content(self, chunk_size: int = 1024) -> Iterable[bytes]:
        for n, i in enumerate(range(0, len(self._body), self._chunk)):
            if self._fail_after is not None and n >= self._fail_after:
                raise requests.exceptions.ChunkedEncodingError("connection broken")
            yield self._body[i : i + self._chunk]
            if self._on_chunk is not None:
                self._on_chunk(n)

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Records GETs and answers with a canned response or exception."""

    def __init__(self, response: FakeResponse | None = None, exc: Exception | None = None):
        self.response = response
        self.exc = exc
        self.calls: list[tuple[str, float, bool]] = []

    def get(self, url: str, *, timeout: float, stream: bool = False):
        self.calls.append((url, timeout, stream))
        if self.exc is not None:
            raise self.exc
        return self.response


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def make_robots():
    """
    Factory building an engine from robots.txt text, without network.

    Usage:
        robots = make_robots("User-agent: *\\nDisallow: /admin/\\n", agent="anybot")
    """

    def _factory(body: str, *, agent: str = "TestBot", origin: str = "http://www.example.com") -> Robots:
        return Robots.from_text(origin, agent, body)

    return _factory


@pytest.fixture
def cancel_event():
    return threading.Event()
