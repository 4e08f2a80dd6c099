"""Shared test fixtures for transparent_cache.

Provides an isolated cache configuration under ``tmp_path``, a controllable
clock, and a scripted origin server usable as an :class:`httpx.MockTransport`
handler.  These fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import httpx
import pytest

from transparent_cache.cache.store import EntryStore
from transparent_cache.models import CacheConfig
from transparent_cache.output import OutputManager, reset_output, set_output

START_TIME = 1_700_000_000.0


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_output() -> None:
    """Install a plain, quiet OutputManager and reset it after every test.

    Warnings and errors are still written to stderr, so tests can assert on
    them with ``capsys``.
    """
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable wall clock that only moves when told to."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Origin server
# ---------------------------------------------------------------------------


class Origin:
    """Scripted origin server for :class:`httpx.MockTransport`.

    Responses are queued with :meth:`reply` and served in order; the last
    one is repeated once the queue runs dry.  Every request is recorded.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._replies: list[tuple[int, bytes, dict[str, str]]] = []

    def reply(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: Optional[dict[str, str]] = None,
    ) -> "Origin":
        self._replies.append((status_code, content, dict(headers or {})))
        return self

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self._replies) > 1:
            status_code, content, headers = self._replies.pop(0)
        else:
            status_code, content, headers = self._replies[0]
        return httpx.Response(status_code, headers=headers, content=content)


@pytest.fixture
def origin() -> Origin:
    return Origin()


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def config(cache_dir: Path) -> CacheConfig:
    """Default configuration: always revalidate, 192 hour eviction."""
    return CacheConfig(base_path=cache_dir)


@pytest.fixture
def store(config: CacheConfig) -> EntryStore:
    return EntryStore(config.base_path)
