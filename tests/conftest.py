"""Shared fixtures: dummy HTTP sessions so no test touches the network."""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional, Union

import pytest

from dailybing.config import Config


class DummyResponse:
    def __init__(
        self,
        status_code: int = 200,
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        fail_after: Optional[int] = None,
        exc: Optional[Exception] = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.headers: Dict[str, str] = headers or {}
        self.fail_after = fail_after
        self.exc = exc
        self.closed = False

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def iter_content(self, chunk_size: int = 1):
        sent = 0
        for i in range(0, len(self.body), chunk_size):
            if self.fail_after is not None and sent >= self.fail_after:
                raise self.exc
            chunk = self.body[i:i + chunk_size]
            sent += len(chunk)
            yield chunk

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "DummyResponse":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


Reply = Union[DummyResponse, Exception, Callable[[str, dict], DummyResponse]]


class DummySession:
    """Replays queued replies per URL and records every request."""

    def __init__(self, routes: Optional[Dict[str, List[Reply]]] = None) -> None:
        self.routes: Dict[str, List[Reply]] = routes or {}
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def add(self, url: str, *replies: Reply) -> None:
        self.routes.setdefault(url, []).extend(replies)

    def requests_for(self, url: str) -> List[dict]:
        return [headers for u, headers in self.calls if u == url]

    def get(self, url, headers=None, stream=False, timeout=None):
        with self._lock:
            self.calls.append((url, dict(headers or {})))
            queue = self.routes.get(url)
            if not queue:
                return DummyResponse(404)
            reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(url, dict(headers or {}))
        return reply


def page(body: str) -> DummyResponse:
    return DummyResponse(200, f"<html><body>{body}</body></html>".encode("utf-8"))


@pytest.fixture
def session() -> DummySession:
    return DummySession()


@pytest.fixture
def cfg(tmp_path) -> Config:
    return Config(output_folder=str(tmp_path), start_date="20260101", timeout_sec=5)
