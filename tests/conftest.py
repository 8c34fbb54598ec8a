"""Shared fixtures: fake clock, recorded sleeps and a scripted upstream."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from dashboard.core.config import Settings


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


Reply = Any  # httpx.Response | (status, body) | JSON-able body | callable(request) -> Reply


class FakeUpstream:
    """Scripted upstream for ``httpx.MockTransport``.

    Replies are registered per ``(method, path)``; several replies for one
    route are served in order and the last one repeats.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Reply]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *replies: Reply) -> "FakeUpstream":
        self.routes[(method.upper(), path)] = list(replies)
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.routes.get((request.method, request.url.path))
        if not replies:
            return httpx.Response(404, json={"error": f"no route for {request.url.path}"})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        return to_response(reply, request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def to_response(reply: Reply, request: httpx.Request) -> httpx.Response:
    if callable(reply):
        reply = reply(request)
    if isinstance(reply, httpx.Response):
        return reply
    if isinstance(reply, tuple):
        status, body = reply
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)
    return httpx.Response(200, json=reply)


def form_of(request: httpx.Request) -> dict[str, str]:
    from urllib.parse import parse_qsl

    return dict(parse_qsl(request.content.decode()))


def json_of(request: httpx.Request) -> Any:
    return json.loads(request.content.decode()) if request.content else None


def make_settings(**overrides: Any) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings
