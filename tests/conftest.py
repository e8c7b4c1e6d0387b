from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from corsproxy.config import Settings
from corsproxy.main import create_app

TTL = 300.0


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """httpx.MockTransport handler with a reply the test can change."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.body = b'{"schedule": []}'
        self.error: Exception | None = None

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, content=self.body)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def proxy_settings(monkeypatch):
    monkeypatch.setattr(Settings, "CACHE_TTL", TTL)
    monkeypatch.setattr(Settings, "WARM_ON_START", False)
    monkeypatch.setattr(Settings, "USER_AGENT", "eo-local-test-proxy")
    monkeypatch.setattr(Settings, "UPSTREAM_URL", "https://upstream.test/schedule/conference.json")
    return Settings


@pytest.fixture
def client(proxy_settings, fake_upstream, clock):
    app = create_app(transport=httpx.MockTransport(fake_upstream), clock=clock)
    with TestClient(app) as c:
        yield c
