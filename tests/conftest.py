"""
tests/conftest.py -- Shared fakes for shadowc tests.

FakeSession stands in for requests.Session: it answers request() from a
scripted table keyed by (method, url) and records every call, so tests can
assert on exactly which hosts were contacted and how often. No test touches
the network.
"""

from __future__ import annotations

from typing import Optional, Union

import pytest

from core.config import get_settings


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text
        self.encoding: Optional[str] = None


Outcome = Union[FakeResponse, Exception]


class FakeSession:
    """Scripted replacement for requests.Session.

    routes maps (method, url) to a single outcome (returned on every call) or
    a list of outcomes (consumed one per call). Unknown routes answer 404.
    """

    def __init__(self, routes: Optional[dict[tuple[str, str], Union[Outcome, list[Outcome]]]] = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, str, Optional[dict]]] = []

    def request(self, method: str, url: str, data: Optional[dict] = None, timeout: Optional[float] = None):
        self.calls.append((method, url, data))
        outcome = self.routes.get((method, url), FakeResponse(404))
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def urls(self, method: str = "GET") -> list[str]:
        return [url for m, url, _ in self.calls if m == method]


def ok(text: str) -> FakeResponse:
    return FakeResponse(200, text)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Run every test with no SHADOWC_* environment and no stray .env file."""
    for name in ("SERVERS", "POOL", "CERT_PATH", "SHADOW_PATH", "PASSWD_PATH", "LOG_LEVEL", "REQUEST_TIMEOUT"):
        monkeypatch.delenv(f"SHADOWC_{name}", raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
