"""Pytest session bootstrap.

Puts the repository root on `sys.path` so tests import `services.*` the way
main.py does, and provides an in-memory web for httpx.
"""

import json
import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeWeb:
    """URL → response table served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.routes = {}
        self.requests = []

    def add(self, url: str, body=b"", status: int = 200) -> None:
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[url] = (status, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status, body = self.routes.get(url, (404, b"not found"))
        return httpx.Response(status, content=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def count(self, url: str) -> int:
        return self.requests.count(url)


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb()
