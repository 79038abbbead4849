"""Shared test fixtures."""

from __future__ import annotations

import http.client
import io
import json
import urllib.error
import urllib.request
from email.message import Message

import pytest


class FakeResponse(io.BytesIO):
    def __init__(
        self, url: str, status: int, body: bytes, headers: dict[str, str], truncated: bool = False
    ) -> None:
        super().__init__(body)
        self.url = url
        self.status = status
        self.truncated = truncated
        self.headers = Message()
        for key, value in headers.items():
            self.headers[key] = value

    def read(self, size: int | None = -1) -> bytes:
        if self.truncated:
            # The connection closed before Content-Length bytes arrived
            raise http.client.IncompleteRead(super().read(4), len(self.getvalue()) + 100)
        return super().read(size)


class FakeOpener:
    """Stands in for an OpenerDirector, answering from a URL table."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes, dict[str, str], bool]] = {}
        self.requests: list[urllib.request.Request] = []

    def add(
        self,
        url: str,
        body: bytes = b"",
        status: int = 200,
        headers: dict[str, str] | None = None,
        truncated: bool = False,
    ) -> None:
        self.routes[url] = (status, body, headers or {}, truncated)

    def open(self, request: urllib.request.Request | str) -> FakeResponse:
        if isinstance(request, str):
            request = urllib.request.Request(request)
        self.requests.append(request)
        url = request.full_url
        if url not in self.routes:
            raise urllib.error.URLError(f"no route to {url}")

        status, body, headers, truncated = self.routes[url]
        if status >= 400:
            hdrs = Message()
            for key, value in headers.items():
                hdrs[key] = value
            raise urllib.error.HTTPError(url, status, "error", hdrs, io.BytesIO(body))
        return FakeResponse(url, status, body, headers, truncated)


def index_body(*records: dict) -> bytes:
    return "".join(json.dumps(record) + "\n" for record in records).encode("utf-8")


def version_record(name: str, version: str) -> dict:
    return {
        "name": name,
        "vers": version,
        "deps": [],
        "cksum": "0" * 64,
        "features": {},
        "yanked": False,
    }


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()
