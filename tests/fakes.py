"""Test doubles for HTTP sessions and the delegated checker."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import requests

from mdlinkcheck.models import Verdict


class FakeResponse:
    def __init__(self, status_code: int = 200, body: bytes = b"", headers=None, url: str = "") -> None:
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.url = url
        self._body = body
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for index in range(0, len(self._body), chunk_size):
            yield self._body[index : index + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Serves canned responses; a list value is consumed one item per call."""

    def __init__(self, routes: Optional[Dict[str, object]] = None) -> None:
        self.routes = dict(routes or {})
        self.calls: List[tuple] = []

    def _respond(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        route = self.routes.get(url)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, Exception):
            raise route
        if route is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(route, int):
            return FakeResponse(route, url=url)
        route.url = route.url or url
        return route

    def head(self, url: str, **kwargs):
        return self._respond("HEAD", url, **kwargs)

    def get(self, url: str, **kwargs):
        return self._respond("GET", url, **kwargs)


class StaticChecker:
    """Returns prepared verdicts per document text and records every call."""

    def __init__(self, verdicts: Sequence[Verdict] = (), errors: Sequence[str] = ()) -> None:
        self.verdicts = list(verdicts)
        self.errors = set(errors)
        self.calls: List[tuple] = []

    async def check(self, markdown, options):
        self.calls.append((markdown, options))
        for marker in self.errors:
            if marker in markdown:
                raise RuntimeError(f"checker blew up on {marker}")
        return list(self.verdicts)
