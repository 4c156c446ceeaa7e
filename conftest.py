"""Shared pytest fixtures: a fake website served through httpx.MockTransport."""

from typing import Callable, Dict, List, Union

import httpx
import pytest

from fetcher import Fetcher

Route = Union[str, int, dict, list, Callable[[httpx.Request], httpx.Response]]


class FakeSite:
    """
    Maps absolute URLs to canned responses.

    Route values: str -> 200 HTML, dict/list -> 200 JSON, int -> that status
    with an empty body, callable -> called with the request (may raise).
    Unknown URLs answer 404.
    """

    def __init__(self, routes: Dict[str, Route]):
        self.routes = routes
        self.requests: List[str] = []
        client = httpx.Client(transport=httpx.MockTransport(self._handle), follow_redirects=True)
        self.fetcher = Fetcher(client=client, sleep=lambda _: None)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="Not found")
        if callable(route):
            return route(request)
        if isinstance(route, int):
            return httpx.Response(route, text="")
        if isinstance(route, (dict, list)):
            return httpx.Response(200, json=route)
        return httpx.Response(200, text=route, headers={"content-type": "text/html; charset=utf-8"})

    def close(self) -> None:
        self.fetcher.close()


@pytest.fixture
def fake_site():
    sites: List[FakeSite] = []

    def factory(routes: Dict[str, Route]) -> FakeSite:
        site = FakeSite(routes)
        sites.append(site)
        return site

    yield factory
    for site in sites:
        site.close()
