"""
Shared fixtures: an in-process transport that counts calls and never
touches the network.
"""

from typing import Callable, Optional

import pytest

from httpdoc import Document, FetchedResponse, PreparedRequest


def html_response(request: PreparedRequest, markup: str, status_code: int = 200,
                  url: Optional[str] = None, headers=()) -> FetchedResponse:
    return FetchedResponse(
        status_code=status_code,
        url=url or request.url,
        headers=(("Content-Type", "text/html; charset=utf-8"),) + tuple(headers),
        content=markup.encode("utf-8"),
    )


class StubTransport:
    """Records every request; the response comes from `handler`."""

    def __init__(self, handler: Optional[Callable] = None, error: Optional[BaseException] = None):
        self.handler = handler or (lambda request, body: html_response(request, "<html></html>"))
        self.error = error
        self.calls = 0
        self.requests: list[PreparedRequest] = []
        self.bodies: list[Optional[bytes]] = []
        self.cookies: dict[str, str] = {}

    def send(self, request: PreparedRequest) -> FetchedResponse:
        self.calls += 1
        self.requests.append(request)
        body = request.content
        if body is not None and not isinstance(body, bytes):
            body = b"".join(body)
        self.bodies.append(body)
        if self.error is not None:
            raise self.error
        return self.handler(request, body)

    def set_cookies(self, url, cookies) -> None:
        self.cookies.update(cookies)

    @property
    def last_request(self) -> PreparedRequest:
        return self.requests[-1]


def page_transport(markup: str, **kwargs) -> StubTransport:
    return StubTransport(lambda request, body: html_response(request, markup, **kwargs))


@pytest.fixture
def transport():
    return StubTransport()


@pytest.fixture
def make_doc():
    """Build a Document over a stub transport serving `markup`."""
    def factory(markup: str = "<html></html>", url: str = "https://example.com/page", **kwargs):
        stub = page_transport(markup, **kwargs)
        return Document(url, transport=stub), stub
    return factory
