from io import BytesIO
from typing import Callable, Dict, List, Optional, Tuple, Union

import httpx
import PIL.Image
from starlette.requests import Request

from piped_proxy.config import ProxyConfig
from piped_proxy.proxy.client import create_upstream_client

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeUpstream:
    """
    Stand-in for the CDN hosts. Answers requests from a table keyed by
    method and URL, and records every request it sees.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.replies: Dict[Tuple[str, str], Reply] = {}

    def add(self, method: str, url: str, reply: Reply) -> None:
        self.replies[(method, url)] = reply

    def urls(self, method: Optional[str] = None) -> List[str]:
        return [str(r.url) for r in self.requests if method is None or r.method == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.get((request.method, str(request.url)))
        if reply is None:
            return httpx.Response(404, text="not found")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    def client(self, config: Optional[ProxyConfig] = None) -> httpx.AsyncClient:
        return create_upstream_client(
            config or ProxyConfig(), transport=httpx.MockTransport(self.handler)
        )


class FailingUpstream(FakeUpstream):
    """Fails the test if anything reaches upstream."""

    def handler(self, request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"Unexpected upstream request: {request.method} {request.url}")


def make_request(
    method: str = "GET",
    path: str = "/",
    query: str = "",
    headers: Optional[Dict[str, str]] = None,
) -> Request:
    """Build a Starlette request the way an ASGI server would hand it over."""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": query.encode("latin-1"),
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in (headers or {}).items()
        ],
    }
    return Request(scope)


def jpeg_bytes(size=(32, 24), color=(200, 30, 30)) -> bytes:
    buffer = BytesIO()
    PIL.Image.new("RGB", size, color).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()
