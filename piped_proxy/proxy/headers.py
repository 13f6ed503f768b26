from typing import Dict, Iterable, Mapping, Tuple, Union

# Never forwarded in either direction
STRIP_HEADERS = {
    "Accept-Encoding",
    "Authorization",
    "Origin",
    "Referer",
    "Cookie",
    "Set-Cookie",
    "Etag",
}

# Hop-by-hop headers that should NOT be forwarded (RFC 2616), plus the inbound Host
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "1728000",
}

HeaderSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def canonical_header_name(name: str) -> str:
    """Canonical MIME form of a header name, e.g. ``content-length`` -> ``Content-Length``."""
    return "-".join(part.capitalize() for part in name.split("-"))


def _items(source: HeaderSource) -> Iterable[Tuple[str, str]]:
    # multi_items() keeps repeated headers on httpx/starlette header objects
    if hasattr(source, "multi_items"):
        return source.multi_items()
    if hasattr(source, "items"):
        return source.items()
    return source


def copy_headers(source: HeaderSource, preserve_length: bool = False) -> Dict[str, str]:
    """
    Copy headers between an inbound request, upstream request or upstream response.

    Strip-listed names, ``Access-Control-*`` names and hop-by-hop headers are
    dropped, as is ``Content-Length`` unless ``preserve_length`` is set. Any
    value containing ``jpeg`` is dropped whatever the header name, so a stale
    JPEG content type never outlives a transcoded body. The last value wins
    when a name repeats.
    """
    headers: Dict[str, str] = {}
    for name, value in _items(source):
        canonical = canonical_header_name(name)
        if canonical in STRIP_HEADERS or name.lower() in HOP_BY_HOP_HEADERS:
            continue
        if canonical == "Content-Length" and not preserve_length:
            continue
        if canonical.startswith("Access-Control"):
            continue
        if "jpeg" in value:
            continue
        headers[canonical] = value
    return headers
