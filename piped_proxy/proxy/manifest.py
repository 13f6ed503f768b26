"""
HLS playlist rewriting.

Every URL in a playlist is turned into a path on this proxy that carries the
original host in a ``host`` query parameter, so players fetch segments, keys
and variant playlists back through the proxy.
"""

import re
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

MANIFEST_CONTENT_TYPES = {
    "application/x-mpegurl",
    "application/vnd.apple.mpegurl",
}

# Relative references with these path suffixes are resolved against the playlist URL
REFERENCE_SUFFIXES = (".m3u8", ".ts")

URI_ATTRIBUTE_RE = re.compile(r'URI="([^"]+)"')


class LineKind(Enum):
    REFERENCE = "reference"
    ATTRIBUTE = "attribute"
    OTHER = "other"


def is_manifest(content_type: str) -> bool:
    return content_type in MANIFEST_CONTENT_TYPES


def classify_line(line: str) -> LineKind:
    """
    Classify a playlist line.

    Non-blank lines that are not tags are URI references. Tag lines are only
    interesting when they carry a quoted ``URI`` attribute (keys, media
    renditions, i-frame streams, maps). Everything else, including tag values
    that happen to end in ``.ts``, is left alone.
    """
    stripped = line.strip()
    if not stripped:
        return LineKind.OTHER
    if stripped.startswith("#"):
        if URI_ATTRIBUTE_RE.search(stripped):
            return LineKind.ATTRIBUTE
        return LineKind.OTHER
    return LineKind.REFERENCE


def manifest_base_url(url: str) -> str:
    """``https://`` + host + directory of the URL that produced the playlist."""
    parts = urlsplit(url)
    directory = parts.path[: parts.path.rfind("/") + 1] or "/"
    return f"https://{parts.netloc}{directory}"


def _is_routed(url: str) -> bool:
    parts = urlsplit(url)
    if parts.scheme or parts.netloc:
        return False
    return any(key == "host" for key, _ in parse_qsl(parts.query, keep_blank_values=True))


def rewrite_relative_url(url: str, prefix: str = "") -> str:
    """
    Turn an absolute URL into a proxy-relative one.

    ``https://i.ytimg.com/vi/ID/mqdefault.jpg?x=1`` with prefix ``/p`` becomes
    ``/p/vi/ID/mqdefault.jpg?host=i.ytimg.com&x=1``. Query keys are sorted.
    A URL without scheme and host is already proxy-relative and is returned
    unchanged, so rewriting twice never stacks ``host`` parameters.
    """
    parts = urlsplit(url)
    if not parts.scheme and not parts.netloc:
        return url

    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key != "host"
    ]
    query.append(("host", parts.hostname or ""))
    query.sort(key=lambda item: item[0])

    path = prefix + (parts.path or "/")
    return urlunsplit(("", "", path, urlencode(query), ""))


def _rewrite_reference(line: str, base_url: str, prefix: str) -> str:
    if not line.startswith("https://"):
        if _is_routed(line):
            return line
        if not urlsplit(line).path.endswith(REFERENCE_SUFFIXES):
            return line
        line = urljoin(base_url, line)
    if line.startswith(("https://", "http://")):
        return rewrite_relative_url(line, prefix)
    return line


def _rewrite_attribute_uri(uri: str, base_url: str, prefix: str) -> str:
    if _is_routed(uri):
        return uri
    scheme = urlsplit(uri).scheme
    if not scheme:
        uri = urljoin(base_url, uri)
    elif scheme not in ("http", "https"):
        # skd://, data: and similar are not fetched through the proxy
        return uri
    return rewrite_relative_url(uri, prefix)


def rewrite_line(line: str, base_url: str, prefix: str = "") -> str:
    kind = classify_line(line)
    if kind is LineKind.OTHER:
        return line

    # Keep CRLF playlists intact
    ending = "\r" if line.endswith("\r") else ""
    content = line[: len(line) - len(ending)]

    if kind is LineKind.REFERENCE:
        return _rewrite_reference(content, base_url, prefix) + ending

    rewritten = URI_ATTRIBUTE_RE.sub(
        lambda m: f'URI="{_rewrite_attribute_uri(m.group(1), base_url, prefix)}"',
        content,
    )
    return rewritten + ending


def rewrite_manifest(text: str, request_url: str, prefix: str = "") -> str:
    """
    Rewrite a whole playlist body.

    Args:
        text: The playlist as fetched from upstream
        request_url: Final URL the playlist was fetched from
        prefix: Path prefix the proxy is mounted under

    Returns:
        The playlist with every segment, variant and attribute URI routed
        through the proxy
    """
    base_url = manifest_base_url(request_url)
    return "\n".join(rewrite_line(line, base_url, prefix) for line in text.split("\n"))
