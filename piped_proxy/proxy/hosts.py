import re
from dataclasses import dataclass
from typing import Mapping

from piped_proxy.errors import DisallowedHostError, InvalidHostError, NoHostError


ALLOWED_DOMAINS = frozenset(
    {
        "youtube.com",
        "googlevideo.com",
        "ytimg.com",
        "ggpht.com",
        "googleusercontent.com",
        "lbryplayer.xyz",
        "odycdn.com",
    }
)

THUMBNAIL_HOST = "i.ytimg.com"
AVATAR_HOST = "yt3.ggpht.com"

_THUMBNAIL_PREFIXES = ("/vi/", "/vi_webp/", "/sb/")
_AVATAR_PREFIXES = ("/ggpht/", "/a/", "/ytc/")
_HOST_MARKER = "/host/"

HOSTNAME_RE = re.compile(r"[A-Za-z0-9.-]+")


@dataclass(frozen=True)
class ResolvedTarget:
    host: str
    path: str
    query: str

    @property
    def url(self) -> str:
        url = f"https://{self.host}{self.path}"
        return f"{url}?{self.query}" if self.query else url


def host_from_path(path: str) -> str:
    """Infer the upstream host from YouTube path conventions, or ``""``."""
    host = ""
    if path.startswith(_THUMBNAIL_PREFIXES):
        host = THUMBNAIL_HOST
    if path.startswith(_AVATAR_PREFIXES):
        host = AVATAR_HOST
    # An embedded /host/<h>/ segment overrides the prefix conventions
    if _HOST_MARKER in path:
        rest = path[path.index(_HOST_MARKER) + len(_HOST_MARKER):]
        host = rest.split("/", 1)[0]
    return host


def resolve_host(query: Mapping[str, str], path: str) -> str:
    """
    Work out which upstream host a request is meant for.

    The explicit ``host`` parameter wins, then ``hls_chunk_host``, then
    whatever the path implies. Returns ``""`` when nothing matches.
    """
    return query.get("host") or query.get("hls_chunk_host") or host_from_path(path)


def registrable_domain(host: str) -> str:
    """Last two dot-separated labels, lower-cased; ``""`` for single-label hosts."""
    parts = host.lower().split(".")
    if len(parts) < 2:
        return ""
    return f"{parts[-2]}.{parts[-1]}"


def is_allowed_host(host: str) -> bool:
    return registrable_domain(host) in ALLOWED_DOMAINS


def validate_host(host: str) -> str:
    """Raise the matching client error unless ``host`` may be contacted."""
    if not host:
        raise NoHostError()
    # Pasted into the upstream URL as-is, so nothing but a bare DNS name
    if not HOSTNAME_RE.fullmatch(host):
        raise InvalidHostError(host)
    domain = registrable_domain(host)
    if not domain:
        raise InvalidHostError(host)
    if domain not in ALLOWED_DOMAINS:
        raise DisallowedHostError(host)
    return host
