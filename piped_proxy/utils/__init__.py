from urllib.parse import urlsplit, urlunsplit


def mask_query(url: str) -> str:
    """Drop the query string from a URL so signed parameters stay out of logs."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "<redacted>", ""))
