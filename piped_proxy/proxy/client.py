from typing import Optional

import httpx

from piped_proxy.config import ProxyConfig

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; rv:78.0) Gecko/20100101"

# Binding the source address to the IPv4 wildcard keeps connections off IPv6
IPV4_LOCAL_ADDRESS = "0.0.0.0"


def create_upstream_client(
    config: ProxyConfig, transport: Optional[httpx.AsyncBaseTransport] = None
) -> httpx.AsyncClient:
    """
    Build the client shared by every request for upstream fetches and
    thumbnail probes. HTTP/2 is negotiated where the CDN offers it.
    """
    if transport is None:
        transport = httpx.AsyncHTTPTransport(
            http2=True,
            limits=httpx.Limits(
                max_connections=None,
                max_keepalive_connections=100,
                keepalive_expiry=config.keepalive_expiry,
            ),
            local_address=IPV4_LOCAL_ADDRESS if config.ipv4_only else None,
        )
    return httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(
            connect=config.connect_timeout,
            read=config.read_timeout,
            write=config.write_timeout,
            pool=config.pool_timeout,
        ),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )
