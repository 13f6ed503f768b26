from dataclasses import dataclass

from piped_proxy import vars


@dataclass(frozen=True)
class ProxyConfig:
    """Settings established once at startup and shared read-only by all requests."""

    prefix_path: str = ""
    ipv4_only: bool = False
    disable_webp: bool = False
    legacy_error_status: bool = False
    connect_timeout: float = 30.0
    read_timeout: float = 20.0
    write_timeout: float = 30.0
    pool_timeout: float = 10.0
    keepalive_expiry: float = 30.0


def load_config() -> ProxyConfig:
    """Build the configuration from the environment values in ``piped_proxy.vars``."""
    return ProxyConfig(
        prefix_path=vars.PREFIX_PATH,
        ipv4_only=vars.DISABLE_IPV6,
        disable_webp=vars.DISABLE_WEBP,
        legacy_error_status=vars.LEGACY_ERROR_STATUS,
        connect_timeout=vars.UPSTREAM_CONNECT_TIMEOUT,
        read_timeout=vars.UPSTREAM_READ_TIMEOUT,
        write_timeout=vars.UPSTREAM_WRITE_TIMEOUT,
        pool_timeout=vars.UPSTREAM_POOL_TIMEOUT,
        keepalive_expiry=vars.UPSTREAM_KEEPALIVE_EXPIRY,
    )
