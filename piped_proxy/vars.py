import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "piped-proxy")

# Path prefix this proxy is mounted under, prepended to rewritten manifest URLs
PREFIX_PATH = os.environ.get("PREFIX_PATH", "")
DISABLE_IPV6 = os.environ.get("DISABLE_IPV6", "") == "1"
DISABLE_WEBP = os.environ.get("DISABLE_WEBP", "") == "1"
# Report client input errors with status 200 like older deployments did
LEGACY_ERROR_STATUS = os.environ.get("LEGACY_ERROR_STATUS", "") == "1"

UDS_PATH = os.environ.get("UDS_PATH", os.path.join("socket", "http-proxy.sock"))
HOST = os.environ.get("HOSTNAME", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8080"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

UPSTREAM_CONNECT_TIMEOUT = float(os.getenv("UPSTREAM_CONNECT_TIMEOUT", "30"))
UPSTREAM_READ_TIMEOUT = float(os.getenv("UPSTREAM_READ_TIMEOUT", "20"))
UPSTREAM_WRITE_TIMEOUT = float(os.getenv("UPSTREAM_WRITE_TIMEOUT", "30"))
UPSTREAM_POOL_TIMEOUT = float(os.getenv("UPSTREAM_POOL_TIMEOUT", "10"))
UPSTREAM_KEEPALIVE_EXPIRY = float(os.getenv("UPSTREAM_KEEPALIVE_EXPIRY", "30"))
SERVER_KEEPALIVE_TIMEOUT = int(os.getenv("SERVER_KEEPALIVE_TIMEOUT", "5"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
