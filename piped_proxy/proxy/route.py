import logging
from dataclasses import replace
from typing import AsyncIterator, Dict, List, Tuple
from urllib.parse import parse_qsl, urlencode

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from opentelemetry import trace

from piped_proxy.config import ProxyConfig
from piped_proxy.errors import (
    ClientInputError,
    MethodNotAllowedError,
    ProxyError,
    TranscodeError,
    UpstreamError,
    UpstreamTimeoutError,
)
from piped_proxy.proxy.client import USER_AGENT
from piped_proxy.proxy.headers import CORS_HEADERS, copy_headers
from piped_proxy.proxy.hosts import ResolvedTarget, resolve_host, validate_host
from piped_proxy.proxy.images import WEBP_CONTENT_TYPE, should_transcode, transcode_jpeg
from piped_proxy.proxy.manifest import is_manifest, rewrite_manifest
from piped_proxy.proxy.thumbnails import best_thumbnail_path, wants_best_thumbnail
from piped_proxy.utils import mask_query
from piped_proxy.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from piped_proxy.utils.traced_requests import traced_request

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

FORWARDED_METHODS = {"GET", "HEAD"}


def get_config(request: Request) -> ProxyConfig:
    return request.app.state.config


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.upstream_client


def raw_request_path(request: Request) -> str:
    """The path exactly as the client sent it, percent-escapes included."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.url.path


def _first_values(pairs: List[Tuple[str, str]]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for key, value in pairs:
        values.setdefault(key, value)
    return values


def build_target(request: Request) -> ResolvedTarget:
    """
    Resolve and validate the upstream host, then derive the upstream path and
    query. Raises a ``ClientInputError`` before anything touches the network.
    """
    pairs = parse_qsl(request.url.query, keep_blank_values=True)
    path = raw_request_path(request)

    host = validate_host(resolve_host(_first_values(pairs), path))
    if request.method not in FORWARDED_METHODS:
        raise MethodNotAllowedError(request.method)

    path = path.replace("/ggpht", "", 1).replace("/i/", "/", 1)
    forwarded = sorted(
        ((key, value) for key, value in pairs if key != "host"),
        key=lambda item: item[0],
    )
    return ResolvedTarget(host=host, path=path, query=urlencode(forwarded))


def prepare_headers(request: Request) -> Dict[str, str]:
    """Sanitized inbound headers with the proxy's own User-Agent."""
    headers = copy_headers(request.headers)
    headers["User-Agent"] = USER_AGENT
    # Relay upstream bytes untouched so Content-Length stays valid
    headers["Accept-Encoding"] = "identity"
    return headers


def response_headers(response: httpx.Response, preserve_length: bool) -> Dict[str, str]:
    headers = copy_headers(response.headers, preserve_length=preserve_length)
    headers.update(CORS_HEADERS)
    return headers


async def read_body(response: httpx.Response) -> bytes:
    """Buffer the whole upstream body, closing the response either way."""
    try:
        return await response.aread()
    except httpx.HTTPError as e:
        log_exception_with_details(logger, "[Proxy] Reading upstream body failed", e)
        raise UpstreamError(f"Bad gateway: {format_exception_message(e)}") from e
    finally:
        await response.aclose()


async def relay_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Stream the upstream body as received, closing the response at the end."""
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        log_exception_with_details(logger, "[Proxy] Relaying upstream body failed", e)
        raise
    finally:
        await response.aclose()


async def manifest_response(response: httpx.Response, config: ProxyConfig) -> Response:
    body = await read_body(response)
    text = rewrite_manifest(
        body.decode("utf-8", errors="replace"),
        str(response.url),
        config.prefix_path,
    )
    return Response(
        content=text.encode("utf-8"),
        status_code=response.status_code,
        headers=response_headers(response, preserve_length=False),
        media_type=response.headers.get("content-type"),
    )


async def transcoded_response(response: httpx.Response, method: str) -> Response:
    headers = response_headers(response, preserve_length=False)
    headers["Content-Type"] = WEBP_CONTENT_TYPE

    if method == "HEAD":
        await response.aclose()
        # No body to decode; leave the length of the WebP unset
        return StreamingResponse(
            iter(()), status_code=response.status_code, headers=headers
        )

    body = await read_body(response)
    try:
        image = await transcode_jpeg(body)
    except TranscodeError as e:
        log_exception_with_details(logger, "[Proxy] Transcoding failed", e)
        raise
    return Response(content=image, status_code=response.status_code, headers=headers)


class UpstreamStreamingResponse(StreamingResponse):
    """
    Relays an open upstream response and closes it once sending ends.

    ``relay_body`` only closes the upstream response after it has started.
    Sending the response start can fail first (the client went away), so the
    close is repeated here. ``httpx.Response.aclose`` ignores a second call.
    """

    def __init__(self, upstream: httpx.Response, **kwargs):
        super().__init__(relay_body(upstream), **kwargs)
        self.upstream = upstream

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.upstream.aclose()


def passthrough_response(response: httpx.Response) -> StreamingResponse:
    return UpstreamStreamingResponse(
        response,
        status_code=response.status_code,
        headers=response_headers(response, preserve_length=True),
        media_type=response.headers.get("content-type") or None,
    )


async def fetch_upstream(
    client: httpx.AsyncClient, method: str, url: str, headers: Dict[str, str]
) -> httpx.Response:
    """Open the upstream response as a stream. Raises ``UpstreamError`` on failure."""
    try:
        upstream_request = client.build_request(method, url, headers=headers)
    except (httpx.InvalidURL, ValueError) as e:
        log_exception_with_details(logger, "[Proxy] Invalid upstream URL", e)
        raise UpstreamError(f"Invalid upstream URL: {format_exception_message(e)}") from e

    try:
        return await client.send(upstream_request, stream=True)
    except httpx.TimeoutException as e:
        logger.error(f"[Proxy] Upstream timeout for {mask_query(url)}: {e}")
        raise UpstreamTimeoutError("Gateway timeout") from e
    except httpx.HTTPError as e:
        log_exception_with_details(
            logger, f"[Proxy] Upstream request failed for {mask_query(url)}", e
        )
        raise UpstreamError(f"Bad gateway: {format_exception_message(e)}") from e


async def forward_to_upstream(
    request: Request, config: ProxyConfig, client: httpx.AsyncClient
) -> Response:
    """
    Dispatch one inbound request.

    OPTIONS is answered locally. Otherwise the upstream host is resolved and
    checked against the allowlist, the resource is fetched, and the body is
    either rewritten (HLS playlists), transcoded (JPEG to WebP) or streamed
    through unchanged.
    """
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    target = build_target(request)
    headers = prepare_headers(request)

    with traced_request(
        tracer,
        operation="proxy_request",
        host=target.host,
        method=request.method,
        start_message=f"[Proxy] {request.method} {request.url.path} -> {mask_query(target.url)}",
    ) as span:
        try:
            if wants_best_thumbnail(target.path):
                target = replace(
                    target, path=await best_thumbnail_path(client, target.path)
                )
            span.set_attribute("proxy.target_url", mask_query(target.url))

            response = await fetch_upstream(client, request.method, target.url, headers)
            span.set_attribute("proxy.status_code", response.status_code)

            content_type = response.headers.get("content-type", "")
            if request.method == "GET" and is_manifest(content_type):
                span.set_attribute("proxy.branch", "manifest")
                return await manifest_response(response, config)
            if should_transcode(content_type, config.disable_webp):
                span.set_attribute("proxy.branch", "transcode")
                return await transcoded_response(response, request.method)

            span.set_attribute("proxy.branch", "passthrough")
            return passthrough_response(response)
        except ProxyError as e:
            span.set_attribute("proxy.error", e.message)
            raise


async def proxy_error_response(request: Request, exc: ProxyError) -> PlainTextResponse:
    """Report a failed request as plain text, keeping the CORS headers."""
    status_code = exc.status_code
    if isinstance(exc, ClientInputError):
        logger.warning(f"[Proxy] Rejected {request.method} {request.url.path}: {exc.message}")
        if get_config(request).legacy_error_status:
            status_code = 200
    return PlainTextResponse(exc.message, status_code=status_code, headers=CORS_HEADERS)


# Register catch-all route for proxying
@router.api_route(
    "/{path:path}",
    methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "DELETE", "PATCH"],
)
async def proxy_all(request: Request, path: str):
    """Catch-all route that relays every request to the resolved upstream host."""
    return await forward_to_upstream(
        request, get_config(request), get_upstream_client(request)
    )
