import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from piped_proxy.config import ProxyConfig, load_config
from piped_proxy.errors import ProxyError
from piped_proxy.proxy.client import create_upstream_client
from piped_proxy.proxy.route import proxy_error_response, router
from piped_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streaming responses.
    A single relayed video segment would otherwise produce one span per chunk.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing(app: FastAPI) -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    tracer_provider = trace.get_tracer_provider()
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
        )
        tracer_provider.add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )

    FastAPIInstrumentor.instrument_app(app)


def create_app(
    config: Optional[ProxyConfig] = None,
    upstream_client: Optional[httpx.AsyncClient] = None,
    metrics: bool = False,
) -> FastAPI:
    """
    Build the proxy application.

    Args:
        config: Settings to serve with; read from the environment when omitted
        upstream_client: Client for upstream fetches; one is created for the
            application's lifetime when omitted
        metrics: Expose Prometheus metrics on ``/metrics``

    Returns:
        The FastAPI application
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = upstream_client or create_upstream_client(config)
        app.state.upstream_client = client
        logger.info(
            f"[Proxy] Serving with prefix '{config.prefix_path}', "
            f"ipv4_only={config.ipv4_only}, disable_webp={config.disable_webp}"
        )
        try:
            yield
        finally:
            if upstream_client is None:
                await client.aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.config = config
    app.add_exception_handler(ProxyError, proxy_error_response)

    # /metrics has to be registered ahead of the catch-all proxy route
    if metrics:
        Instrumentator().instrument(app).expose(app)

    app.include_router(router)
    return app


app = create_app(metrics=True)
configure_tracing(app)

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})
