from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

DEFAULT_SERVICE_NAME = "ods-order-service"

_PROVIDER: TracerProvider | None = None
logger = logging.getLogger(__name__)


def service_name() -> str:
    return os.getenv("OTEL_SERVICE_NAME") or DEFAULT_SERVICE_NAME


def _span_exporter(endpoint: str) -> OTLPSpanExporter:
    return OTLPSpanExporter(endpoint=endpoint, insecure=endpoint.startswith("http://"))


def configure_tracing() -> TracerProvider:
    """Install the tracer provider once per process. Used by both the API and the worker."""
    global _PROVIDER
    if _PROVIDER is not None:
        return _PROVIDER

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name()}))
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip()
    if endpoint:
        try:
            provider.add_span_processor(BatchSpanProcessor(_span_exporter(endpoint)))
        except Exception:
            logger.exception("otel_exporter_setup_failed", extra={"reason": endpoint})
    else:
        logger.info("otel_exporter_disabled")

    trace.set_tracer_provider(provider)
    set_global_textmap(TraceContextTextMapPropagator())
    _PROVIDER = provider
    return provider


def configure_otel(app: FastAPI) -> None:
    FastAPIInstrumentor.instrument_app(app, tracer_provider=configure_tracing())


def current_span_ids() -> tuple[str | None, str | None]:
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None, None
    return format(span_context.trace_id, "032x"), format(span_context.span_id, "016x")


def current_trace_id() -> str | None:
    return current_span_ids()[0]
