from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
import logging
import os

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from tracker.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s position=%(position)s %(message)s"

_BASE_LOG_RECORD_FACTORY = logging.getLogRecordFactory()
_FACTORY_INSTALLED = False
# "id=P-1" or "req=REQ-7" while a store or webhook span is active.
_POSITION_CONTEXT: ContextVar[str] = ContextVar("position_context", default="-")
_HTTPX_INSTRUMENTOR = HTTPXClientInstrumentor()

tracer = trace.get_tracer("tracker")


@dataclass(slots=True)
class TelemetryRuntime:
    enabled: bool
    provider: TracerProvider | None


def configure_logging(level: str = "INFO") -> None:
    _install_record_factory()
    if logging.getLogger().handlers:
        return
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@contextmanager
def position_span(name: str, **attributes: str | int | None) -> Iterator[trace.Span]:
    """Open a span tagged with ``position.<key>`` attributes.

    The first non-empty attribute is also stamped on every log record emitted
    inside the block.
    """
    tags = {key: value for key, value in attributes.items() if value is not None}
    label = next((f"{key}={value}" for key, value in tags.items()), "-")
    token = _POSITION_CONTEXT.set(label)
    try:
        with tracer.start_as_current_span(name) as span:
            for key, value in tags.items():
                span.set_attribute(f"position.{key}", value)
            yield span
    finally:
        _POSITION_CONTEXT.reset(token)


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime:
    if not settings.otel_enabled:
        return TelemetryRuntime(enabled=False, provider=None)

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.otel_service_name,
                DEPLOYMENT_ENVIRONMENT: settings.environment,
            }
        ),
        sampler=TraceIdRatioBased(settings.otel_trace_sample_ratio),
    )
    if _exporter_configured(settings):
        # Endpoint and headers not given in settings come from the OTEL_EXPORTER_OTLP_* env vars.
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    else:
        logging.getLogger(__name__).info("no OTLP endpoint configured; position spans stay in-process")

    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="healthz")
    _HTTPX_INSTRUMENTOR.instrument(tracer_provider=provider)
    return TelemetryRuntime(enabled=True, provider=provider)


def shutdown_api_telemetry(app: FastAPI, runtime: TelemetryRuntime) -> None:
    if not runtime.enabled:
        return
    FastAPIInstrumentor.uninstrument_app(app)
    _HTTPX_INSTRUMENTOR.uninstrument()
    if runtime.provider is not None:
        runtime.provider.shutdown()
    # TestClient runs the lifespan once per client within one process.
    runtime.enabled = False


def _exporter_configured(settings: Settings) -> bool:
    return bool(
        settings.otel_exporter_otlp_endpoint
        or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    )


def _install_record_factory() -> None:
    global _FACTORY_INSTALLED
    if _FACTORY_INSTALLED:
        return

    def record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
        record = _BASE_LOG_RECORD_FACTORY(*args, **kwargs)
        context = trace.get_current_span().get_span_context()
        record.trace_id = format(context.trace_id, "032x") if context.is_valid else "-"
        record.position = _POSITION_CONTEXT.get()
        return record

    logging.setLogRecordFactory(record_factory)
    _FACTORY_INSTALLED = True
