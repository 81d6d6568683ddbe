"""
AGENTREG Observability (OpenTelemetry)

Enabled via environment variables:
- AGENTREG_OTEL_ENABLED=true
- AGENTREG_OTEL_SERVICE_NAME=agentreg-api
- AGENTREG_OTEL_EXPORTER=console|otlp
- AGENTREG_OTEL_OTLP_ENDPOINT=https://... (only if exporter=otlp)

When enabled, every registry operation runs inside a ``registry.<operation>``
span carrying the agent id, and the FastAPI app is instrumented on top.
The opentelemetry packages are an optional extra; without them the hooks
report False and operations run untraced.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import RegistryError
from .logging import get_logger

logger = get_logger("api")

TRACER_NAME = "agentreg.registry"


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def otel_enabled() -> bool:
    return _bool_env("AGENTREG_OTEL_ENABLED", False)


def configure_observability() -> bool:
    """Install a global tracer provider. Returns False when tracing stays off."""
    if not otel_enabled():
        return False

    service_name = os.environ.get("AGENTREG_OTEL_SERVICE_NAME", "agentreg-api")
    exporter = os.environ.get("AGENTREG_OTEL_EXPORTER", "console").lower()

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
    except ImportError:
        logger.warning("AGENTREG_OTEL_ENABLED is set but opentelemetry-sdk is not installed")
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

    if exporter == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        except ImportError:
            logger.warning("OTLP exporter not installed; falling back to console spans")
            span_exporter = ConsoleSpanExporter()
        else:
            endpoint = os.environ.get("AGENTREG_OTEL_OTLP_ENDPOINT")
            span_exporter = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
    else:
        span_exporter = ConsoleSpanExporter()

    provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(provider)
    logger.info("Tracing registry operations as %s (%s exporter)", service_name, exporter)
    return True


def get_tracer():
    """Global registry tracer, or None when tracing is off or unavailable."""
    if not otel_enabled():
        return None
    try:
        from opentelemetry import trace
    except ImportError:
        return None
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def registry_span(operation: str, agent_id: Optional[int] = None, tracer=None) -> Iterator[Optional[object]]:
    """
    Run a registry operation inside a span.

    ``tracer`` overrides the global one (tests pass an in-memory provider's
    tracer). Rejections keep their error code on the span.
    """
    tracer = tracer if tracer is not None else get_tracer()
    if tracer is None:
        yield None
        return
    with tracer.start_as_current_span(f"registry.{operation}") as span:
        span.set_attribute("agentreg.operation", operation)
        if agent_id is not None:
            span.set_attribute("agentreg.agent_id", agent_id)
        try:
            yield span
        except RegistryError as exc:
            span.set_attribute("agentreg.error_code", exc.code)
            raise


def instrument_app(app) -> bool:
    if not otel_enabled():
        return False
    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.logging import LoggingInstrumentor
    except ImportError:
        logger.warning("opentelemetry-instrumentation-fastapi is not installed; API not instrumented")
        return False

    LoggingInstrumentor().instrument(set_logging_format=True)
    FastAPIInstrumentor.instrument_app(app)
    return True
