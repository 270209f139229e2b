"""OpenTelemetry setup for the wake engine.

Provides a configurable TracerProvider:
  - **none** (default): spans are created but not exported.
  - **console**: ConsoleSpanExporter — spans print to stdout.
  - **otlp**: OTLPSpanExporter — ships spans to an OTLP-compatible collector.

Per-chunk spans (``wake.decode``, ``wake.match``) are emitted for every audio
frame, so console export is meant for short local debugging sessions only.

Usage:
    from wake_engine.telemetry import init_telemetry, get_tracer

    init_telemetry()          # call once at startup (lifespan)
    tracer = get_tracer()     # use anywhere
    with tracer.start_as_current_span("my.span"):
        ...
"""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

logger = logging.getLogger(__name__)

_SERVICE_NAME = "wake-engine"
_TRACER_NAME = "wake_engine"
_initialized = False


def init_telemetry() -> None:
    """Initialise the global TracerProvider.

    Reads ``OTEL_EXPORTER`` from the environment:
      - ``"otlp"`` → OTLPSpanExporter (requires ``OTEL_EXPORTER_OTLP_ENDPOINT``)
      - ``"console"`` → ConsoleSpanExporter
      - anything else → no exporter
    """
    global _initialized
    if _initialized:
        return

    resource = Resource.create({"service.name": _SERVICE_NAME})
    provider = TracerProvider(resource=resource)

    exporter_type = os.environ.get("OTEL_EXPORTER", "none").lower()
    if exporter_type == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )

            endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
            provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
            logger.info("[Telemetry] OTLP exporter → %s", endpoint)
        except ImportError:
            logger.warning("[Telemetry] OTLP exporter not installed — falling back to console.")
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    elif exporter_type == "console":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        logger.info("[Telemetry] Console exporter active (dev mode).")
    else:
        logger.debug("[Telemetry] No span exporter configured.")

    trace.set_tracer_provider(provider)
    _initialized = True


def get_tracer() -> trace.Tracer:
    """Return the wake engine tracer (safe to call before ``init_telemetry``)."""
    return trace.get_tracer(_TRACER_NAME)
