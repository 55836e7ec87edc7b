"""OpenTelemetry and logging setup for the menu sync service."""

import logging
import os
from dataclasses import dataclass
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.botocore import BotocoreInstrumentor
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

SERVICE_NAME = "menu-sync-svc"

# Libraries that log every request or API call at INFO/DEBUG
_NOISY_LOGGERS = ("botocore", "urllib3", "httpx", "httpcore")


@dataclass(frozen=True)
class TelemetrySettings:
    """Exporter settings read from the standard OTEL_* variables."""

    service_name: str
    environment: str
    otlp_endpoint: str
    metric_export_interval_ms: int

    @classmethod
    def from_env(cls) -> "TelemetrySettings":
        return cls(
            service_name=os.getenv("OTEL_SERVICE_NAME", SERVICE_NAME),
            environment=os.getenv("ENVIRONMENT", "development"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318").rstrip("/"),
            metric_export_interval_ms=int(os.getenv("OTEL_METRIC_EXPORT_INTERVAL", "60000")),
        )


def get_service_resource(settings: TelemetrySettings | None = None) -> Resource:
    """Create the resource identifying this service in traces and metrics."""
    settings = settings or TelemetrySettings.from_env()
    return Resource.create(
        {
            "service.name": settings.service_name,
            "deployment.environment": settings.environment,
        }
    )


def setup_tracing(resource: Resource, settings: TelemetrySettings) -> None:
    """Install a tracer provider that batches spans to the OTLP endpoint."""
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint}/v1/traces"))
    )
    trace.set_tracer_provider(provider)

    logger.info(f"Exporting sync traces to {settings.otlp_endpoint}")


def setup_metrics(resource: Resource, settings: TelemetrySettings) -> None:
    """Install a meter provider that periodically pushes sync metrics."""
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{settings.otlp_endpoint}/v1/metrics"),
        export_interval_millis=settings.metric_export_interval_ms,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))

    logger.info(
        f"Exporting sync metrics to {settings.otlp_endpoint} "
        f"every {settings.metric_export_interval_ms}ms"
    )


def setup_auto_instrumentation() -> None:
    """Instrument httpx (source APIs) and botocore (DynamoDB)."""
    HTTPXClientInstrumentor().instrument()
    BotocoreInstrumentor().instrument()


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Initialize tracing, metrics and auto-instrumentation.

    Args:
        app: Optional FastAPI application to instrument
        enable_exporters: Whether to push to the OTLP endpoint; always off
            when ENVIRONMENT=test
    """
    settings = TelemetrySettings.from_env()
    resource = get_service_resource(settings)

    if enable_exporters and settings.environment != "test":
        setup_tracing(resource, settings)
        setup_metrics(resource, settings)
    else:
        trace.set_tracer_provider(TracerProvider(resource=resource))
        metrics.set_meter_provider(MeterProvider(resource=resource))

    setup_auto_instrumentation()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)

    logger.info(
        f"Observability configured for {settings.service_name} "
        f"(exporters={'on' if enable_exporters and settings.environment != 'test' else 'off'}, "
        f"fastapi={'on' if app is not None else 'off'})"
    )


def configure_logging(log_level: str = "INFO") -> None:
    """Send all log records to stdout as JSON lines.

    LOG_LEVEL, when set, overrides log_level. Every record carries the
    service name so sync logs can be filtered across Lambda streams.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level_str = os.getenv("LOG_LEVEL", log_level).upper()
    level = getattr(logging, level_str, logging.INFO)

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        timestamp=True,
        static_fields={"service": os.getenv("OTEL_SERVICE_NAME", SERVICE_NAME)},
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logger.info(f"Structured JSON logging configured at {level_str} level")
