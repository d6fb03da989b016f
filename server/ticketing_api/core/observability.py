"""Observability setup for OpenTelemetry, Prometheus metrics, and structured logging."""

import logging

import structlog
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from .config import settings

SERVICE_NAME = "ticketing-api"
SERVICE_VERSION = "1.0.0"

# Prometheus metrics
REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    registry=REGISTRY
)

# Seat hold metrics
HOLDS_ACQUIRED = Counter(
    "seat_holds_acquired_total",
    "Advisory seat holds acquired",
    registry=REGISTRY
)

HOLDS_REJECTED = Counter(
    "seat_holds_rejected_total",
    "Seat hold requests rejected because another user held the seat",
    registry=REGISTRY
)

HOLDS_EXPIRED = Counter(
    "seat_holds_expired_total",
    "Seat holds removed by the expiry sweeper",
    registry=REGISTRY
)

ACTIVE_HOLDS = Gauge(
    "seat_holds_active",
    "Unexpired advisory seat holds",
    registry=REGISTRY
)

REALTIME_CONNECTIONS = Gauge(
    "realtime_connections",
    "Open real-time connections",
    registry=REGISTRY
)

# Booking metrics
BOOKINGS_CREATED = Counter(
    "bookings_created_total",
    "Bookings created (seat reserved)",
    registry=REGISTRY
)

BOOKINGS_CONFIRMED = Counter(
    "bookings_confirmed_total",
    "Bookings confirmed by payment (seat sold)",
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    "bookings_cancelled_total",
    "Bookings cancelled (seat released)",
    registry=REGISTRY
)

BOOKINGS_REFUNDED = Counter(
    "bookings_refunded_total",
    "Bookings refunded (seat released)",
    registry=REGISTRY
)

BOOKING_CONFLICTS = Counter(
    "booking_conflicts_total",
    "Booking attempts rejected by a conflict",
    ["code"],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict["trace_id"] = format(ctx.trace_id, "032x")
            event_dict["span_id"] = format(ctx.span_id, "016x")
        return event_dict

    structlog.configure(
        processors=[
            # request_id is bound by the request middleware
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource() -> Resource:
    return Resource.create({
        "service.name": SERVICE_NAME,
        "service.version": SERVICE_VERSION,
        "environment": settings.environment,
    })


def setup_tracing():
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource())

    # Export only when an OTLP endpoint is configured
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000
        )
        metrics.set_meter_provider(MeterProvider(resource=_resource(), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine):
    """Instrument the async engine's sync core with OpenTelemetry."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_hold_acquired():
        HOLDS_ACQUIRED.inc()

    @staticmethod
    def record_hold_rejected():
        HOLDS_REJECTED.inc()

    @staticmethod
    def record_hold_expired():
        HOLDS_EXPIRED.inc()

    @staticmethod
    def set_active_holds(count: int):
        ACTIVE_HOLDS.set(count)

    @staticmethod
    def set_realtime_connections(count: int):
        REALTIME_CONNECTIONS.set(count)

    @staticmethod
    def record_booking_created():
        BOOKINGS_CREATED.inc()

    @staticmethod
    def record_booking_confirmed():
        BOOKINGS_CONFIRMED.inc()

    @staticmethod
    def record_booking_cancelled():
        BOOKINGS_CANCELLED.inc()

    @staticmethod
    def record_booking_refunded():
        BOOKINGS_REFUNDED.inc()

    @staticmethod
    def record_booking_conflict(code: str):
        """Record a rejected booking attempt by its error code."""
        BOOKING_CONFLICTS.labels(code=code).inc()

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, duration_seconds: float):
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration_seconds)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
