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

SERVICE_NAME = "excursion-booking-api"
SERVICE_VERSION = "1.0.0"

REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    registry=REGISTRY,
)

# Business metrics
BOOKINGS_CREATED = Counter(
    "bookings_created_total",
    "Bookings created, by channel",
    ["channel"],
    registry=REGISTRY,
)

BOOKINGS_CONFIRMED = Counter(
    "bookings_confirmed_total",
    "Bookings confirmed",
    registry=REGISTRY,
)

BOOKINGS_CANCELLED = Counter(
    "bookings_cancelled_total",
    "Bookings cancelled",
    registry=REGISTRY,
)

VALIDATION_FAILURES = Counter(
    "booking_validation_failures_total",
    "Booking validations that failed, by reason",
    ["reason"],
    registry=REGISTRY,
)

CONFLICTS_DETECTED = Counter(
    "booking_conflicts_detected_total",
    "Overbooking conflicts detected from the change feed",
    ["conflict_type"],
    registry=REGISTRY,
)

SLOT_AVAILABLE_SPOTS = Gauge(
    "slot_available_spots",
    "Cached available spots of a slot after its last refresh",
    ["slot_id"],
    registry=REGISTRY,
)

EMAILS_SENT = Counter(
    "emails_sent_total",
    "Templated emails handed to the email API, by outcome",
    ["outcome"],
    registry=REGISTRY,
)


def _add_trace_context(logger, method_name, event_dict):
    """Add the active span's ids to log events."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def setup_structured_logging():
    """Configure structlog and route stdlib logging through the same level."""
    logging.basicConfig(level=getattr(logging, settings.log_level), format="%(message)s")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
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
    """Setup OpenTelemetry tracing; spans are exported only when OTLP is configured."""
    provider = TracerProvider(resource=_resource())
    trace.set_tracer_provider(provider)

    if settings.otlp_endpoint:
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        )

    return trace.get_tracer(__name__)


def setup_metrics():
    """Setup OpenTelemetry metrics export alongside the Prometheus registry."""
    if settings.otlp_endpoint:
        reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=settings.otlp_endpoint),
            export_interval_millis=60000,
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
    def record_request(method: str, endpoint: str, status_code: int, duration: float):
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

    @staticmethod
    def record_booking_created(channel: str):
        """Record a booking creation on a channel."""
        BOOKINGS_CREATED.labels(channel=channel).inc()

    @staticmethod
    def record_booking_confirmed():
        """Record a booking confirmation."""
        BOOKINGS_CONFIRMED.inc()

    @staticmethod
    def record_booking_cancelled():
        """Record a booking cancellation."""
        BOOKINGS_CANCELLED.inc()

    @staticmethod
    def record_validation_failure(reason: str):
        """Record a failed booking validation."""
        VALIDATION_FAILURES.labels(reason=reason).inc()

    @staticmethod
    def record_conflict(conflict_type: str):
        """Record a detected booking conflict."""
        CONFLICTS_DETECTED.labels(conflict_type=conflict_type).inc()

    @staticmethod
    def set_slot_available_spots(slot_id: str, spots: int):
        """Set the cached spot count for a slot."""
        SLOT_AVAILABLE_SPOTS.labels(slot_id=slot_id).set(spots)

    @staticmethod
    def record_email(outcome: str):
        """Record an email send outcome (sent, simulated, failed)."""
        EMAILS_SENT.labels(outcome=outcome).inc()


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()
