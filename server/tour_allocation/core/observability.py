"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry
import structlog

from .config import settings

SERVICE_NAME = "tour-allocation-api"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
RESERVATIONS_CREATED = Counter(
    'reservations_created_total',
    'Total reservations created',
    ['status'],
    registry=REGISTRY
)

RESERVATION_TRANSITIONS = Counter(
    'reservation_transitions_total',
    'Total reservation status transitions',
    ['from_status', 'to_status'],
    registry=REGISTRY
)

CAPACITY_REJECTIONS = Counter(
    'tour_capacity_rejections_total',
    'Capacity commits rejected because the tour was full',
    registry=REGISTRY
)

ROOM_CONFLICTS = Counter(
    'room_conflicts_total',
    'Room reservations rejected because of an overlapping interval',
    registry=REGISTRY
)

INTERVALS_PURGED = Counter(
    'room_intervals_purged_total',
    'Expired room intervals removed from the ledger',
    registry=REGISTRY
)

LOCK_TIMEOUTS = Counter(
    'entity_lock_timeouts_total',
    'Requests that gave up waiting for entity locks',
    registry=REGISTRY
)

CONCURRENCY_RETRIES = Counter(
    'concurrency_conflict_retries_total',
    'Operations re-run after an optimistic version conflict',
    ['operation'],
    registry=REGISTRY
)

TOUR_UTILIZATION = Gauge(
    'tour_capacity_utilization',
    'Committed seats as a percentage of tour capacity',
    ['tour_id'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    # Request id is bound into contextvars by the middleware
    structlog.configure(
        processors=[
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


def _resource(app_name: str) -> Resource:
    return Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    trace.set_tracer_provider(TracerProvider(resource=_resource(app_name)))

    # Export only when a collector is configured
    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        span_processor = BatchSpanProcessor(otlp_exporter)
        trace.get_tracer_provider().add_span_processor(span_processor)

    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(app_name), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine=None):
    """Instrument SQLAlchemy with OpenTelemetry."""
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
    else:
        SQLAlchemyInstrumentor().instrument()


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_reservation_created(status: str):
        """Record a new reservation in its initial status."""
        RESERVATIONS_CREATED.labels(status=status).inc()

    @staticmethod
    def record_transition(from_status: str, to_status: str):
        """Record a reservation status change."""
        RESERVATION_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_capacity_rejection():
        """Record a commit refused for lack of seats."""
        CAPACITY_REJECTIONS.inc()

    @staticmethod
    def record_room_conflict():
        """Record a room reservation refused for overlap."""
        ROOM_CONFLICTS.inc()

    @staticmethod
    def record_intervals_purged(count: int):
        """Record expired intervals removed."""
        if count:
            INTERVALS_PURGED.inc(count)

    @staticmethod
    def record_lock_timeout():
        """Record a lock acquisition timeout."""
        LOCK_TIMEOUTS.inc()

    @staticmethod
    def record_concurrency_retry(operation: str):
        """Record a retry after an optimistic version conflict."""
        CONCURRENCY_RETRIES.labels(operation=operation).inc()

    @staticmethod
    def set_tour_utilization(tour_id: str, current: int, maximum: int):
        """Set capacity utilization percentage for a tour."""
        utilization = (current / maximum) * 100 if maximum else 0.0
        TOUR_UTILIZATION.labels(tour_id=tour_id).set(utilization)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()


class StructuredLogger:
    """Structured logger with business context."""

    def __init__(self, logger):
        self.logger = logger

    def info(self, message: str, **kwargs):
        """Log info message with context."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with context."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with context."""
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message with context."""
        self.logger.debug(message, **kwargs)

    def with_context(self, **kwargs) -> "StructuredLogger":
        """Add context to logger."""
        return StructuredLogger(self.logger.bind(**kwargs))


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(structlog.get_logger(name))
