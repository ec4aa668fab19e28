"""
Prometheus metrics for the storefront API.

HTTP request metrics are collected by hooks installed from the app factory;
checkout counters are incremented by the services that own each step. The
/metrics endpoint is unauthenticated and belongs behind the internal network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY

metrics_bp = Blueprint('metrics', __name__)

# Set when several worker processes write to a shared metrics dir
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

http_requests_total = Counter(
    'storefront_http_requests_total',
    'HTTP requests by route and status',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'storefront_http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=LATENCY_BUCKETS
)

http_requests_in_flight = Gauge(
    'storefront_http_requests_in_flight',
    'HTTP requests being served',
    registry=_metric_registry
)

orders_created_total = Counter(
    'storefront_orders_created_total',
    'Orders placed from the storefront',
    ['fulfillment_type'],
    registry=_metric_registry
)

payments_total = Counter(
    'storefront_payments_total',
    'Charge attempts by outcome',
    ['outcome'],
    registry=_metric_registry
)

pos_sync_total = Counter(
    'storefront_pos_sync_total',
    'POS sync and reprint attempts by outcome',
    ['operation', 'outcome'],
    registry=_metric_registry
)

sms_total = Counter(
    'storefront_sms_total',
    'Customer SMS notifications by message kind and outcome',
    ['kind', 'outcome'],
    registry=_metric_registry
)

jobs_total = Counter(
    'storefront_jobs_total',
    'Background job runs by kind and resulting status',
    ['kind', 'status'],
    registry=_metric_registry
)


def setup_metrics_instrumentation(app):
    """Install request hooks that feed the HTTP metrics."""

    @app.before_request
    def start_request_timer():
        if request.endpoint == 'metrics.metrics':
            return
        g._metrics_started = time.perf_counter()
        http_requests_in_flight.inc()

    @app.after_request
    def record_request_metrics(response):
        started = g.pop('_metrics_started', None)
        if started is None:
            return response

        endpoint = request.endpoint or 'unmatched'
        try:
            http_request_duration_seconds.labels(
                method=request.method, endpoint=endpoint
            ).observe(time.perf_counter() - started)
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, http_status=response.status_code
            ).inc()
        except ValueError as e:
            app.logger.warning(f"[METRICS] Failed to record request metrics: {e}")
        finally:
            http_requests_in_flight.dec()
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus text exposition."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
