"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "khub_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "khub_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("endpoint", "method"),
    registry=REGISTRY,
)

INGEST_DURATION = Histogram(
    "khub_ingest_duration_seconds",
    "Ingest pipeline duration",
    labelnames=("source",),
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "khub_index_chunks",
    "Number of chunks stored in index",
    registry=REGISTRY,
)

EMBEDDING_CALLS = Counter(
    "khub_embedding_calls_total",
    "Embedding provider calls",
    labelnames=("backend", "outcome"),
    registry=REGISTRY,
)

RESEARCH_RUNS = Counter(
    "khub_research_runs_total",
    "DeepSearch research runs",
    labelnames=("outcome",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "INGEST_DURATION",
    "INDEX_SIZE",
    "EMBEDDING_CALLS",
    "RESEARCH_RUNS",
    "metrics_response",
]
