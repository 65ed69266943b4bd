"""Prometheus metrics for requests dispatched through fluentrest."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from .logging_utils import redact_url

LOGGER = logging.getLogger(__name__)

_REGISTRY = CollectorRegistry()


def _histogram(name: str, documentation: str, *, buckets: Iterable[float]) -> Histogram:
    return Histogram(name, documentation, buckets=buckets, registry=_REGISTRY)


def _counter(name: str, documentation: str, *, label_names: Optional[Iterable[str]] = None) -> Counter:
    if label_names:
        return Counter(name, documentation, labelnames=list(label_names), registry=_REGISTRY)
    return Counter(name, documentation, registry=_REGISTRY)


REQUESTS_STARTED = _counter(
    "fluentrest_requests_started_total",
    "Number of requests handed to the transport grouped by method.",
    label_names=["method"],
)
REQUESTS_COMPLETED = _counter(
    "fluentrest_requests_completed_total",
    "Number of responses received grouped by method and status range.",
    label_names=["method", "status_range"],
)
TRANSPORT_FAILURES = _counter(
    "fluentrest_transport_failures_total",
    "Number of requests that produced no response grouped by failure reason.",
    label_names=["reason"],
)
REQUEST_DURATION = _histogram(
    "fluentrest_request_duration_seconds",
    "Histogram of request durations in seconds, body download included.",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)


def record_request_started(method: str, url: str) -> None:
    LOGGER.debug(
        "metrics.request_started",
        extra={"event": "request.started", "method": method, "origin": redact_url(url, keep_path=False)},
    )
    REQUESTS_STARTED.labels(method=method).inc()


def record_request_completed(method: str, status: int, duration: float) -> None:
    """Record a response, whatever its status."""

    status_range = f"{status // 100}xx"
    LOGGER.debug(
        "metrics.request_completed",
        extra={
            "event": "request.completed",
            "method": method,
            "status": status,
            "duration": duration,
        },
    )
    REQUESTS_COMPLETED.labels(method=method, status_range=status_range).inc()
    REQUEST_DURATION.observe(duration)


def record_transport_failure(method: str, reason: str, duration: float) -> None:
    """Record a request that ended without a response."""

    LOGGER.debug(
        "metrics.transport_failed",
        extra={"event": "request.failed", "method": method, "reason": reason},
    )
    TRANSPORT_FAILURES.labels(reason=reason).inc()
    REQUEST_DURATION.observe(duration)


def metrics_payload() -> tuple[bytes, str]:
    """Return the Prometheus exposition payload and its content type."""

    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "metrics_payload",
    "record_request_completed",
    "record_request_started",
    "record_transport_failure",
]
