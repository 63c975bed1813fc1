"""Prometheus request instrumentation."""

import time
from typing import Callable, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Gauge,
    Histogram,
    generate_latest,
)

from apiserver.domain.http_types import Handler, HttpRequest, HttpResponse, ResponseWriter
from apiserver.middleware.status_recorder import StatusRecorder

DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10)
SIZE_BUCKETS = (100, 1_000, 10_000, 100_000, 1_000_000, 10_000_000)


class MetricsRecorder:
    """Owns a registry and the request metrics recorded into it.

    Each server gets its own registry so that several servers in one process
    do not collide on metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "The latency of the HTTP requests.",
            ["handler", "method", "code"],
            buckets=DURATION_BUCKETS,
            registry=self.registry,
        )
        self.response_size = Histogram(
            "http_response_size_bytes",
            "The size of the HTTP responses.",
            ["handler", "method", "code"],
            buckets=SIZE_BUCKETS,
            registry=self.registry,
        )
        self.requests_inflight = Gauge(
            "http_requests_inflight",
            "The number of inflight requests being handled at the same time.",
            ["handler"],
            registry=self.registry,
        )

    def middleware(
        self,
        next_handler: Handler,
        handler_label: Callable[[HttpRequest], str] = lambda request: request.path,
    ) -> Handler:
        """Wrap a handler to record duration, size and concurrency."""

        def handler(request: HttpRequest, writer: ResponseWriter) -> None:
            label = handler_label(request)
            inflight = self.requests_inflight.labels(label)
            recorder = StatusRecorder(writer)
            inflight.inc()
            start = time.perf_counter()
            try:
                next_handler(request, recorder)
            finally:
                elapsed = time.perf_counter() - start
                inflight.dec()
            code = str(recorder.status)
            self.request_duration.labels(label, request.method, code).observe(elapsed)
            self.response_size.labels(label, request.method, code).observe(
                recorder.bytes_written
            )

        return handler

    def exposition(self) -> HttpResponse:
        """Render the registry in the Prometheus text format."""
        return HttpResponse(
            200, {"Content-Type": CONTENT_TYPE_LATEST}, generate_latest(self.registry)
        )
