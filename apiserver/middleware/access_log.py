"""Access logging middleware."""

import logging
import time
from http import HTTPStatus

from apiserver.domain.http_types import Handler, HttpRequest, ResponseWriter
from apiserver.middleware.status_recorder import StatusRecorder

ACCESS_MESSAGE = "http"
ACCESS_COMPONENT = "access"


def format_duration(seconds: float) -> str:
    """Render an elapsed time with a unit suited to its size."""
    if seconds < 1e-3:
        return f"{seconds * 1e6:.3f}µs"
    if seconds < 1:
        return f"{seconds * 1e3:.3f}ms"
    return f"{seconds:.3f}s"


def client_address(request: HttpRequest) -> str:
    """Prefer the forwarded-for header over the transport peer address."""
    return request.headers.get("x-forwarded-for") or request.remote_addr


def severity_for(status: int) -> int:
    """Map a final status code to the level its access record is logged at."""
    if status == HTTPStatus.INTERNAL_SERVER_ERROR:
        return logging.ERROR
    if status == HTTPStatus.NOT_FOUND:
        return logging.WARNING
    return logging.INFO


def access_logging(logger: logging.LoggerAdapter, next_handler: Handler) -> Handler:
    """Wrap a handler so that every request produces one access record."""

    def handler(request: HttpRequest, writer: ResponseWriter) -> None:
        recorder = StatusRecorder(writer)
        start = time.perf_counter()
        next_handler(request, recorder)
        elapsed = time.perf_counter() - start

        logger.log(
            severity_for(recorder.status),
            ACCESS_MESSAGE,
            extra={
                "component": ACCESS_COMPONENT,
                "status": recorder.status,
                "method": request.method,
                "duration": format_duration(elapsed),
                "ip": client_address(request),
                "path": request.target,
            },
        )

    return handler
