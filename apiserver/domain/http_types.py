"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Callable, Protocol


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request."""

    method: str
    path: str
    headers: dict[str, str]
    body: bytes
    target: str = ""
    version: str = "HTTP/1.1"
    remote_addr: str = ""

    def __post_init__(self) -> None:
        if not self.target:
            self.target = self.path


@dataclass
class HttpResponse:
    """Represents a complete HTTP response produced by a handler."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class ResponseWriter(Protocol):
    """Outbound side of a request as seen by handlers and middleware."""

    @property
    def headers(self) -> dict[str, str]: ...

    def write_header(self, status: int) -> None: ...

    def write(self, data: bytes) -> int: ...


Handler = Callable[[HttpRequest, ResponseWriter], None]
Middleware = Callable[[Handler], Handler]


def status_line(status: int, version: str = "HTTP/1.1") -> str:
    """Return the status line for a numeric status code."""
    try:
        reason = HTTPStatus(status).phrase
    except ValueError:
        reason = "Unknown"
    return f"{version} {status} {reason}"


def should_close(request: HttpRequest) -> bool:
    """Determine whether the connection should be closed after responding."""
    connection = request.headers.get("connection", "").lower()
    if request.version == "HTTP/1.0":
        return connection != "keep-alive"
    return connection == "close"


def write_response(writer: ResponseWriter, response: HttpResponse) -> None:
    """Copy a prepared response onto a writer."""
    writer.headers.update(response.headers)
    writer.write_header(response.status)
    if response.body:
        writer.write(response.body)
