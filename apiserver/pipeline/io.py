"""HTTP Input/Output operations."""

import logging
import socket
import time
import urllib.parse
from http import HTTPStatus
from typing import Optional, Tuple

from apiserver.bootstrap.config import HEADER_DELIMITER, MAX_BODY_BYTES, ConnectionTimeouts
from apiserver.domain.correlation_id import (
    CorrelationLoggerAdapter,
    adopt_request_id,
    request_id_headers,
)
from apiserver.domain.errors import RequestEntityTooLarge
from apiserver.domain.http_types import HttpRequest, HttpResponse, status_line

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("apiserver.io"), {})

SUPPORTED_VERSIONS = {"HTTP/1.0", "HTTP/1.1"}
# Statuses that never carry a body.
BODYLESS_STATUSES = {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}


def _recv_with_deadline(client_socket: socket.socket, deadline_ns: int) -> bytes:
    """Receive data from socket with a deadline, raising TimeoutError if exceeded."""
    remaining_ns = deadline_ns - time.monotonic_ns()
    if remaining_ns <= 0:
        raise TimeoutError("Request deadline exceeded")
    timeout_seconds = remaining_ns / 1_000_000_000
    client_socket.settimeout(timeout_seconds)
    return client_socket.recv(4096)


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        if ":" in line:
            name, value = line.split(":", 1)
            parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str, str, str]:
    """Return method, decoded path, raw target and version."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc

    if version not in SUPPORTED_VERSIONS or not method.isalpha():
        raise ValueError("Invalid request line")
    if not (target.startswith("/") or target == "*"):
        raise ValueError("Invalid request target")

    path = urllib.parse.unquote(urllib.parse.urlsplit(target).path)
    return method.upper(), path, target, version


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_BODY_BYTES:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket,
    buffer: bytes,
    timeouts: ConnectionTimeouts,
    first_request: bool = True,
    remote_addr: str = "",
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available.

    The first request on a connection waits up to the read-header timeout for
    data, later ones up to the idle timeout. Once the first byte arrives the
    header block must complete within the read-header timeout and the whole
    request within the read timeout.
    """
    if not buffer:
        client_socket.settimeout(timeouts.read_header if first_request else timeouts.idle)
        buffer = client_socket.recv(4096)
        if not buffer:
            return None, b""

    started_ns = time.monotonic_ns()
    read_deadline = started_ns + int(timeouts.read * 1_000_000_000)
    header_deadline = min(
        read_deadline, started_ns + int(timeouts.read_header * 1_000_000_000)
    )

    while HEADER_DELIMITER not in buffer:
        chunk = _recv_with_deadline(client_socket, header_deadline)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, path, target, version = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    adopt_request_id(headers)

    content_length = determine_content_length(headers)

    while len(remainder) < content_length:
        chunk = _recv_with_deadline(client_socket, read_deadline)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug("Parsed request", extra={"method": method, "path": path})
    request = HttpRequest(method, path, headers, body, target, version, remote_addr)
    return request, leftover


class SocketResponseWriter:
    """Buffers a handler's response and sends it over the client socket."""

    def __init__(
        self,
        client_socket: socket.socket,
        request: Optional[HttpRequest] = None,
        write_timeout: Optional[float] = None,
    ) -> None:
        self._socket = client_socket
        self._request = request
        self._write_timeout = write_timeout
        self._body = bytearray()
        self.headers: dict[str, str] = {}
        self.status: Optional[int] = None
        self.close_connection = False
        self.sent = False

    def write_header(self, status: int) -> None:
        if self.status is not None:
            IO_LOGGER.debug(
                "Superfluous write_header call ignored",
                extra={"status": int(status)},
            )
            return
        self.status = int(status)

    def write(self, data: bytes) -> int:
        if self.status is None:
            self.write_header(HTTPStatus.OK)
        self._body.extend(data)
        return len(data)

    def finish(self) -> None:
        """Send the buffered response; a handler that wrote nothing gets 200."""
        if self.sent:
            return
        if self.status is None:
            self.write_header(HTTPStatus.OK)
        self.sent = True

        headers = dict(self.headers)
        headers.update(request_id_headers())

        body = bytes(self._body)
        if self.status in BODYLESS_STATUSES or 100 <= self.status < 200:
            body = b""
        else:
            headers["Content-Length"] = str(len(body))
        if self._request is not None and self._request.method == "HEAD":
            body = b""
        if self.close_connection:
            headers["Connection"] = "close"

        version = self._request.version if self._request is not None else "HTTP/1.1"
        header_lines = [status_line(self.status, version)]
        header_lines.extend(f"{name}: {value}" for name, value in headers.items())
        header_block = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"

        if self._write_timeout is not None:
            self._socket.settimeout(self._write_timeout)
        self._socket.sendall(header_block + body)
        IO_LOGGER.debug("Sent response", extra={"status": self.status})


def send_response(
    client_socket: socket.socket,
    response: HttpResponse,
    write_timeout: Optional[float] = None,
) -> None:
    """Send a prepared response outside the handler chain and close afterwards."""
    writer = SocketResponseWriter(client_socket, write_timeout=write_timeout)
    writer.headers.update(response.headers)
    writer.write_header(response.status)
    writer.write(response.body)
    writer.close_connection = True
    writer.finish()
