"""Utilities for interacting with the server in tests."""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

HEADER_DELIMITER = b"\r\n\r\n"


@dataclass(slots=True)
class RawHttpResponse:
    """Structured view of an HTTP response captured from a socket."""

    status_line: str
    headers: Dict[str, str]
    body: bytes

    @property
    def status(self) -> int:
        return int(self.status_line.split()[1])


@dataclass
class FakeResponseWriter:
    """In-memory ResponseWriter recording every call made on it."""

    headers: Dict[str, str] = field(default_factory=dict)
    statuses: List[int] = field(default_factory=list)
    body: bytes = b""

    @property
    def status(self) -> Optional[int]:
        return self.statuses[0] if self.statuses else None

    def write_header(self, status: int) -> None:
        self.statuses.append(int(status))

    def write(self, data: bytes) -> int:
        if not self.statuses:
            self.write_header(200)
        self.body += data
        return len(data)


class FakeSocket:
    """Minimal socket stub that returns predefined chunks and records sends."""

    def __init__(self, chunks=()):
        self._chunks = [
            chunk if isinstance(chunk, bytes) else chunk.encode() for chunk in chunks
        ]
        self.sent = b""
        self.timeouts: List[Optional[float]] = []
        self.closed = False

    def recv(self, _size):
        if self._chunks:
            return self._chunks.pop(0)
        return b""

    def settimeout(self, value):
        self.timeouts.append(value)

    def sendall(self, data):
        self.sent += data

    def shutdown(self, _how):
        return None

    def close(self):
        self.closed = True
        self._chunks.clear()


def reserve_port(host: str = "127.0.0.1") -> int:
    """Return an available TCP port bound to the given host without listening."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def wait_for_port(host: str, port: int, timeout: float = 5.0) -> None:
    """Block until a TCP connection to host:port succeeds or timeout elapses."""

    deadline = time.perf_counter() + timeout
    while time.perf_counter() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.1):
                return
        except OSError:
            time.sleep(0.05)
    raise RuntimeError(f"Server did not start on {host}:{port} within {timeout}s")


def parse_raw_response(data: bytes) -> RawHttpResponse:
    """Parse a complete response already read into memory."""

    header_block, body = data.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode().split("\r\n")
    return RawHttpResponse(header_lines[0], _parse_headers(header_lines[1:]), body)


def read_http_response(sock: socket.socket) -> RawHttpResponse:
    """Read and parse one Content-Length delimited HTTP response from a socket."""

    buffer = b""
    while HEADER_DELIMITER not in buffer:
        chunk = sock.recv(4096)
        if not chunk:
            raise RuntimeError("Connection closed before headers were received")
        buffer += chunk
    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode().split("\r\n")
    headers = _parse_headers(header_lines[1:])
    length = int(headers.get("content-length", "0"))
    while len(remainder) < length:
        chunk = sock.recv(4096)
        if not chunk:
            raise RuntimeError("Connection closed before body completed")
        remainder += chunk
    return RawHttpResponse(header_lines[0], headers, remainder[:length])


def _parse_headers(lines: List[str]) -> Dict[str, str]:
    """Convert header lines into a normalized dictionary."""

    parsed: Dict[str, str] = {}
    for line in lines:
        if ": " not in line:
            continue
        name, value = line.split(": ", 1)
        parsed[name.lower()] = value
    return parsed
