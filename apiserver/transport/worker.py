"""Worker thread logic for handling individual client connections."""

import logging
import socket
import ssl
import threading
from dataclasses import dataclass
from typing import Optional

from apiserver.domain.correlation_id import (
    CorrelationLoggerAdapter,
    begin_request,
    clear_correlation_id,
)
from apiserver.domain.errors import RequestEntityTooLarge
from apiserver.domain.http_types import HttpRequest, should_close
from apiserver.domain.response_builders import (
    bad_request_response,
    entity_too_large_response,
)
from apiserver.pipeline.io import SocketResponseWriter, receive_request, send_response
from apiserver.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("apiserver.transport.worker"), {}
)


@dataclass
class _Connection:
    sock: socket.socket
    remote_addr: str
    buffer: bytes = b""
    served: int = 0


def _tls_handshake(
    client_socket: socket.socket, context: WorkerContext, remote_addr: str
) -> Optional[socket.socket]:
    """Run the server side of the TLS handshake in the worker thread."""
    client_socket.settimeout(context.timeouts.read_header)
    try:
        return context.tls_context.wrap_socket(client_socket, server_side=True)
    except (ssl.SSLError, OSError) as error:
        WORKER_LOGGER.warning(
            "TLS handshake failed",
            extra={
                "event": "tls_handshake_failed",
                "client": remote_addr,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        return None


def _read_request(
    connection: _Connection, context: WorkerContext
) -> Optional[HttpRequest]:
    """Read the next request, answering protocol errors directly.

    Returns None when the connection should end.
    """
    write_timeout = context.timeouts.write
    try:
        request, connection.buffer = receive_request(
            connection.sock,
            connection.buffer,
            context.timeouts,
            first_request=connection.served == 0,
            remote_addr=connection.remote_addr,
        )
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request body size exceeded limit",
            extra={"event": "body_size_exceeded", "client": connection.remote_addr},
        )
        send_response(connection.sock, entity_too_large_response(), write_timeout)
        return None
    except (ValueError, UnicodeDecodeError):
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": connection.remote_addr},
        )
        send_response(connection.sock, bad_request_response(), write_timeout)
        return None
    except TimeoutError:
        WORKER_LOGGER.debug(
            "Connection timed out waiting for a request",
            extra={"event": "read_timeout", "client": connection.remote_addr},
        )
        return None

    if request is None:
        WORKER_LOGGER.debug(
            "Client closed the connection",
            extra={"event": "client_disconnected", "client": connection.remote_addr},
        )
    return request


def _serve_connection(connection: _Connection, context: WorkerContext) -> None:
    lifecycle = context.lifecycle
    while True:
        begin_request()

        request = _read_request(connection, context)
        if request is None:
            break
        connection.served += 1

        writer = SocketResponseWriter(connection.sock, request, context.timeouts.write)
        writer.close_connection = should_close(request) or (
            lifecycle is not None and lifecycle.should_stop()
        )
        context.handler(request, writer)
        writer.finish()
        clear_correlation_id()

        if writer.close_connection:
            break


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Process requests on a client socket until the connection is closed."""
    remote_addr = f"{client_address[0]}:{client_address[1]}"
    current_thread = threading.current_thread()
    lifecycle = context.lifecycle
    if lifecycle is not None:
        lifecycle.register_worker(current_thread)

    try:
        if context.tls_context is not None:
            wrapped = _tls_handshake(client_socket, context, remote_addr)
            if wrapped is None:
                return
            client_socket = wrapped
        _serve_connection(_Connection(client_socket, remote_addr), context)
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": remote_addr,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": remote_addr,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        if lifecycle is not None:
            lifecycle.cleanup_worker(current_thread)
        try:
            client_socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        client_socket.close()
        clear_correlation_id()
        WORKER_LOGGER.debug(
            "Socket closed", extra={"event": "socket_closed", "client": remote_addr}
        )
