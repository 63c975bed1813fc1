"""Main connection acceptance loop."""

import logging
import socket
import threading

from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.lifecycle.state import ServerLifecycle
from apiserver.transport.context import WorkerContext
from apiserver.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("apiserver.transport.accept"), {}
)

# Back-off between failing accept() calls, e.g. when out of file descriptors.
ACCEPT_RETRY_MIN_SECONDS = 0.005
ACCEPT_RETRY_MAX_SECONDS = 1.0


def _start_worker(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
            },
        )
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        daemon=True,
    )
    thread.start()


def serve_forever(
    listener: socket.socket, context: WorkerContext, lifecycle: ServerLifecycle
) -> None:
    """Accept connections until the lifecycle asks to stop, then close the listener.

    Each connection is served by its own thread. Workers are not awaited here;
    the caller decides how long to wait for them.
    """
    address = listener.getsockname()
    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": address[0],
            "port": address[1],
            "tls": context.tls_context is not None,
        },
    )

    retry_delay = 0.0
    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = listener.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                retry_delay = min(
                    max(retry_delay * 2, ACCEPT_RETRY_MIN_SECONDS),
                    ACCEPT_RETRY_MAX_SECONDS,
                )
                ACCEPT_LOGGER.error(
                    "Socket accept failed; retrying in %.3fs",
                    retry_delay,
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                lifecycle.wait_for_stop(retry_delay)
                continue

            retry_delay = 0.0
            _start_worker(client_socket, client_address, context)
    finally:
        listener.close()
        ACCEPT_LOGGER.info(
            "Listener closed",
            extra={"event": "listener_closed", "host": address[0], "port": address[1]},
        )
