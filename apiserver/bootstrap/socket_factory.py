"""Listening socket creation and TLS configuration."""

import logging
import socket
import ssl

from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.domain.errors import TransportError

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("apiserver.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_listener(host: str, port: int) -> socket.socket:
    """Bind a listening socket; accept() polls so shutdown can be noticed."""
    try:
        listener = socket.create_server((host, port))
    except (OSError, OverflowError) as error:
        SOCKET_LOGGER.critical(
            "Failed to bind listener",
            extra={
                "event": "bind_failed",
                "host": host,
                "port": port,
                "error": str(error),
            },
        )
        raise TransportError(f"cannot listen on {host or '*'}:{port}: {error}") from error
    listener.settimeout(ACCEPT_POLL_SECONDS)
    return listener


def build_tls_context(cert_path: str, key_path: str) -> ssl.SSLContext:
    """Return a server-side TLS context loaded with the certificate pair."""
    tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    tls_context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        tls_context.load_cert_chain(cert_path, key_path)
    except (OSError, ssl.SSLError) as error:
        SOCKET_LOGGER.critical(
            "Failed to load TLS certificates",
            extra={"event": "tls_load_failed", "error": str(error)},
        )
        raise TransportError(f"cannot load TLS certificate {cert_path!r}: {error}") from error
    return tls_context
