"""Transport mode selection and the three ways of binding the server."""

import enum
import logging
import ssl
import threading

from apiserver.bootstrap.config import (
    AUTO_TLS_HTTP_PORT,
    AUTO_TLS_HTTPS_PORT,
    Configuration,
)
from apiserver.bootstrap.socket_factory import build_tls_context, create_listener
from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.domain.errors import TransportError
from apiserver.domain.http_types import Handler
from apiserver.lifecycle.state import ServerLifecycle
from apiserver.transport.accept_loop import serve_forever
from apiserver.transport.certificates import CertificateManager, CertificatePaths
from apiserver.transport.context import WorkerContext

MODES_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("apiserver.transport.modes"), {}
)

RENEW_INTERVAL_SECONDS = 12 * 60 * 60


class TransportMode(str, enum.Enum):
    """The mutually exclusive ways a validated configuration is served."""

    AUTO_TLS = "auto_tls"
    CUSTOM_CERT = "custom_cert"
    PLAIN_HTTP = "plain_http"


def select_transport_mode(config: Configuration) -> TransportMode:
    """Decide how to bind; auto TLS takes precedence over a custom pair."""
    if config.auto_tls:
        return TransportMode.AUTO_TLS
    if config.custom_cert:
        return TransportMode.CUSTOM_CERT
    return TransportMode.PLAIN_HTTP


def serve_plain_http(
    config: Configuration, handler: Handler, lifecycle: ServerLifecycle
) -> None:
    listener = create_listener(config.host, config.port)
    context = WorkerContext(handler, config.timeouts, None, lifecycle)
    serve_forever(listener, context, lifecycle)


def serve_custom_cert(
    config: Configuration, handler: Handler, lifecycle: ServerLifecycle
) -> None:
    tls_context = build_tls_context(config.tls_cert, config.tls_key)
    listener = create_listener(config.host, config.port)
    context = WorkerContext(handler, config.timeouts, tls_context, lifecycle)
    serve_forever(listener, context, lifecycle)


def _renew_periodically(
    certificates: CertificateManager,
    tls_context: ssl.SSLContext,
    paths: CertificatePaths,
    lifecycle: ServerLifecycle,
    interval: float,
) -> None:
    while not lifecycle.wait_for_stop(interval):
        if not certificates.renew():
            MODES_LOGGER.warning(
                "Certificate renewal failed", extra={"event": "renewal_failed"}
            )
            continue
        try:
            # Only new handshakes pick up the reloaded chain.
            tls_context.load_cert_chain(paths.fullchain, paths.privkey)
        except (OSError, ssl.SSLError) as error:
            MODES_LOGGER.error(
                "Failed to reload renewed certificate",
                extra={"event": "renewal_reload_failed", "error": str(error)},
            )
            continue
        MODES_LOGGER.info("Certificate reloaded", extra={"event": "renewal_reloaded"})


def serve_auto_tls(
    config: Configuration,
    handler: Handler,
    lifecycle: ServerLifecycle,
    certificates: CertificateManager,
    challenge: Handler,
    renew_interval: float = RENEW_INTERVAL_SECONDS,
) -> None:
    """Serve challenges and redirects on :80, obtain certificates, serve :443.

    The configured port is not used in this mode.
    """
    http_listener = create_listener(config.host, AUTO_TLS_HTTP_PORT)
    http_context = WorkerContext(challenge, config.timeouts, None, lifecycle)
    http_thread = threading.Thread(
        target=serve_forever,
        args=(http_listener, http_context, lifecycle),
        name="acme-http",
        daemon=True,
    )
    http_thread.start()

    try:
        paths = certificates.obtain(config.domains)
        tls_context = build_tls_context(paths.fullchain, paths.privkey)
        https_listener = create_listener(config.host, AUTO_TLS_HTTPS_PORT)
    except Exception as error:
        lifecycle.request_stop(str(error))
        http_thread.join()
        if isinstance(error, OSError) and not isinstance(error, TransportError):
            raise TransportError(f"certificate setup failed: {error}") from error
        raise

    renewer = threading.Thread(
        target=_renew_periodically,
        args=(certificates, tls_context, paths, lifecycle, renew_interval),
        name="certificate-renewal",
        daemon=True,
    )
    renewer.start()

    https_context = WorkerContext(handler, config.timeouts, tls_context, lifecycle)
    try:
        serve_forever(https_listener, https_context, lifecycle)
    finally:
        lifecycle.request_stop("https listener stopped")
        http_thread.join()
        renewer.join()
