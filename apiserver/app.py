"""The API server: configuration, logger and handler chain in one place."""

import functools
import logging
from typing import Optional, Sequence

from prometheus_client import CollectorRegistry

from apiserver.bootstrap.config import (
    AUTO_TLS_HTTP_PORT,
    AUTO_TLS_HTTPS_PORT,
    DEFAULT_PORT,
    Configuration,
    validate_config,
)
from apiserver.bootstrap.logging_setup import configure_logging
from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.domain.errors import ConfigurationError
from apiserver.domain.http_types import Handler, Middleware, write_response
from apiserver.handlers.acme_challenge import challenge_handler
from apiserver.handlers.system_handlers import handle_docs, handle_health
from apiserver.lifecycle.state import ServerLifecycle
from apiserver.middleware.access_log import ACCESS_COMPONENT
from apiserver.middleware.metrics import MetricsRecorder
from apiserver.pipeline.chain import compose_handler
from apiserver.pipeline.router import Router
from apiserver.transport.certificates import CertbotManager, CertificateManager
from apiserver.transport.modes import (
    TransportMode,
    select_transport_mode,
    serve_auto_tls,
    serve_custom_cert,
    serve_plain_http,
)

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("apiserver.server"), {})


class Server:
    """A configured, not yet listening, API server.

    Construction normalizes and validates the configuration, sets up logging
    and builds the handler chain once; :meth:`start` then blocks serving it.

    Raises:
        ConfigurationError: options conflict (when validation is enabled) or
            the log level cannot be parsed.
    """

    def __init__(
        self,
        config: Configuration,
        middlewares: Sequence[Middleware] = (),
        certificates: Optional[CertificateManager] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        config = config.normalized()
        if config.validation:
            error = validate_config(config)
            if error is not None:
                raise error

        self.config = config
        try:
            self.logger = configure_logging(
                config.log_level, config.log_format, config.log_destination
            )
        except (ValueError, OSError) as error:
            raise ConfigurationError(f"cannot configure logging: {error}") from error
        self.access_logger = CorrelationLoggerAdapter(
            logging.getLogger(f"apiserver.{ACCESS_COMPONENT}"), {}
        )
        self.lifecycle = ServerLifecycle()
        self.certificates = certificates or CertbotManager(
            config.acme_webroot, config.acme_email
        )

        self.router = Router()
        chain: list[Middleware] = []
        self.metrics: Optional[MetricsRecorder] = None
        if config.metrics:
            self.metrics = MetricsRecorder(registry)
            self.router.handle("/metrics", self._handle_metrics, methods=["GET"])
            chain.append(
                functools.partial(
                    self.metrics.middleware, handler_label=self.router.route_label
                )
            )
        chain.extend(middlewares)
        self.router.handle("/docs", handle_docs)
        self.router.handle("/health", handle_health, methods=["GET"])

        self.handler: Handler = compose_handler(self.router, chain, self.access_logger)

    def _handle_metrics(self, _request, writer) -> None:
        write_response(writer, self.metrics.exposition())

    @property
    def mode(self) -> TransportMode:
        return select_transport_mode(self.config)

    def start(self) -> None:
        """Listen and serve until :meth:`shutdown` is called.

        Raises:
            TransportError: the listener could not be bound or served.
        """
        mode = self.mode
        log_extra = {"event": "server_starting", "mode": mode.value}
        if mode is TransportMode.AUTO_TLS:
            SERVER_LOGGER.info(
                "Starting server on :80 and :443",
                extra={**log_extra, "domains": list(self.config.domains)},
            )
            expected_ports = (DEFAULT_PORT, AUTO_TLS_HTTP_PORT, AUTO_TLS_HTTPS_PORT)
            if self.config.port not in expected_ports:
                SERVER_LOGGER.warning(
                    "Configured port is ignored when auto TLS is enabled",
                    extra={"event": "port_ignored", "port": self.config.port},
                )
        else:
            SERVER_LOGGER.info(
                "Starting server on %s:%d",
                self.config.host,
                self.config.port,
                extra={**log_extra, "host": self.config.host, "port": self.config.port},
            )

        try:
            if mode is TransportMode.AUTO_TLS:
                challenge = compose_handler(
                    challenge_handler(self.config.acme_webroot), [], self.access_logger
                )
                serve_auto_tls(
                    self.config, self.handler, self.lifecycle, self.certificates, challenge
                )
            elif mode is TransportMode.CUSTOM_CERT:
                serve_custom_cert(self.config, self.handler, self.lifecycle)
            else:
                serve_plain_http(self.config, self.handler, self.lifecycle)
        finally:
            self.lifecycle.wait_for_workers(self.config.shutdown_grace_seconds)
            SERVER_LOGGER.info("Server stopped", extra={"event": "server_stopped"})

    def shutdown(self, reason: str = "shutdown requested") -> None:
        """Ask :meth:`start` to stop accepting connections and return."""
        self.lifecycle.request_stop(reason)
