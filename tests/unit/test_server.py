"""Unit tests for Server construction and handler composition."""

import logging

import pytest

from apiserver.app import Server
from apiserver.bootstrap.config import Configuration
from apiserver.domain.errors import ConfigurationError
from apiserver.domain.http_types import HttpRequest
from apiserver.transport.modes import TransportMode
from tests.utils.http import FakeResponseWriter


def make_request(path, method="GET"):
    """Build a bare request."""
    return HttpRequest(method, path, {}, b"", remote_addr="127.0.0.1:40000")


def test_auto_tls_with_cert_is_rejected():
    """Auto TLS plus a certificate fails construction."""
    with pytest.raises(ConfigurationError):
        Server(Configuration(auto_tls=True, tls_cert="x"))


def test_auto_tls_with_domain_is_accepted():
    """Auto TLS with a domain builds a server in auto TLS mode."""
    server = Server(Configuration(auto_tls=True, domains=["example.com"]))
    assert server.mode is TransportMode.AUTO_TLS
    assert server.config.domains == ("example.com",)


def test_log_format_is_normalized_before_storage():
    """Upper-case formats are accepted and stored lower-case."""
    server = Server(Configuration(log_format="JSON"))
    assert server.config.log_format == "json"


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("tls_cert", "cert"),
        ("tls_key", "key"),
        ("port", 3000),
        ("metrics", True),
        ("log_level", "DEBUG"),
    ],
)
def test_options_are_stored_when_validation_disabled(field, value):
    """Partial configurations survive construction without validation."""
    server = Server(Configuration(validation=False, **{field: value}))
    assert getattr(server.config, field) == value


def test_validation_disabled_tolerates_unknown_format():
    """An unknown format falls back to text output."""
    server = Server(Configuration(validation=False, log_format="fake"))
    assert server.config.log_format == "fake"


def test_unparseable_level_fails_even_without_validation():
    """The logger cannot be built from an unknown level."""
    with pytest.raises(ConfigurationError):
        Server(Configuration(validation=False, log_level="chatty"))


def test_validation_flag_is_kept():
    """The validation flag is part of the stored configuration."""
    assert Server(Configuration(validation=True)).config.validation is True


def test_health_through_full_chain():
    """GET /health answers 200 with the status document."""
    server = Server(Configuration())
    writer = FakeResponseWriter()

    server.handler(make_request("/health"), writer)

    assert writer.status == 200
    assert writer.body.strip() == b'{"status":"ok"}'


def test_metrics_route_only_when_enabled():
    """/metrics is registered as an ordinary route when metrics are on."""
    assert "/metrics" not in Server(Configuration()).router.paths

    server = Server(Configuration(metrics=True))
    server.handler(make_request("/health"), FakeResponseWriter())
    writer = FakeResponseWriter()
    server.handler(make_request("/metrics"), writer)

    assert writer.status == 200
    assert b'handler="/health"' in writer.body


def test_access_log_wraps_everything(caplog):
    """Middleware runs in the order supplied inside metrics and the access log."""
    calls = []

    def tracing(name):
        def middleware(next_handler):
            def handler(request, writer):
                calls.append(f"{name}:before")
                next_handler(request, writer)
                calls.append(f"{name}:after")

            return handler

        return middleware

    server = Server(
        Configuration(metrics=True), middlewares=[tracing("first"), tracing("second")]
    )
    logging.getLogger("apiserver").propagate = True
    caplog.set_level(logging.INFO, logger="apiserver")

    server.handler(make_request("/health"), FakeResponseWriter())

    assert calls == ["second:before", "first:before", "first:after", "second:after"]
    access = [r for r in caplog.records if r.name == "apiserver.access"]
    assert len(access) == 1
    assert access[0].status == 200
    assert access[0].path == "/health"


def test_middleware_status_change_is_what_gets_logged(caplog):
    """The access log sees the status a middleware actually sent."""

    def deny(_next_handler):
        def handler(_request, writer):
            writer.write_header(500)

        return handler

    server = Server(Configuration(), middlewares=[deny])
    logging.getLogger("apiserver").propagate = True
    caplog.set_level(logging.INFO, logger="apiserver")

    server.handler(make_request("/health"), FakeResponseWriter())

    (record,) = [r for r in caplog.records if r.name == "apiserver.access"]
    assert record.status == 500
    assert record.levelno == logging.ERROR


@pytest.mark.parametrize(
    ("config", "mode"),
    [
        (Configuration(auto_tls=True, domains=("a.example",)), TransportMode.AUTO_TLS),
        (Configuration(tls_cert="c", tls_key="k"), TransportMode.CUSTOM_CERT),
        (Configuration(), TransportMode.PLAIN_HTTP),
    ],
)
def test_mode_follows_configuration(config, mode):
    """The server exposes the transport mode its configuration selects."""
    assert Server(config).mode is mode


def test_unwritable_log_destination_is_configuration_error(tmp_path):
    """A log file that cannot be opened is reported like any other bad option."""
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    with pytest.raises(ConfigurationError, match="cannot configure logging"):
        Server(Configuration(log_destination=str(blocker / "logs" / "server.log")))
