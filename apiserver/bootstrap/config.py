"""Server configuration value and its consistency checks."""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from apiserver.domain.errors import ConfigurationError

DEFAULT_PORT = 8080
DEFAULT_HOST = ""
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_FORMAT = "text"
DEFAULT_LOG_DESTINATION = "stdout"
DEFAULT_SHUTDOWN_GRACE_SECONDS = 30
DEFAULT_ACME_WEBROOT = "/tmp/acme-challenges"
DEFAULT_CONNECTION_TIMEOUT = 5.0

AUTO_TLS_HTTP_PORT = 80
AUTO_TLS_HTTPS_PORT = 443

MAX_BODY_BYTES = 5 * 1024 * 1024
HEADER_DELIMITER = b"\r\n\r\n"

VALID_LOG_FORMATS = ("", "text", "json")

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


def parse_log_level(level_name: str) -> int:
    """Translate a level name into a logging module level, case-insensitively."""
    try:
        return LOG_LEVELS[level_name.strip().lower()]
    except KeyError:
        raise ValueError(f"not a valid log level: {level_name!r}") from None


@dataclass(frozen=True)
class ConnectionTimeouts:
    """Per-connection limits applied by every transport mode, in seconds."""

    read_header: float = DEFAULT_CONNECTION_TIMEOUT
    read: float = DEFAULT_CONNECTION_TIMEOUT
    write: float = DEFAULT_CONNECTION_TIMEOUT
    idle: float = DEFAULT_CONNECTION_TIMEOUT


@dataclass(frozen=True)
class Configuration:
    """Options the server is built from.

    Exactly one transport mode is active once validation passes: automatic
    TLS, a custom certificate/key pair, or plain HTTP.
    """

    port: int = DEFAULT_PORT
    auto_tls: bool = False
    domains: tuple[str, ...] = ()
    tls_cert: str = ""
    tls_key: str = ""
    log_format: str = DEFAULT_LOG_FORMAT
    log_level: str = DEFAULT_LOG_LEVEL
    metrics: bool = False
    validation: bool = True
    host: str = DEFAULT_HOST
    log_destination: str = DEFAULT_LOG_DESTINATION
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    acme_email: str = ""
    acme_webroot: str = DEFAULT_ACME_WEBROOT
    timeouts: ConnectionTimeouts = ConnectionTimeouts()

    def __post_init__(self) -> None:
        # Lists coming from argparse or callers are frozen into tuples.
        if not isinstance(self.domains, tuple):
            object.__setattr__(self, "domains", tuple(self.domains))

    def normalized(self) -> "Configuration":
        """Return a copy with the log format lower-cased."""
        return dataclasses.replace(self, log_format=(self.log_format or "").lower())

    @property
    def custom_cert(self) -> bool:
        """True when both a certificate and a key path are configured."""
        return bool(self.tls_cert and self.tls_key)


def validate_config(config: Configuration) -> Optional[ConfigurationError]:
    """Return the first conflict found in the configuration, or None."""
    if config.auto_tls and (config.tls_cert or config.tls_key):
        return ConfigurationError(
            "conflicting TLS modes: auto TLS cannot be combined with a TLS "
            "certificate or key"
        )

    if config.auto_tls and not config.domains:
        return ConfigurationError("auto TLS requires at least one domain")

    if bool(config.tls_cert) != bool(config.tls_key):
        missing = "key" if config.tls_cert else "certificate"
        return ConfigurationError(
            f"cert/key must be supplied as a pair: TLS {missing} is missing"
        )

    if (config.log_format or "").lower() not in VALID_LOG_FORMATS:
        return ConfigurationError(
            f"unsupported log format {config.log_format!r}, valid log formats "
            "are: text, json"
        )

    if config.log_level:
        try:
            parse_log_level(config.log_level)
        except ValueError as error:
            return ConfigurationError(f"unsupported log level: {error}")

    return None
