"""Command line and environment parsing into a Configuration value."""

import argparse
import os
from importlib import metadata

from apiserver.bootstrap.config import (
    DEFAULT_ACME_WEBROOT,
    DEFAULT_HOST,
    DEFAULT_LOG_DESTINATION,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PORT,
    DEFAULT_SHUTDOWN_GRACE_SECONDS,
    Configuration,
)

PROJECT = "apiserver"
ENV_PREFIX = "APP"

try:
    VERSION = metadata.version(PROJECT)
except metadata.PackageNotFoundError:
    VERSION = "dev"

# Stamped by the release pipeline.
COMMIT = os.getenv("APP_BUILD_COMMIT", "none")
BUILD_DATE = os.getenv("APP_BUILD_DATE", "unknown")


def env_name(flag: str) -> str:
    """Return the environment variable backing a long flag name."""
    return f"{ENV_PREFIX}_{flag.upper().replace('-', '_')}"


def _env_str(flag: str, default: str) -> str:
    return os.getenv(env_name(flag), default)


def _env_int(flag: str, default: int) -> int:
    value = os.getenv(env_name(flag))
    return int(value) if value is not None else default


def _env_bool(flag: str, default: bool) -> bool:
    value = os.getenv(env_name(flag))
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_list(flag: str, default: list[str]) -> list[str]:
    value = os.getenv(env_name(flag))
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def version_string() -> str:
    """Return the one-line version banner."""
    return f"{PROJECT} {VERSION} (commit: {COMMIT}, built: {BUILD_DATE})"


def _add_server_flags(parser: argparse.ArgumentParser) -> None:
    def add(*names: str, **kwargs) -> None:
        flag = names[-1].lstrip("-")
        kwargs["help"] = f"{kwargs.get('help', '')} (env: {env_name(flag)})".strip()
        parser.add_argument(*names, **kwargs)

    add(
        "-a",
        "--auto-tls",
        action=argparse.BooleanOptionalAction,
        default=_env_bool("auto-tls", False),
        help="Enable automatic TLS via Let's Encrypt. Requires port 80/443 open "
        "to the internet for domain validation.",
    )
    add(
        "-f",
        "--log-format",
        default=_env_str("log-format", DEFAULT_LOG_FORMAT),
        help="Server logging format. Supported values are 'text' and 'json'.",
    )
    add(
        "-l",
        "--log-level",
        default=_env_str("log-level", DEFAULT_LOG_LEVEL),
        help="Server logging level.",
    )
    add(
        "-d",
        "--domains",
        action="append",
        default=None,
        help="Domain to issue a certificate for; repeat for several. "
        "Must be used with --auto-tls.",
    )
    add(
        "-m",
        "--metrics",
        action=argparse.BooleanOptionalAction,
        default=_env_bool("metrics", False),
        help="Enable Prometheus metrics instrumentation.",
    )
    add(
        "-p",
        "--port",
        type=int,
        default=_env_int("port", DEFAULT_PORT),
        help="Port to listen on. Ignored with --auto-tls, which listens on "
        "80 and 443.",
    )
    add(
        "--tls-certificate",
        default=_env_str("tls-certificate", ""),
        help="Path to custom TLS certificate. Cannot be used with --auto-tls.",
    )
    add(
        "--tls-key",
        default=_env_str("tls-key", ""),
        help="Path to custom TLS key. Cannot be used with --auto-tls.",
    )
    add(
        "--host",
        default=_env_str("host", DEFAULT_HOST),
        help="Address to bind. Defaults to all interfaces.",
    )
    add(
        "--log-destination",
        default=_env_str("log-destination", DEFAULT_LOG_DESTINATION),
        help="stdout or a file path.",
    )
    add(
        "--shutdown-grace-seconds",
        type=int,
        default=_env_int("shutdown-grace-seconds", DEFAULT_SHUTDOWN_GRACE_SECONDS),
        help="Grace period in seconds for graceful shutdown.",
    )
    add(
        "--acme-email",
        default=_env_str("acme-email", ""),
        help="Contact email registered with the ACME account.",
    )
    add(
        "--acme-webroot",
        default=_env_str("acme-webroot", DEFAULT_ACME_WEBROOT),
        help="Directory HTTP-01 challenge files are written to and served from.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Return the top-level parser with its server and version commands."""
    parser = argparse.ArgumentParser(
        prog=PROJECT, description="A template project for REST APIs"
    )
    parser.add_argument("--version", action="version", version=version_string())
    commands = parser.add_subparsers(dest="command", required=True)

    server_parser = commands.add_parser("server", help=f"Start the {PROJECT} server")
    _add_server_flags(server_parser)

    commands.add_parser("version", help="Print the version information")
    return parser


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    args = build_parser().parse_args(argv)
    if args.command == "server" and args.domains is None:
        args.domains = _env_list("domains", [])
    return args


def config_from_args(args: argparse.Namespace) -> Configuration:
    """Build the server configuration from parsed arguments."""
    return Configuration(
        port=args.port,
        auto_tls=args.auto_tls,
        domains=tuple(args.domains),
        tls_cert=args.tls_certificate,
        tls_key=args.tls_key,
        log_format=args.log_format,
        log_level=args.log_level,
        metrics=args.metrics,
        validation=True,
        host=args.host,
        log_destination=args.log_destination,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        acme_email=args.acme_email,
        acme_webroot=args.acme_webroot,
    )
