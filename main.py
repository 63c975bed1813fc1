"""Command line entry point for the API server."""

import logging
import signal
import sys
from typing import Optional

from apiserver.app import Server
from apiserver.bootstrap.cli import config_from_args, parse_cli_args, version_string
from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.domain.errors import ConfigurationError, TransportError

MAIN_LOGGER = CorrelationLoggerAdapter(logging.getLogger("apiserver.main"), {})


def run_server_command(args) -> int:
    """Build the server from parsed arguments and serve until signalled."""
    try:
        server = Server(config_from_args(args))
    except ConfigurationError as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1

    def shutdown_handler(signum: int, _frame) -> None:
        MAIN_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "signal_received", "signal": signal.Signals(signum).name},
        )
        server.shutdown(f"signal {signum}")

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    try:
        server.start()
    except TransportError as error:
        MAIN_LOGGER.critical(
            "Server failed", extra={"event": "server_failed", "error": str(error)}
        )
        return 1
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Dispatch the ``server`` and ``version`` commands."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    if args.command == "version":
        print(version_string())
        return 0
    return run_server_command(args)


if __name__ == "__main__":
    sys.exit(main())
