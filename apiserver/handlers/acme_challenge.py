"""Port 80 handler used while automatic TLS is active."""

import logging
import re
from pathlib import Path

from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.domain.errors import ForbiddenPath
from apiserver.domain.http_types import (
    Handler,
    HttpRequest,
    ResponseWriter,
    write_response,
)
from apiserver.domain.response_builders import (
    not_found_response,
    redirect_response,
    text_response,
)

ACME_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("apiserver.handlers.acme"), {}
)

CHALLENGE_PREFIX = "/.well-known/acme-challenge/"
TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def resolve_challenge_path(webroot: str, token: str) -> Path:
    """Resolve a challenge token to its file under the webroot."""
    if not TOKEN_PATTERN.match(token):
        raise ForbiddenPath(token)

    challenge_dir = (Path(webroot) / CHALLENGE_PREFIX.strip("/")).resolve()
    target = (challenge_dir / token).resolve()
    if target.parent != challenge_dir:
        raise ForbiddenPath(token)
    return target


def https_location(request: HttpRequest) -> str:
    """Build the HTTPS URL equivalent to the request, dropping any port."""
    host = request.headers.get("host", "")
    if host.startswith("["):
        host = host[: host.index("]") + 1] if "]" in host else host
    else:
        host = host.split(":", 1)[0]
    return f"https://{host}{request.target}"


def challenge_handler(webroot: str) -> Handler:
    """Serve HTTP-01 challenge files and redirect everything else to HTTPS."""

    def handler(request: HttpRequest, writer: ResponseWriter) -> None:
        if request.method in {"GET", "HEAD"} and request.path.startswith(
            CHALLENGE_PREFIX
        ):
            token = request.path[len(CHALLENGE_PREFIX) :]
            try:
                path = resolve_challenge_path(webroot, token)
                content = path.read_text()
            except (ForbiddenPath, OSError):
                ACME_LOGGER.warning(
                    "Unknown ACME challenge requested",
                    extra={"event": "acme_challenge_missing", "path": request.path},
                )
                write_response(writer, not_found_response())
                return
            ACME_LOGGER.info(
                "Served ACME challenge",
                extra={"event": "acme_challenge_served", "path": request.path},
            )
            write_response(writer, text_response(content))
            return

        write_response(writer, redirect_response(https_location(request)))

    return handler
