"""Handler chain composition."""

import logging
from typing import Sequence

from apiserver.domain.http_types import Handler, Middleware
from apiserver.middleware.access_log import access_logging


def compose_handler(
    routes: Handler, middlewares: Sequence[Middleware], logger: logging.LoggerAdapter
) -> Handler:
    """Wrap the route table in each middleware in order, then in access logging.

    The first middleware ends up innermost; the access logger is always the
    outermost layer so it times and observes everything beneath it.
    """
    handler = routes
    for middleware in middlewares:
        handler = middleware(handler)
    return access_logging(logger, handler)
