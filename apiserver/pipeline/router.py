"""Fixed route table dispatching on exact request paths."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from apiserver.domain.correlation_id import CorrelationLoggerAdapter
from apiserver.domain.http_types import (
    Handler,
    HttpRequest,
    ResponseWriter,
    write_response,
)
from apiserver.domain.response_builders import (
    method_not_allowed_response,
    not_found_response,
)

ROUTER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("apiserver.pipeline.router"), {}
)

UNMATCHED_ROUTE = "unmatched"


@dataclass(frozen=True)
class Route:
    """A handler registered for one path, optionally method-restricted."""

    path: str
    handler: Handler
    methods: Optional[frozenset[str]] = None

    def allows(self, method: str) -> bool:
        return self.methods is None or method in self.methods


class Router:
    """Maps request paths to handlers; itself a handler."""

    def __init__(self) -> None:
        self._routes: dict[str, Route] = {}

    def handle(
        self, path: str, handler: Handler, methods: Optional[Iterable[str]] = None
    ) -> None:
        """Register a handler. A GET route also answers HEAD."""
        allowed = None
        if methods is not None:
            allowed = {method.upper() for method in methods}
            if "GET" in allowed:
                allowed.add("HEAD")
            allowed = frozenset(allowed)
        if path in self._routes:
            raise ValueError(f"route already registered: {path}")
        self._routes[path] = Route(path, handler, allowed)

    @property
    def paths(self) -> list[str]:
        return list(self._routes)

    def route_label(self, request: HttpRequest) -> str:
        """Return the registered path a request maps to, for metric labels."""
        return request.path if request.path in self._routes else UNMATCHED_ROUTE

    def __call__(self, request: HttpRequest, writer: ResponseWriter) -> None:
        route = self._routes.get(request.path)
        if route is None:
            ROUTER_LOGGER.debug(
                "No matching route found",
                extra={"event": "route_not_found", "path": request.path},
            )
            write_response(writer, not_found_response())
            return

        if not route.allows(request.method):
            write_response(writer, method_not_allowed_response(route.methods))
            return

        if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            ROUTER_LOGGER.debug(
                "Route matched", extra={"event": "route_matched", "path": route.path}
            )
        route.handler(request, writer)
