"""Pure HTTP response builders."""

import json
from http import HTTPStatus
from typing import Any, Iterable

from apiserver.domain.http_types import HttpResponse


def json_response(payload: Any, status: int = HTTPStatus.OK) -> HttpResponse:
    """Return a compact JSON document terminated by a newline."""
    body = json.dumps(payload, separators=(",", ":")).encode() + b"\n"
    return HttpResponse(int(status), {"Content-Type": "application/json"}, body)


def html_response(document: bytes) -> HttpResponse:
    """Return raw HTML bytes."""
    return HttpResponse(
        int(HTTPStatus.OK), {"Content-Type": "text/html; charset=utf-8"}, document
    )


def text_response(
    message: str, status: int = HTTPStatus.OK, content_type: str = "text/plain"
) -> HttpResponse:
    """Return a plain text response."""
    return HttpResponse(
        int(status), {"Content-Type": f"{content_type}; charset=utf-8"}, message.encode()
    )


def not_found_response() -> HttpResponse:
    """Return a 404 response."""
    return text_response("404 page not found\n", HTTPStatus.NOT_FOUND)


def method_not_allowed_response(allowed_methods: Iterable[str]) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    response = text_response("Method Not Allowed\n", HTTPStatus.METHOD_NOT_ALLOWED)
    response.headers["Allow"] = ", ".join(sorted(allowed_methods))
    return response


def bad_request_response() -> HttpResponse:
    """Produce a 400 response for requests that could not be parsed."""
    return text_response("400 Bad Request\n", HTTPStatus.BAD_REQUEST)


def entity_too_large_response() -> HttpResponse:
    """Produce a 413 response."""
    return text_response("413 Payload Too Large\n", HTTPStatus.REQUEST_ENTITY_TOO_LARGE)


def redirect_response(location: str, status: int = HTTPStatus.MOVED_PERMANENTLY) -> HttpResponse:
    """Produce a redirect to the given absolute location."""
    response = text_response(f"Redirecting to {location}\n", status)
    response.headers["Location"] = location
    return response
