"""Health and documentation handlers."""

from pathlib import Path

from apiserver.domain.http_types import HttpRequest, ResponseWriter, write_response
from apiserver.domain.response_builders import html_response, json_response

API_DOCS = (Path(__file__).parent / "api.html").read_bytes()


def handle_health(_request: HttpRequest, writer: ResponseWriter) -> None:
    """Report that the application is up and listening.

    Example response::

        {"status":"ok"}
    """
    write_response(writer, json_response({"status": "ok"}))


def handle_docs(_request: HttpRequest, writer: ResponseWriter) -> None:
    """Serve the embedded API documentation page for any method."""
    write_response(writer, html_response(API_DOCS))
