"""Per-request correlation ids carried in a contextvar and the X-Request-ID header."""

import contextvars
import logging
import re
import uuid
from typing import Any, Mapping, MutableMapping, Optional

LOGGER_PREFIX = "apiserver."
REQUEST_ID_HEADER = "X-Request-ID"
# Visible ASCII only; longer or odd values from clients are replaced.
_ACCEPTED_REQUEST_ID = re.compile(r"^[\x21-\x7e]{1,128}$")

_current_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _current_request_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _current_request_id.set(correlation_id)


def clear_correlation_id() -> None:
    _current_request_id.set(None)


def begin_request() -> str:
    """Assign a fresh id before anything about the request is known."""
    request_id = generate_correlation_id()
    set_correlation_id(request_id)
    return request_id


def adopt_request_id(headers: Mapping[str, str]) -> Optional[str]:
    """Take over the client's X-Request-ID when it is usable.

    ``headers`` uses lower-cased names. Returns the id now in effect.
    """
    incoming = headers.get(REQUEST_ID_HEADER.lower(), "").strip()
    if incoming and _ACCEPTED_REQUEST_ID.match(incoming):
        set_correlation_id(incoming)
    return get_correlation_id()


def request_id_headers() -> dict[str, str]:
    """Response headers echoing the current id, empty outside a request."""
    request_id = get_correlation_id()
    return {REQUEST_ID_HEADER: request_id} if request_id else {}


def component_for(logger_name: str) -> str:
    """Short component name: the logger name without the project prefix."""
    if logger_name.startswith(LOGGER_PREFIX):
        return logger_name[len(LOGGER_PREFIX) :]
    return logger_name


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Adds ``correlation_id`` and ``component`` to every record.

    A ``component`` passed explicitly in ``extra`` is kept, so the access log
    can report as ``access`` whatever logger it writes through.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["correlation_id"] = get_correlation_id() or "-"
        extra.setdefault("component", component_for(self.logger.name))
        kwargs["extra"] = extra
        return msg, kwargs
