"""Response writer wrapper that observes the status actually written."""

from http import HTTPStatus

from apiserver.domain.http_types import ResponseWriter


class StatusRecorder:
    """Wraps a ResponseWriter to record the final status and body size.

    The first status written wins, explicit or implied by the first body
    write. A handler that never sets a status is recorded as 200.
    """

    def __init__(self, writer: ResponseWriter) -> None:
        self._writer = writer
        self.status = int(HTTPStatus.OK)
        self.wrote_header = False
        self.bytes_written = 0

    @property
    def headers(self) -> dict[str, str]:
        return self._writer.headers

    def write_header(self, status: int) -> None:
        if self.wrote_header:
            return

        self.status = int(status)
        self._writer.write_header(status)
        self.wrote_header = True

    def write(self, data: bytes) -> int:
        if not self.wrote_header:
            self.write_header(HTTPStatus.OK)
        written = self._writer.write(data)
        self.bytes_written += written
        return written
