"""Unit tests for the status-recording response wrapper."""

from apiserver.middleware.status_recorder import StatusRecorder
from tests.utils.http import FakeResponseWriter


def test_defaults_to_ok_when_nothing_written():
    """A handler that never sets a status is recorded as 200."""
    recorder = StatusRecorder(FakeResponseWriter())
    assert recorder.status == 200
    assert not recorder.wrote_header


def test_first_status_wins():
    """Subsequent write_header calls never change the recorded status."""
    writer = FakeResponseWriter()
    recorder = StatusRecorder(writer)

    recorder.write_header(404)
    recorder.write_header(500)
    recorder.write_header(200)

    assert recorder.status == 404
    assert writer.statuses == [404]


def test_body_write_implies_ok():
    """Writing a body before a status records and forwards 200."""
    writer = FakeResponseWriter()
    recorder = StatusRecorder(writer)

    recorder.write(b"hello")
    recorder.write_header(500)

    assert recorder.status == 200
    assert writer.statuses == [200]
    assert writer.body == b"hello"


def test_counts_bytes_and_shares_headers():
    """Headers pass through and body size is tracked."""
    writer = FakeResponseWriter()
    recorder = StatusRecorder(writer)

    recorder.headers["Content-Type"] = "text/plain"
    recorder.write(b"abc")
    recorder.write(b"defg")

    assert writer.headers == {"Content-Type": "text/plain"}
    assert recorder.bytes_written == 7
