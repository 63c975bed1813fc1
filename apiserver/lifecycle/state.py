"""Server lifecycle state shared by listeners and their workers."""

import logging
import threading
import time

from apiserver.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("apiserver.lifecycle"), {})


class ServerLifecycle:
    """Stop signal and worker thread tracking for one server.

    Every listener of a server polls the same lifecycle, so a single
    ``request_stop`` ends all of them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._workers: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        """Check if listeners should stop accepting new connections."""
        return self._stop_event.is_set()

    def request_stop(self, reason: str = "shutdown requested") -> None:
        """Ask every listener to stop; idempotent."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown",
            extra={"event": "shutdown_requested", "reason": reason},
        )

    def wait_for_stop(self, timeout: float) -> bool:
        """Block until a stop is requested or the timeout elapses."""
        return self._stop_event.wait(timeout)

    def register_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.discard(thread)

    def has_worker(self, thread: threading.Thread) -> bool:
        with self._lock:
            return thread in self._workers

    def active_worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
