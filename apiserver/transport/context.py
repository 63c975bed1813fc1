"""Context object shared across worker threads."""

import ssl
from dataclasses import dataclass, field
from typing import Optional

from apiserver.bootstrap.config import ConnectionTimeouts
from apiserver.domain.http_types import Handler
from apiserver.lifecycle.state import ServerLifecycle


@dataclass
class WorkerContext:
    """Dependencies shared, read-only, by every connection of one listener."""

    handler: Handler
    timeouts: ConnectionTimeouts = field(default_factory=ConnectionTimeouts)
    tls_context: Optional[ssl.SSLContext] = None
    lifecycle: Optional[ServerLifecycle] = None
