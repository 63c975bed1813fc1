"""Exceptions raised by server construction and startup."""


class ConfigurationError(ValueError):
    """Raised when configuration options conflict or cannot be parsed."""


class TransportError(OSError):
    """Raised when a listener cannot be bound or served."""


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the configured sandbox."""


class RequestEntityTooLarge(Exception):
    """Raised when a request body exceeds configured limits."""
