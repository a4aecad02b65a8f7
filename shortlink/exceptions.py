"""Exceptions raised by the shortlink resolution layer.

Classes:
    ShortlinkError:
        Generic base class for shortlink exceptions.

    ConfigError:
        Raised when the startup configuration is missing or malformed.

    LinkNotFoundError:
        Raised when no long URL is stored for a short code.

    StoreUnavailableError:
        Raised when the durable store cannot be reached or fails a request.

Example:
    >>> from shortlink.exceptions import LinkNotFoundError
    >>> raise LinkNotFoundError("Short URL with code 'abc123' not found.")
    Traceback (most recent call last):
        ...
    shortlink.exceptions.LinkNotFoundError: Short URL with code 'abc123' not found.
"""

__all__ = ["ShortlinkError", "ConfigError", "LinkNotFoundError", "StoreUnavailableError"]


class ShortlinkError(Exception):
    """Generic base class for shortlink exceptions."""


class ConfigError(ShortlinkError):
    """Raised when the startup configuration is missing or malformed."""


class LinkNotFoundError(ShortlinkError):
    """Raised when no long URL is stored for a short code."""


class StoreUnavailableError(ShortlinkError):
    """Raised when the durable store cannot be reached or fails a request."""
