"""Errors raised by the token domain types."""


class DropboxClientError(Exception):
    """Base exception for failures originating in this package."""


class CorruptTokenRecord(DropboxClientError, ValueError):
    """Raised when a persisted token payload has no usable access token."""


__all__ = ["CorruptTokenRecord", "DropboxClientError"]
