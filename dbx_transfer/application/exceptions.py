"""Exception hierarchy for dbx-transfer.

Errors raised by the HTTP layer and by the CSV/JSON decoders are never wrapped;
``HttpFailure`` and ``ParseFailure`` name the base classes callers can catch.
"""

from __future__ import annotations

import requests

from dbx_transfer.domain.errors import CorruptTokenRecord, DropboxClientError


class MissingCredentials(DropboxClientError):
    """Raised when the Dropbox app key or secret cannot be resolved."""


class InvalidApiType(DropboxClientError, ValueError):
    """Raised when a request targets an unknown API base."""


class NoTokenAvailable(DropboxClientError):
    """Raised when no token was supplied and none is cached."""


class AuthorizationFailed(DropboxClientError):
    """Raised when the interactive authorisation-code flow does not complete."""


class RefreshFailed(DropboxClientError):
    """Raised when exchanging a refresh token for a new access token fails."""

    def __init__(self, message: str, *, http_status: int | None = None):
        super().__init__(message)
        self.http_status = http_status


class LocalFileNotFound(DropboxClientError, FileNotFoundError):
    """Raised when an upload source does not exist on the local filesystem."""


# Pass-through error families.
HttpFailure = requests.RequestException
ParseFailure = ValueError


__all__ = [
    "DropboxClientError",
    "MissingCredentials",
    "InvalidApiType",
    "NoTokenAvailable",
    "CorruptTokenRecord",
    "AuthorizationFailed",
    "RefreshFailed",
    "LocalFileNotFound",
    "HttpFailure",
    "ParseFailure",
]
