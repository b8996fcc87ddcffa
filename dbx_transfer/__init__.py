"""Minimal Dropbox client: OAuth token caching, CSV download and file upload."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from dbx_transfer.application.exceptions import (
    AuthorizationFailed,
    CorruptTokenRecord,
    DropboxClientError,
    HttpFailure,
    InvalidApiType,
    LocalFileNotFound,
    MissingCredentials,
    NoTokenAvailable,
    ParseFailure,
    RefreshFailed,
)
from dbx_transfer.application.token_manager import TokenManager
from dbx_transfer.application.transfers import (
    call_api,
    download_csv,
    get_current_account,
    upload_dataframe,
    upload_file,
)
from dbx_transfer.config import DEFAULT_TOKEN_CACHE_PATH
from dbx_transfer.domain.token import TokenRecord, TokenState
from dbx_transfer.infrastructure.request_builder import build_request

__version__ = "0.1.0"


def authenticate(
    app_key: Optional[str] = None,
    app_secret: Optional[str] = None,
    *,
    cache_path: Path | str | None = None,
    force_refresh: bool = False,
) -> TokenRecord:
    """Return a cached, refreshed or freshly authorised Dropbox token."""
    return TokenManager.for_path(cache_path).authenticate(
        app_key, app_secret, force_refresh=force_refresh
    )


def clear_token(cache_path: Path | str | None = None) -> bool:
    """Delete the cached token; ``True`` if one existed."""
    return TokenManager.for_path(cache_path).clear()


__all__ = [
    "AuthorizationFailed",
    "CorruptTokenRecord",
    "DEFAULT_TOKEN_CACHE_PATH",
    "DropboxClientError",
    "HttpFailure",
    "InvalidApiType",
    "LocalFileNotFound",
    "MissingCredentials",
    "NoTokenAvailable",
    "ParseFailure",
    "RefreshFailed",
    "TokenManager",
    "TokenRecord",
    "TokenState",
    "authenticate",
    "build_request",
    "call_api",
    "clear_token",
    "download_csv",
    "get_current_account",
    "upload_dataframe",
    "upload_file",
]
