"""Token lifecycle: reuse, refresh or re-authorise a cached Dropbox token."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional, Union

from dbx_transfer.application.exceptions import NoTokenAvailable, RefreshFailed
from dbx_transfer.config import DEFAULT_TOKEN_CACHE_PATH, get_env
from dbx_transfer.domain.token import EXPIRY_LEEWAY_SECONDS, TokenRecord, TokenState
from dbx_transfer.domain.token_storage import TokenStorage
from dbx_transfer.infrastructure import dropbox_oauth
from dbx_transfer.infrastructure.credentials import Credentials, resolve_credentials
from dbx_transfer.infrastructure.log_utils import log_message
from dbx_transfer.infrastructure.token_storage import JsonFileTokenStorage

Authorizer = Callable[[Credentials], TokenRecord]
Refresher = Callable[[TokenRecord], TokenRecord]
TokenInput = Union[str, TokenRecord, None]


class TokenManager:
    """Decides whether the cached token can be reused, refreshed, or must be replaced.

    ``authenticate`` may run the interactive browser flow; ``current_token`` never
    does and raises :class:`NoTokenAvailable` instead, which suits unattended jobs.
    """

    def __init__(
        self,
        storage: TokenStorage,
        *,
        authorize: Optional[Authorizer] = None,
        refresh: Optional[Refresher] = None,
        clock: Optional[Callable[[], float]] = None,
        leeway_seconds: float = EXPIRY_LEEWAY_SECONDS,
    ) -> None:
        self._storage = storage
        self._authorize = authorize or dropbox_oauth.run_authorization_flow
        self._refresh = refresh or dropbox_oauth.refresh_access_token
        self._clock = clock or time.time
        self._leeway = leeway_seconds

    @classmethod
    def for_path(cls, cache_path: Path | str | None = None, **kwargs) -> "TokenManager":
        """Build a manager over the JSON cache at ``cache_path`` (or the configured default)."""
        if cache_path is None:
            cache_path = get_env("DBX_TOKEN_CACHE_PATH", default=DEFAULT_TOKEN_CACHE_PATH)
        return cls(JsonFileTokenStorage(Path(cache_path).expanduser()), **kwargs)

    @property
    def storage(self) -> TokenStorage:
        return self._storage

    def classify(self, record: Optional[TokenRecord]) -> TokenState:
        if record is None:
            return TokenState.NO_CACHE
        if not record.is_expired(self._clock(), self._leeway):
            return TokenState.CACHED_VALID
        if record.has_refresh_token:
            return TokenState.CACHED_EXPIRED_REFRESHABLE
        return TokenState.CACHED_EXPIRED_NO_REFRESH

    def state(self) -> TokenState:
        return self.classify(self._storage.load())

    def authenticate(
        self,
        app_key: Optional[str] = None,
        app_secret: Optional[str] = None,
        *,
        force_refresh: bool = False,
    ) -> TokenRecord:
        """Return a usable token, authorising interactively when nothing better exists."""

        if force_refresh:
            log_message("Forced re-authorisation requested; ignoring cached token.", "INFO")
            return self._authorize_and_store(app_key, app_secret)

        record = self._storage.load()
        state = self.classify(record)

        if state is TokenState.CACHED_VALID:
            log_message(f"Using cached token from {self._storage.path}", "INFO")
            return record
        if state is TokenState.CACHED_EXPIRED_REFRESHABLE:
            return self._refresh_and_store(record)
        if state is TokenState.CACHED_EXPIRED_NO_REFRESH:
            log_message("Cached token expired and cannot be refreshed; re-authorising.", "INFO")
        return self._authorize_and_store(app_key, app_secret)

    def current_token(self, token: TokenInput = None) -> TokenRecord:
        """Return a token for an API call without ever prompting the user.

        A record passed in by the caller is refreshed when stale but never
        written to this manager's cache.
        """

        if isinstance(token, str):
            return TokenRecord.bearer(token)

        if token is not None:
            if self.classify(token) is TokenState.CACHED_EXPIRED_REFRESHABLE:
                return self._refresh_record(token)
            record = token
        else:
            record = self._storage.load()
        state = self.classify(record)

        if state is TokenState.CACHED_VALID:
            return record
        if state is TokenState.CACHED_EXPIRED_REFRESHABLE:
            return self._refresh_and_store(record)
        if state is TokenState.CACHED_EXPIRED_NO_REFRESH:
            raise NoTokenAvailable(
                "Token has expired and has no refresh token. Run `dbx auth` first."
            )
        raise NoTokenAvailable("No token provided. Run `dbx auth` first.")

    def clear(self) -> bool:
        removed = self._storage.clear()
        if removed:
            log_message(f"Token cleared from {self._storage.path}", "INFO")
        else:
            log_message("No cached token found", "INFO")
        return removed

    def _authorize_and_store(self, app_key: Optional[str], app_secret: Optional[str]) -> TokenRecord:
        credentials = resolve_credentials(app_key, app_secret)
        record = self._authorize(credentials)
        self._storage.save(record)
        log_message(f"Token cached to {self._storage.path}", "INFO")
        return record

    def _refresh_record(self, record: TokenRecord) -> TokenRecord:
        try:
            return self._refresh(record)
        except RefreshFailed:
            raise
        except Exception as exc:
            raise RefreshFailed(f"Dropbox token refresh failed: {exc}") from exc

    def _refresh_and_store(self, record: TokenRecord) -> TokenRecord:
        refreshed = self._refresh_record(record)
        self._storage.save(refreshed)
        log_message(f"Refreshed token cached to {self._storage.path}", "INFO")
        return refreshed


__all__ = ["TokenManager"]
