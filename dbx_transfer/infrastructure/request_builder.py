"""Builds authenticated requests against the Dropbox API bases."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import requests

from dbx_transfer.application.exceptions import InvalidApiType
from dbx_transfer.application.token_manager import TokenInput, TokenManager
from dbx_transfer.config import settings
from dbx_transfer.infrastructure.log_utils import log_message

API_BASE_URL = "https://api.dropboxapi.com/2"
CONTENT_BASE_URL = "https://content.dropboxapi.com/2"

BASE_URLS: Dict[str, str] = {
    "api": API_BASE_URL,
    "content": CONTENT_BASE_URL,
}

API_ARG_HEADER = "Dropbox-API-Arg"


def base_url_for(api_type: str) -> str:
    try:
        return BASE_URLS[api_type]
    except (KeyError, TypeError):
        raise InvalidApiType(
            f"Invalid api_type {api_type!r}. Must be 'api' or 'content'."
        ) from None


def api_arg_header(arguments: Mapping[str, Any]) -> str:
    """Compact JSON for the ``Dropbox-API-Arg`` header (ASCII only, as HTTP headers require)."""
    return json.dumps(dict(arguments), separators=(",", ":"), ensure_ascii=True)


def build_request(
    endpoint: str,
    api_type: str = "api",
    *,
    token: TokenInput = None,
    cache_path: Path | str | None = None,
    manager: Optional[TokenManager] = None,
    method: str = "POST",
) -> requests.Request:
    """Return an unsent request for ``endpoint`` carrying bearer authentication.

    ``api_type`` is validated before any token lookup. A string ``token`` is
    used as the bearer value directly; otherwise the token comes from
    ``manager`` (or one built over ``cache_path``), refreshed when due.
    """

    base_url = base_url_for(api_type)
    manager = manager or TokenManager.for_path(cache_path)
    record = manager.current_token(token)

    url = f"{base_url}/{endpoint.lstrip('/')}"
    return requests.Request(
        method=method.upper(),
        url=url,
        headers={"Authorization": f"Bearer {record.access_token}"},
    )


def send(
    request: requests.Request,
    *,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    """Send ``request``; non-2xx responses raise :class:`requests.HTTPError` unchanged."""

    log_message(f"{request.method} {request.url}", "DEBUG")
    owns_session = session is None
    session = session or requests.Session()
    try:
        response = session.send(
            session.prepare_request(request),
            timeout=timeout or settings.DBX_REQUEST_TIMEOUT,
        )
    finally:
        if owns_session:
            session.close()

    if response.status_code >= 400:
        log_message(
            f"{request.method} {request.url} returned HTTP {response.status_code}: "
            f"{response.text[:200]}",
            "ERROR",
        )
    response.raise_for_status()
    return response


__all__ = [
    "API_ARG_HEADER",
    "API_BASE_URL",
    "BASE_URLS",
    "CONTENT_BASE_URL",
    "api_arg_header",
    "base_url_for",
    "build_request",
    "send",
]
