"""OAuth flows against the Dropbox authorisation server."""

from __future__ import annotations

import time
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlparse

import requests
from dropbox import DropboxOAuth2Flow
from dropbox.oauth import (
    BadRequestException,
    BadStateException,
    CsrfException,
    NotApprovedException,
    ProviderException,
)

from dbx_transfer.application.exceptions import AuthorizationFailed, RefreshFailed
from dbx_transfer.config import settings
from dbx_transfer.domain.token import TokenRecord, parse_expires_at
from dbx_transfer.infrastructure.credentials import Credentials
from dbx_transfer.infrastructure.log_utils import log_message

TOKEN_URL = "https://api.dropbox.com/oauth2/token"
REDIRECT_URI = "http://localhost:1410/"
TOKEN_ACCESS_TYPE = "offline"
CSRF_SESSION_KEY = "dropbox-auth-csrf-token"

FlowFactory = Callable[[Credentials, Dict[str, Any]], Any]
CallbackWaiter = Callable[[str, float], Dict[str, str]]


_CALLBACK_PAGE = (
    "<html><head><title>dbx-transfer</title></head>"
    "<body style=\"font-family: sans-serif; padding: 40px; text-align: center;\">"
    "<h1>{heading}</h1><p>You can close this window and return to your terminal.</p>"
    "</body></html>"
)


def _build_flow(credentials: Credentials, session: Dict[str, Any]) -> DropboxOAuth2Flow:
    return DropboxOAuth2Flow(
        consumer_key=credentials.app_key,
        redirect_uri=REDIRECT_URI,
        session=session,
        csrf_token_session_key=CSRF_SESSION_KEY,
        consumer_secret=credentials.app_secret,
        token_access_type=TOKEN_ACCESS_TYPE,
        timeout=settings.DBX_REQUEST_TIMEOUT,
    )


def wait_for_redirect(redirect_uri: str, timeout: float) -> Dict[str, str]:
    """Serve the redirect target until Dropbox calls back, then return its query."""

    target = urlparse(redirect_uri)
    host = target.hostname or "localhost"
    port = target.port if target.port is not None else 80
    expected_path = target.path or "/"
    captured: Dict[str, str] = {}

    class _CallbackHandler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: Any) -> None:
            pass

        def do_GET(self) -> None:
            request = urlparse(self.path)
            query = parse_qs(request.query)
            if request.path != expected_path or not ({"code", "error"} & query.keys()):
                self.send_response(404)
                self.end_headers()
                return

            captured.update({key: values[0] for key, values in query.items()})
            heading = "Authorisation failed" if "error" in captured else "Authorisation complete"
            body = _CALLBACK_PAGE.format(heading=heading).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

    server = HTTPServer((host, port), _CallbackHandler)
    server.timeout = min(1.0, timeout)
    deadline = time.monotonic() + timeout
    try:
        while not captured and time.monotonic() < deadline:
            server.handle_request()
    finally:
        server.server_close()

    if not captured:
        raise AuthorizationFailed(
            f"Timed out after {timeout:.0f}s waiting for the Dropbox redirect on {redirect_uri}."
        )
    return captured


def run_authorization_flow(
    credentials: Credentials,
    *,
    open_browser: bool = True,
    callback_timeout: Optional[float] = None,
    flow_factory: Optional[FlowFactory] = None,
    wait_for_callback: Optional[CallbackWaiter] = None,
) -> TokenRecord:
    """Run the browser-based authorisation-code flow and return the issued token."""

    session: Dict[str, Any] = {}
    flow = (flow_factory or _build_flow)(credentials, session)
    authorize_url = flow.start()

    log_message(f"Authorise dbx-transfer in your browser: {authorize_url}", "INFO")
    if open_browser:
        try:
            webbrowser.open(authorize_url)
        except webbrowser.Error as exc:
            log_message(f"Could not open a browser ({exc}); open the URL manually.", "WARN")

    waiter = wait_for_callback or wait_for_redirect
    timeout = callback_timeout if callback_timeout is not None else settings.DBX_CALLBACK_TIMEOUT
    query_params = waiter(REDIRECT_URI, timeout)

    try:
        result = flow.finish(query_params)
    except NotApprovedException as exc:
        raise AuthorizationFailed("Dropbox access was not approved.") from exc
    except (BadRequestException, BadStateException, CsrfException, ProviderException) as exc:
        log_message(f"Dropbox authorisation flow failed: {exc!r}", "ERROR")
        raise AuthorizationFailed(f"Dropbox authorisation flow failed: {exc!r}") from exc

    log_message("Dropbox authorisation completed.", "INFO")
    return TokenRecord(
        access_token=result.access_token,
        refresh_token=getattr(result, "refresh_token", None),
        expires_at=parse_expires_at(getattr(result, "expires_at", None)),
        client_id=credentials.app_key,
        client_secret=credentials.app_secret,
        token_endpoint=TOKEN_URL,
        account_id=getattr(result, "account_id", None),
    )


def _reason(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        for key in ("error_description", "error_summary", "error"):
            value = payload.get(key)
            if value:
                return str(value)
    return f"HTTP {response.status_code}"


def refresh_access_token(
    record: TokenRecord,
    *,
    timeout: Optional[float] = None,
    now: Optional[float] = None,
) -> TokenRecord:
    """Exchange the record's refresh token for a new access token."""

    if not record.has_refresh_token:
        raise RefreshFailed("Token record has no refresh token.")

    log_message("Refreshing Dropbox access token.", "INFO")
    data = {
        "grant_type": "refresh_token",
        "refresh_token": record.refresh_token,
        "client_id": record.client_id,
        "client_secret": record.client_secret,
    }

    try:
        response = requests.post(
            record.token_endpoint or TOKEN_URL,
            data=data,
            timeout=timeout or settings.DBX_REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as exc:
        log_message(f"Dropbox token refresh request failed: {exc}", "ERROR")
        raise RefreshFailed(f"Dropbox token refresh request failed: {exc}") from exc

    if response.status_code >= 400:
        reason = _reason(response)
        log_message(f"Dropbox token refresh rejected: {reason}", "ERROR")
        raise RefreshFailed(
            f"Dropbox token refresh rejected: {reason}", http_status=response.status_code
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise RefreshFailed("Invalid JSON response from Dropbox during token refresh.") from exc

    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise RefreshFailed("Dropbox token refresh returned no access token.")

    refreshed = record.with_refreshed(payload, time.time() if now is None else now)
    log_message("Successfully refreshed Dropbox access token.", "INFO")
    return refreshed


__all__ = [
    "REDIRECT_URI",
    "TOKEN_ACCESS_TYPE",
    "TOKEN_URL",
    "refresh_access_token",
    "run_authorization_flow",
    "wait_for_redirect",
]
