import json
import socket
import threading
import time
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
import requests
from dropbox.oauth import NotApprovedException

from dbx_transfer.application.exceptions import AuthorizationFailed, RefreshFailed
from dbx_transfer.infrastructure import dropbox_oauth
from dbx_transfer.infrastructure.credentials import Credentials


class FakeFlow:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.finished_with = None

    def start(self):
        return "https://www.dropbox.com/oauth2/authorize?client_id=app-key&token_access_type=offline"

    def finish(self, query_params):
        self.finished_with = query_params
        if self.error is not None:
            raise self.error
        return self.result


def test_authorization_flow_builds_record_from_result(monkeypatch):
    opened = []
    monkeypatch.setattr(dropbox_oauth.webbrowser, "open", opened.append)
    flow = FakeFlow(
        result=SimpleNamespace(
            access_token="sl.new",
            refresh_token="refresh-new",
            expires_at=datetime(2023, 11, 14, 22, 13, 20),
            account_id="dbid:1",
        )
    )
    waited = {}

    def fake_wait(redirect_uri, timeout):
        waited["args"] = (redirect_uri, timeout)
        return {"code": "auth-code", "state": "csrf"}

    record = dropbox_oauth.run_authorization_flow(
        Credentials("app-key", "app-secret"),
        callback_timeout=5,
        flow_factory=lambda credentials, session: flow,
        wait_for_callback=fake_wait,
    )

    assert opened == [flow.start()]
    assert waited["args"] == ("http://localhost:1410/", 5)
    assert flow.finished_with == {"code": "auth-code", "state": "csrf"}
    assert record.access_token == "sl.new"
    assert record.refresh_token == "refresh-new"
    assert record.expires_at == 1700000000.0
    assert record.client_id == "app-key"
    assert record.client_secret == "app-secret"
    assert record.token_endpoint == dropbox_oauth.TOKEN_URL
    assert record.account_id == "dbid:1"


def test_default_flow_requests_offline_access():
    flow = dropbox_oauth._build_flow(Credentials("app-key", "app-secret"), {})

    url = flow.start()

    assert url.startswith("https://www.dropbox.com/oauth2/authorize")
    assert "token_access_type=offline" in url
    assert "redirect_uri=http%3A%2F%2Flocalhost%3A1410%2F" in url


def test_authorization_flow_wraps_denied_access(monkeypatch):
    monkeypatch.setattr(dropbox_oauth.webbrowser, "open", lambda url: True)
    flow = FakeFlow(error=NotApprovedException())

    with pytest.raises(AuthorizationFailed, match="not approved"):
        dropbox_oauth.run_authorization_flow(
            Credentials("app-key", "app-secret"),
            flow_factory=lambda credentials, session: flow,
            wait_for_callback=lambda uri, timeout: {"error": "access_denied", "state": "csrf"},
        )


def _response(status, payload):
    response = requests.Response()
    response.status_code = status
    response._content = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    response.url = dropbox_oauth.TOKEN_URL
    return response


def test_refresh_posts_refresh_grant(monkeypatch, make_record, now):
    post = Mock(return_value=_response(200, {"access_token": "access-2", "expires_in": 14400}))
    monkeypatch.setattr(dropbox_oauth.requests, "post", post)
    record = make_record()

    refreshed = dropbox_oauth.refresh_access_token(record, now=now, timeout=7)

    post.assert_called_once_with(
        record.token_endpoint,
        data={
            "grant_type": "refresh_token",
            "refresh_token": "refresh-1",
            "client_id": "app-key",
            "client_secret": "app-secret",
        },
        timeout=7,
    )
    assert refreshed.access_token == "access-2"
    assert refreshed.refresh_token == "refresh-1"
    assert refreshed.expires_at == now + 14400


def test_refresh_rejection_raises_refresh_failed(monkeypatch, make_record):
    monkeypatch.setattr(
        dropbox_oauth.requests,
        "post",
        Mock(return_value=_response(400, {"error": "invalid_grant", "error_description": "refresh token is invalid"})),
    )

    with pytest.raises(RefreshFailed, match="refresh token is invalid") as excinfo:
        dropbox_oauth.refresh_access_token(make_record())

    assert excinfo.value.http_status == 400


def test_refresh_transport_error_raises_refresh_failed(monkeypatch, make_record):
    monkeypatch.setattr(
        dropbox_oauth.requests, "post", Mock(side_effect=requests.ConnectionError("offline"))
    )

    with pytest.raises(RefreshFailed, match="offline"):
        dropbox_oauth.refresh_access_token(make_record())


@pytest.mark.parametrize("body", [b"<html>", {"token_type": "bearer"}])
def test_refresh_without_access_token_raises_refresh_failed(monkeypatch, make_record, body):
    monkeypatch.setattr(dropbox_oauth.requests, "post", Mock(return_value=_response(200, body)))

    with pytest.raises(RefreshFailed):
        dropbox_oauth.refresh_access_token(make_record())


def test_refresh_requires_refresh_token(monkeypatch, make_record):
    post = Mock()
    monkeypatch.setattr(dropbox_oauth.requests, "post", post)

    with pytest.raises(RefreshFailed):
        dropbox_oauth.refresh_access_token(make_record(refresh_token=None))

    post.assert_not_called()


def _free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _start_callback_server(redirect_uri, timeout=10.0):
    outcome = {}

    def serve():
        try:
            outcome["query"] = dropbox_oauth.wait_for_redirect(redirect_uri, timeout)
        except AuthorizationFailed as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    return thread, outcome


def _get(url):
    session = requests.Session()
    session.trust_env = False
    for _ in range(100):
        try:
            return session.get(url, timeout=5)
        except requests.ConnectionError:
            time.sleep(0.05)
    raise AssertionError(f"Callback server never answered on {url}")


def test_wait_for_redirect_captures_code_and_ignores_stray_requests():
    redirect_uri = f"http://127.0.0.1:{_free_port()}/"
    thread, outcome = _start_callback_server(redirect_uri)

    stray = _get(redirect_uri + "favicon.ico")
    bare = _get(redirect_uri)
    callback = _get(redirect_uri + "?code=auth-code&state=csrf-token")
    thread.join(timeout=10)

    assert stray.status_code == 404
    assert bare.status_code == 404
    assert callback.status_code == 200
    assert "Authorisation complete" in callback.text
    assert outcome["query"] == {"code": "auth-code", "state": "csrf-token"}


def test_wait_for_redirect_captures_provider_error():
    redirect_uri = f"http://127.0.0.1:{_free_port()}/"
    thread, outcome = _start_callback_server(redirect_uri)

    callback = _get(redirect_uri + "?error=access_denied&state=csrf-token")
    thread.join(timeout=10)

    assert callback.status_code == 200
    assert "Authorisation failed" in callback.text
    assert outcome["query"] == {"error": "access_denied", "state": "csrf-token"}


def test_wait_for_redirect_times_out():
    redirect_uri = f"http://127.0.0.1:{_free_port()}/"

    with pytest.raises(AuthorizationFailed, match="Timed out"):
        dropbox_oauth.wait_for_redirect(redirect_uri, 0.2)
