from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests

from dbx_transfer import logging_setup
from dbx_transfer.config import settings
from dbx_transfer.domain.token import TokenRecord
from dbx_transfer.infrastructure.token_storage import JsonFileTokenStorage

NOW = 1_700_000_000.0


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep real credentials, caches and log files out of every test."""

    for name in ("DROPBOX_KEY", "DROPBOX_SECRET", "DBX_TOKEN_CACHE_PATH", "DBX_LOG_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DBX_LOG_TO_CONSOLE", "false")
    monkeypatch.setattr(settings, "DROPBOX_KEY", None)
    monkeypatch.setattr(settings, "DROPBOX_SECRET", None)
    monkeypatch.setattr(settings, "DBX_TOKEN_CACHE_PATH", tmp_path / "default_token.json")
    monkeypatch.setattr(settings, "DBX_LOG_PATH", None)

    logging_setup.reset_logging()
    yield
    logging_setup.reset_logging()


def make_response(
    status_code: int = 200,
    content: bytes = b"",
    *,
    url: str = "https://content.dropboxapi.com/2/files/download",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = content
    response.url = url
    response.encoding = "utf-8"
    return response


class FakeSession:
    """Stands in for :class:`requests.Session`, recording every prepared request."""

    def __init__(self, response: Optional[requests.Response] = None) -> None:
        self.response = response if response is not None else make_response()
        self.sent: List[Tuple[requests.PreparedRequest, Dict[str, Any]]] = []

    def prepare_request(self, request: requests.Request) -> requests.PreparedRequest:
        return request.prepare()

    def send(self, prepared: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        self.sent.append((prepared, kwargs))
        return self.response

    @property
    def last_request(self) -> requests.PreparedRequest:
        return self.sent[-1][0]


@pytest.fixture
def now() -> float:
    return NOW


@pytest.fixture
def token_path(tmp_path):
    return tmp_path / "cache" / "dropbox_token.json"


@pytest.fixture
def storage(token_path) -> JsonFileTokenStorage:
    return JsonFileTokenStorage(token_path)


@pytest.fixture
def make_record():
    def _make(**overrides: Any) -> TokenRecord:
        fields: Dict[str, Any] = {
            "access_token": "access-1",
            "refresh_token": "refresh-1",
            "expires_at": NOW + 3600,
            "client_id": "app-key",
            "client_secret": "app-secret",
            "token_endpoint": "https://api.dropbox.com/oauth2/token",
        }
        fields.update(overrides)
        return TokenRecord(**fields)

    return _make


@pytest.fixture
def fake_session_factory():
    return FakeSession


@pytest.fixture
def response_factory():
    return make_response
