import pytest

from dbx_transfer.application.exceptions import MissingCredentials
from dbx_transfer.config import settings
from dbx_transfer.infrastructure.credentials import Credentials, resolve_credentials


@pytest.mark.parametrize("key, secret", [("key", "secret"), ("k" * 15, "s-p-a-c-e d"), ("ключ", "秘密")])
def test_explicit_values_are_returned_unchanged(monkeypatch, key, secret):
    monkeypatch.setenv("DROPBOX_KEY", "env-key")
    monkeypatch.setenv("DROPBOX_SECRET", "env-secret")

    assert resolve_credentials(key, secret) == Credentials(app_key=key, app_secret=secret)


def test_missing_values_come_from_environment(monkeypatch):
    monkeypatch.setenv("DROPBOX_KEY", "env-key")
    monkeypatch.setenv("DROPBOX_SECRET", "env-secret")

    assert resolve_credentials() == Credentials("env-key", "env-secret")
    assert resolve_credentials(app_key="explicit") == Credentials("explicit", "env-secret")


def test_settings_file_values_are_used_when_environment_is_unset(monkeypatch):
    monkeypatch.setattr(settings, "DROPBOX_KEY", "file-key")
    monkeypatch.setattr(settings, "DROPBOX_SECRET", "file-secret")

    assert resolve_credentials() == Credentials("file-key", "file-secret")


@pytest.mark.parametrize(
    "env, args",
    [
        ({}, {}),
        ({"DROPBOX_KEY": "key"}, {}),
        ({"DROPBOX_SECRET": "secret"}, {}),
        ({"DROPBOX_KEY": "", "DROPBOX_SECRET": "secret"}, {}),
        ({"DROPBOX_KEY": "key", "DROPBOX_SECRET": "secret"}, {"app_key": ""}),
        ({}, {"app_key": "key", "app_secret": ""}),
    ],
)
def test_empty_values_raise_missing_credentials(monkeypatch, env, args):
    for name, value in env.items():
        monkeypatch.setenv(name, value)

    with pytest.raises(MissingCredentials, match="DROPBOX_KEY and DROPBOX_SECRET"):
        resolve_credentials(**args)


def test_secret_is_hidden_from_repr():
    assert "secret" not in repr(Credentials("key", "secret"))
