"""Resolution of the Dropbox app key and secret."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from dbx_transfer.application.exceptions import MissingCredentials
from dbx_transfer.config import get_env

APP_KEY_ENV_VAR = "DROPBOX_KEY"
APP_SECRET_ENV_VAR = "DROPBOX_SECRET"


@dataclass(frozen=True)
class Credentials:
    app_key: str
    app_secret: str = field(repr=False)


def resolve_credentials(
    app_key: Optional[str] = None,
    app_secret: Optional[str] = None,
) -> Credentials:
    """Return explicit values, falling back to the environment for missing ones."""

    if app_key is None:
        app_key = get_env(APP_KEY_ENV_VAR, default="")
    if app_secret is None:
        app_secret = get_env(APP_SECRET_ENV_VAR, default="")

    if not app_key or not app_secret:
        raise MissingCredentials(
            "Dropbox app key and secret required. Set "
            f"{APP_KEY_ENV_VAR} and {APP_SECRET_ENV_VAR} environment variables "
            "or pass them as arguments."
        )

    return Credentials(app_key=app_key, app_secret=app_secret)


__all__ = ["APP_KEY_ENV_VAR", "APP_SECRET_ENV_VAR", "Credentials", "resolve_credentials"]
