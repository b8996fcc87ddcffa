"""
Centralised config for dbx-transfer.

Settings are loaded from environment variables (and an optional ``.env``
file) and exposed through a singleton ``settings`` object. Values that must be
read fresh on every call, such as the Dropbox app credentials, go through
:func:`get_env` so that runtime overrides always win.
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve()

# The one canonical location of the cached OAuth token.
DEFAULT_TOKEN_CACHE_PATH = Path.home() / ".config" / "dbx_transfer" / "dropbox_token.json"


def _discover_project_root(config_file: Path) -> tuple[Path, Path]:
    """Return a project root and env file path without assuming ``.env`` exists.

    Walks the parents of this file looking for a ``.env`` file and falls back
    to the first directory carrying a project marker when none is present.
    """

    parents = list(config_file.parents)

    for parent in parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent, env_file

    for marker in ("pyproject.toml", ".git"):
        for parent in parents:
            if (parent / marker).exists():
                return parent, parent / ".env"

    fallback_root = parents[1] if len(parents) > 1 else parents[0]
    return fallback_root, fallback_root / ".env"


PROJECT_ROOT, ENV_FILE_PATH = _discover_project_root(CONFIG_FILE)


T = TypeVar("T")


class Settings(BaseSettings):
    """
    Centralised and validated application settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH, env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # --- DROPBOX APP CREDENTIALS (from environment) ---
    DROPBOX_KEY: Optional[str] = None
    DROPBOX_SECRET: Optional[SecretStr] = None

    # --- TOKEN CACHE ---
    DBX_TOKEN_CACHE_PATH: Path = DEFAULT_TOKEN_CACHE_PATH

    # --- HTTP / OAUTH ---
    DBX_REQUEST_TIMEOUT: float = 30.0
    DBX_CALLBACK_TIMEOUT: float = 300.0

    # --- LOGGING ---
    DBX_LOG_LEVEL: str = "INFO"
    DBX_LOG_TO_CONSOLE: bool = True
    DBX_LOG_PATH: Optional[Path] = None

    @property
    def token_cache_path(self) -> Path:
        """Token cache location with ``~`` expanded."""
        return Path(self.DBX_TOKEN_CACHE_PATH).expanduser()

    @property
    def log_path(self) -> Optional[Path]:
        """Path for the rotating log file, or ``None`` when file logging is off."""
        if self.DBX_LOG_PATH is None:
            return None
        return Path(self.DBX_LOG_PATH).expanduser()


# Create a single, importable instance of the settings for the entire package.
settings = Settings()


def _coerce_secret(value: Any) -> Any:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


def _to_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce_type(raw: str, template: Any) -> Any:
    if isinstance(template, bool):
        return _to_bool(raw)
    if isinstance(template, int) and not isinstance(template, bool):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    if isinstance(template, Path):
        return Path(raw)
    return raw


def get_env(
    name: str,
    default: T | None = None,
    *,
    parser: Callable[[str], T] | None = None,
) -> T | Any | None:
    """Return a configuration value resolving environment overrides consistently.

    The resolution order is:

    1. Explicit environment variable overrides at runtime.
    2. Typed values provided by the Pydantic ``settings`` object.
    3. The supplied ``default`` value.

    When an override is read directly from :mod:`os.environ`, ``parser`` (or the
    inferred type from ``settings``) is used to coerce the string into the
    expected type.
    """

    if name in os.environ:
        raw_value = os.environ[name]
        if parser is not None:
            return parser(raw_value)
        if hasattr(settings, name):
            template = _coerce_secret(getattr(settings, name))
            try:
                return _coerce_type(raw_value, template)
            except (TypeError, ValueError):
                return template
        return raw_value

    if hasattr(settings, name):
        value = _coerce_secret(getattr(settings, name))
        if value is not None:
            return value

    return default
