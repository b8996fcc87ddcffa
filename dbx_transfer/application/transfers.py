"""CSV download and file upload operations on top of the request builder."""

from __future__ import annotations

import io
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pandas as pd
import requests

from dbx_transfer.application.exceptions import LocalFileNotFound
from dbx_transfer.application.token_manager import TokenInput, TokenManager
from dbx_transfer.infrastructure.log_utils import log_message
from dbx_transfer.infrastructure.request_builder import (
    API_ARG_HEADER,
    api_arg_header,
    build_request,
    send,
)

DOWNLOAD_ENDPOINT = "/files/download"
UPLOAD_ENDPOINT = "/files/upload"
CURRENT_ACCOUNT_ENDPOINT = "/users/get_current_account"
WRITE_MODES = ("add", "overwrite", "update")


def download_csv(
    dropbox_path: str,
    *,
    token: TokenInput = None,
    cache_path: Path | str | None = None,
    manager: Optional[TokenManager] = None,
    session: Optional[requests.Session] = None,
    api_type: str = "content",
    **read_csv_kwargs: Any,
) -> pd.DataFrame:
    """Download a CSV file from Dropbox and parse it into a DataFrame.

    HTTP failures (:class:`requests.HTTPError`) and decode/parse failures
    (:class:`UnicodeDecodeError`, :class:`pandas.errors.ParserError`) reach the
    caller unchanged. Extra keyword arguments go to :func:`pandas.read_csv`.
    """

    request = build_request(
        DOWNLOAD_ENDPOINT, api_type, token=token, cache_path=cache_path, manager=manager
    )
    request.headers[API_ARG_HEADER] = api_arg_header({"path": dropbox_path})

    log_message(f"Downloading {dropbox_path} from Dropbox...", "INFO")
    response = send(request, session=session)

    text = response.content.decode("utf-8")
    frame = pd.read_csv(io.StringIO(text), **read_csv_kwargs)
    log_message(
        f"Downloaded {dropbox_path}: {len(frame)} rows x {len(frame.columns)} columns.", "INFO"
    )
    return frame


def upload_file(
    local_path: Path | str,
    dropbox_path: str,
    mode: str = "overwrite",
    *,
    token: TokenInput = None,
    cache_path: Path | str | None = None,
    manager: Optional[TokenManager] = None,
    session: Optional[requests.Session] = None,
    api_type: str = "content",
) -> Dict[str, Any]:
    """Upload a local file's bytes to ``dropbox_path`` and return the file metadata."""

    source = Path(local_path)
    if not source.is_file():
        raise LocalFileNotFound(f"File not found: {source}")
    if mode not in WRITE_MODES:
        raise ValueError(f"Invalid mode {mode!r}. Must be one of: {', '.join(WRITE_MODES)}.")

    request = build_request(
        UPLOAD_ENDPOINT, api_type, token=token, cache_path=cache_path, manager=manager
    )
    request.headers[API_ARG_HEADER] = api_arg_header(
        {"path": dropbox_path, "mode": mode, "autorename": False, "mute": False}
    )
    request.headers["Content-Type"] = "application/octet-stream"
    request.data = source.read_bytes()

    log_message(f"Uploading {source} to {dropbox_path} ({len(request.data)} bytes)...", "INFO")
    response = send(request, session=session)
    metadata = response.json()
    log_message(f"Upload of {dropbox_path} complete.", "INFO")
    return metadata


def upload_dataframe(
    frame: pd.DataFrame,
    dropbox_path: str,
    mode: str = "overwrite",
    *,
    index: bool = False,
    token: TokenInput = None,
    cache_path: Path | str | None = None,
    manager: Optional[TokenManager] = None,
    session: Optional[requests.Session] = None,
    api_type: str = "content",
) -> Dict[str, Any]:
    """Write ``frame`` to a temporary CSV, upload it, and always remove the temporary file."""

    fd, tmp_name = tempfile.mkstemp(prefix="dbx_transfer_", suffix=".csv")
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        frame.to_csv(tmp_path, index=index)
        return upload_file(
            tmp_path,
            dropbox_path,
            mode,
            token=token,
            cache_path=cache_path,
            manager=manager,
            session=session,
            api_type=api_type,
        )
    finally:
        tmp_path.unlink(missing_ok=True)


def call_api(
    endpoint: str,
    arguments: Optional[Mapping[str, Any]] = None,
    *,
    token: TokenInput = None,
    cache_path: Path | str | None = None,
    manager: Optional[TokenManager] = None,
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """POST a JSON body to a control endpoint and return the decoded response."""

    request = build_request(endpoint, "api", token=token, cache_path=cache_path, manager=manager)
    request.headers["Content-Type"] = "application/json"
    request.data = json.dumps(dict(arguments) if arguments is not None else None)

    response = send(request, session=session)
    return response.json()


def get_current_account(
    *,
    token: TokenInput = None,
    cache_path: Path | str | None = None,
    manager: Optional[TokenManager] = None,
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    return call_api(
        CURRENT_ACCOUNT_ENDPOINT,
        token=token,
        cache_path=cache_path,
        manager=manager,
        session=session,
    )


__all__ = [
    "WRITE_MODES",
    "call_api",
    "download_csv",
    "get_current_account",
    "upload_dataframe",
    "upload_file",
]
