"""Infrastructure implementations of token persistence."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from dbx_transfer.application.exceptions import CorruptTokenRecord
from dbx_transfer.domain.token import TokenRecord
from dbx_transfer.domain.token_storage import TokenStorage
from dbx_transfer.infrastructure.log_utils import log_message


class JsonFileTokenStorage(TokenStorage):
    """Persist a token record to a JSON file on disk."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Optional[TokenRecord]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            log_message(f"Failed to read token from {self._path}: {exc}", "WARN")
            return None

        try:
            return TokenRecord.from_payload(payload)
        except CorruptTokenRecord as exc:
            log_message(f"Ignoring unusable token in {self._path}: {exc}", "WARN")
            return None

    def save(self, record: TokenRecord) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        # Write beside the target and swap it in so a failed write never
        # truncates a previously valid cache.
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record.to_payload(), handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            try:
                os.chmod(tmp_path, 0o600)
            except OSError as exc:  # pragma: no cover - depends on platform
                log_message(f"Could not set permissions on {tmp_path}: {exc}", "WARN")
            os.replace(tmp_path, self._path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def clear(self) -> bool:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True


__all__ = ["JsonFileTokenStorage"]
