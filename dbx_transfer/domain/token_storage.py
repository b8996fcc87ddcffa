"""Domain-level protocol for persisting OAuth tokens."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

from dbx_transfer.domain.token import TokenRecord


class TokenStorage(Protocol):
    """Abstraction for persisting a single token record."""

    @property
    def path(self) -> Path:
        """Location of the persisted record, used in notices."""

    def exists(self) -> bool:
        """Return ``True`` when something is persisted, usable or not."""

    def load(self) -> Optional[TokenRecord]:
        """Return the persisted record if available and usable, otherwise ``None``."""

    def save(self, record: TokenRecord) -> None:
        """Persist ``record``, replacing any previous content."""

    def clear(self) -> bool:
        """Remove the persisted record; ``True`` if one existed."""


__all__ = ["TokenStorage"]
