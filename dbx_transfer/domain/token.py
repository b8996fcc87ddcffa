"""Domain types describing a cached Dropbox OAuth token."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from dbx_transfer.domain.errors import CorruptTokenRecord

EXPIRY_LEEWAY_SECONDS = 60


class TokenState(Enum):
    """Where a cached token sits in its lifecycle."""

    NO_CACHE = "no_cache"
    CACHED_VALID = "cached_valid"
    CACHED_EXPIRED_REFRESHABLE = "cached_expired_refreshable"
    CACHED_EXPIRED_NO_REFRESH = "cached_expired_no_refresh"


def _finite(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def parse_expires_at(value: Any) -> Optional[float]:
    """Return ``value`` as epoch seconds, or ``None`` when it cannot be read.

    NaN and infinities count as unreadable.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return _finite(float(value))
        except OverflowError:
            return None
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return moment.timestamp()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _finite(float(text))
        except ValueError:
            pass
        try:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.timestamp()
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class TokenRecord:
    """Normalised OAuth credential bundle.

    Every token that enters the package, whether read from disk, returned by
    the authorisation flow or handed in by a caller, is converted into this
    shape by :meth:`from_payload` or :meth:`bearer`.
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None
    client_id: str = ""
    client_secret: str = ""
    token_endpoint: str = ""
    account_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.access_token, str) or not self.access_token.strip():
            raise CorruptTokenRecord("Token record has no access token.")

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token and self.refresh_token.strip())

    def is_expired(self, now: float, leeway: float = EXPIRY_LEEWAY_SECONDS) -> bool:
        """Expiry check; a record without ``expires_at`` never expires."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at - leeway

    def expires_at_utc(self) -> Optional[datetime]:
        if self.expires_at is None:
            return None
        try:
            return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    def with_refreshed(self, payload: Mapping[str, Any], now: float) -> "TokenRecord":
        """Apply a token-endpoint refresh response to this record."""

        expires_in = payload.get("expires_in")
        try:
            expires_at = parse_expires_at(now + float(expires_in)) if expires_in is not None else None
        except (TypeError, ValueError):
            expires_at = None

        return replace(
            self,
            access_token=str(payload.get("access_token") or ""),
            refresh_token=_text(payload.get("refresh_token")) or self.refresh_token,
            expires_at=expires_at,
        )

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def bearer(cls, access_token: str) -> "TokenRecord":
        """Wrap a raw bearer string; it cannot be refreshed and never expires."""
        return cls(access_token=access_token)

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenRecord":
        """Normalise any supported serialised token shape.

        Accepted shapes are a bare access-token string, a flat mapping, and a
        mapping that nests token fields under ``token`` or ``credentials`` and
        client fields under ``client``.
        """

        if isinstance(payload, TokenRecord):
            return payload
        if isinstance(payload, str):
            return cls.bearer(payload.strip())
        if not isinstance(payload, Mapping):
            raise CorruptTokenRecord(
                f"Unsupported token payload of type {type(payload).__name__}."
            )

        token_fields: Mapping[str, Any] = payload
        for key in ("token", "credentials"):
            nested = payload.get(key)
            if isinstance(nested, Mapping) and nested.get("access_token"):
                token_fields = nested
                break

        client = payload.get("client") if isinstance(payload.get("client"), Mapping) else {}

        def pick(name: str, *client_keys: str) -> Any:
            for source, keys in ((token_fields, (name,)), (payload, (name,)), (client, client_keys)):
                for key in keys:
                    value = source.get(key)
                    if value not in (None, ""):
                        return value
            return None

        access_token = _text(token_fields.get("access_token"))
        if not access_token:
            raise CorruptTokenRecord("Token payload is missing an access token.")

        return cls(
            access_token=access_token,
            refresh_token=_text(pick("refresh_token")),
            expires_at=parse_expires_at(pick("expires_at")),
            client_id=_text(pick("client_id", "id")) or "",
            client_secret=_text(pick("client_secret", "secret")) or "",
            token_endpoint=_text(pick("token_endpoint", "token_url")) or "",
            account_id=_text(pick("account_id")),
        )


__all__ = ["EXPIRY_LEEWAY_SECONDS", "TokenRecord", "TokenState", "parse_expires_at"]
