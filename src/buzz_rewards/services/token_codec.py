"""Signed, time-limited redemption tokens.

A token is ``base64url(payload).base64url(signature)`` where the payload is a
compact JSON object and the signature is HMAC-SHA256 over the encoded
payload. Tokens carry no state of their own; they point at an issued coupon
or a mileage use request whose persisted status decides whether the token
can still be consumed.
"""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone
from typing import NamedTuple
from uuid import UUID

from ..core.config import get_settings
from ..core.errors import MalformedToken
from ..utils.datetime import as_naive_utc, utcnow


class TokenKind(str, enum.Enum):
    """What a redemption token consumes."""

    COUPON = "coupon"
    MILEAGE = "mileage"


class RedemptionToken(NamedTuple):
    kind: TokenKind
    subject_id: UUID
    issued_at: datetime
    ttl: timedelta

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + self.ttl


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _sign(body: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body.encode("ascii"), hashlib.sha256).digest()
    return _b64encode(digest)


def encode(
    kind: TokenKind,
    subject_id: UUID,
    *,
    issued_at: datetime | None = None,
    ttl_seconds: int | None = None,
    secret: str | None = None,
) -> str:
    """Build a signed token for ``subject_id``; issue time defaults to server now."""

    settings = get_settings()
    issued = as_naive_utc(issued_at) if issued_at else utcnow()
    payload = {
        "k": TokenKind(kind).value,
        "s": str(subject_id),
        "iat": int(issued.replace(tzinfo=timezone.utc).timestamp()),
        "ttl": ttl_seconds if ttl_seconds is not None else settings.token_ttl_seconds,
    }
    body = _b64encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    return f"{body}.{_sign(body, secret or settings.token_secret)}"


def decode(token: str, *, secret: str | None = None) -> RedemptionToken:
    """Verify and unpack a token, raising ``MalformedToken`` on any defect."""

    if not isinstance(token, str) or token.count(".") != 1:
        raise MalformedToken()

    body, signature = token.split(".")
    if not (body.isascii() and signature.isascii()):
        raise MalformedToken()
    expected = _sign(body, secret or get_settings().token_secret)
    if not hmac.compare_digest(expected, signature):
        raise MalformedToken("Redemption token signature is invalid.")

    try:
        payload = json.loads(_b64decode(body))
        kind = TokenKind(payload["k"])
        subject_id = UUID(payload["s"])
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc).replace(tzinfo=None)
        ttl = int(payload["ttl"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
        raise MalformedToken() from exc

    if ttl <= 0:
        raise MalformedToken("Redemption token lifetime is invalid.")

    return RedemptionToken(kind=kind, subject_id=subject_id, issued_at=issued_at, ttl=timedelta(seconds=ttl))


def is_expired(decoded: RedemptionToken, now: datetime) -> bool:
    """True once ``now`` (server clock) is strictly past issue time plus TTL."""

    return as_naive_utc(now) > decoded.expires_at
