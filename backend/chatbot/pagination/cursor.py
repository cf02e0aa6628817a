"""Opaque pagination cursor codec.

A cursor marks a resume position in a collection ordered by
``(created_at DESC, id DESC)``. On the wire it is::

    base64url_nopad("<YYYY-MM-DDTHH:MM:SS.ffffffZ>|<id>")

Timestamps are normalized to UTC with fixed microsecond precision so that
``decode(encode(c)) == c`` holds exactly. Ids never contain ``|``.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from backend.chatbot.errors import InvalidCursor

DELIMITER = "|"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Cursor:
    """Resume position: the (created_at, id) of the last row already seen."""

    created_at: datetime
    id: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "created_at", as_utc(self.created_at))


def encode(cursor: Cursor) -> str:
    """Encode a cursor as a URL-safe token without padding."""
    raw = cursor.created_at.strftime(TIMESTAMP_FORMAT) + DELIMITER + cursor.id
    return base64.urlsafe_b64encode(raw.encode("utf-8")).rstrip(b"=").decode("ascii")


def decode(token: str) -> Cursor:
    """Decode a token produced by encode().

    Raises:
        InvalidCursor: On any malformed input
    """
    token = token.strip()
    if not token or not _TOKEN_RE.match(token):
        raise InvalidCursor()

    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded).decode("utf-8")
    except (binascii.Error, ValueError) as e:
        raise InvalidCursor() from e

    ts, sep, cursor_id = raw.partition(DELIMITER)
    if not sep:
        raise InvalidCursor()

    try:
        created_at = datetime.strptime(ts, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise InvalidCursor() from e
    # strptime is lenient about field widths; only the canonical form is valid
    if created_at.strftime(TIMESTAMP_FORMAT) != ts:
        raise InvalidCursor()

    cursor_id = cursor_id.strip()
    if not cursor_id:
        raise InvalidCursor()

    return Cursor(created_at=created_at, id=cursor_id)
