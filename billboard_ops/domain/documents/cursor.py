"""Opaque page cursors for keyset pagination over documents"""

import base64
import binascii
import json
from datetime import datetime
from typing import NamedTuple


class InvalidCursor(ValueError):
    """Raised when a cursor token cannot be decoded"""


class CursorPosition(NamedTuple):
    created_at: datetime
    document_id: str


def encode_cursor(created_at: datetime, document_id: str) -> str:
    """Wrap the (created_at, id) sort key of the last item of a page"""
    payload = json.dumps({"c": created_at.isoformat(), "i": document_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode()).decode().rstrip("=")


def decode_cursor(token: str) -> CursorPosition:
    padding = "=" * (-len(token) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(token + padding))
        return CursorPosition(datetime.fromisoformat(payload["c"]), str(payload["i"]))
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        raise InvalidCursor(f"Malformed cursor: {token!r}") from e
