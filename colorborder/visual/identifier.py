"""Identifier text form: 128-bit values as 8-4-4-4-12 lowercase hex."""

from __future__ import annotations

import uuid

IDENTIFIER_BYTES = 16


def identifier_to_bytes(text: str) -> bytes:
    """Parse an identifier string (hyphens optional) into 16 bytes.

    Raises ValueError for anything that is not 32 hex digits.
    """
    clean = text.strip().replace("-", "").lower()
    if len(clean) != 32:
        raise ValueError(f"Invalid identifier format: {text!r}")
    return uuid.UUID(hex=clean).bytes


def bytes_to_identifier(data: bytes) -> str:
    """Format the first 16 bytes of *data* as 8-4-4-4-12 lowercase hex."""
    if len(data) < IDENTIFIER_BYTES:
        raise ValueError(f"need {IDENTIFIER_BYTES} bytes, got {len(data)}")
    return str(uuid.UUID(bytes=bytes(data[:IDENTIFIER_BYTES])))


def random_identifier() -> str:
    return str(uuid.uuid4())
