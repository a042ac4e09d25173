"""
Encoding helpers shared by the parser, signers and DID adapters.
"""

from __future__ import annotations

import base64
import json
from typing import Any

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def b64url_decode(data: str) -> bytes:
    """Decode base64url without padding.

    Args:
        data: Base64url encoded string.

    Returns:
        Decoded bytes.
    """
    # Add padding if needed
    padding = 4 - (len(data) % 4)
    if padding != 4:
        data += "=" * padding
    return base64.urlsafe_b64decode(data)


def b64url_encode(data: bytes) -> str:
    """Encode bytes as base64url without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def canonicalize_json(data: Any) -> str:
    """Canonicalize JSON according to JCS (RFC 8785).

    Args:
        data: Value to canonicalize.

    Returns:
        Canonical JSON string.
    """
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def base58btc_encode(data: bytes) -> str:
    """Encode bytes to a base58btc string (no multibase prefix)."""
    n = int.from_bytes(data, "big")
    chars: list[str] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        chars.append(_BASE58_ALPHABET[remainder])
    # Leading zero bytes are kept as '1' characters
    for byte in data:
        if byte != 0:
            break
        chars.append("1")
    return "".join(reversed(chars))


def base58btc_decode(encoded: str) -> bytes:
    """Decode a base58btc string.

    Raises:
        ValueError: If the string contains a character outside the alphabet.
    """
    n = 0
    for char in encoded:
        index = _BASE58_ALPHABET.find(char)
        if index < 0:
            raise ValueError(f"Invalid base58btc character {char!r}")
        n = n * 58 + index
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad = len(encoded) - len(encoded.lstrip("1"))
    return b"\x00" * pad + body


def varint_encode(value: int) -> bytes:
    """Unsigned LEB128 varint, as used by multicodec prefixes."""
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def varint_decode(data: bytes) -> tuple[int, int]:
    """Decode a leading varint.

    Returns:
        Tuple of (value, number of bytes consumed).
    """
    value = 0
    shift = 0
    for i, byte in enumerate(data):
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, i + 1
        shift += 7
    raise ValueError("Truncated varint")
