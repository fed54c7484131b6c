# custody/core/encoding.py
import base64
import binascii
from typing import Optional

SHA256_PREFIX = "sha256:"
BASE64_PREFIX = "base64:"


def b64_encode(data: bytes) -> str:
    """Encode bytes to standard base64 (with padding)."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(s: str) -> Optional[bytes]:
    """Decode a base64 string, tolerating an optional ``base64:`` prefix.

    Returns None when the input is not valid base64.
    """
    s = strip_prefix(s, BASE64_PREFIX)
    try:
        return base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError):
        return None


def strip_prefix(value: str, prefix: str) -> str:
    return value[len(prefix):] if value.startswith(prefix) else value


def hex_to_bytes(value: str) -> Optional[bytes]:
    """Hex-decode a digest (``sha256:`` prefix allowed), None if not hex."""
    value = strip_prefix(value, SHA256_PREFIX)
    if not value:
        return None
    try:
        return bytes.fromhex(value)
    except ValueError:
        return None
