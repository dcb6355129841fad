"""Unpadded base64url encoding, as used by Web Push keys and pairing codes."""

import base64
import binascii

from nudj.app.errors import DecodeError


def encode(data: bytes) -> str:
    """Encode bytes as base64url without '=' padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode(value: str) -> bytes:
    """Decode a base64url string, padded or not.

    Raises DecodeError on characters outside the alphabet or an impossible
    length.
    """
    stripped = value.rstrip("=")
    padded = stripped + "=" * ((4 - len(stripped) % 4) % 4)
    standard = padded.replace("-", "+").replace("_", "/")
    try:
        return base64.b64decode(standard, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64url data: {e}") from e
