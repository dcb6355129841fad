"""Pairing code encoding and decoding.

A pairing code carries a push subscription and its VAPID private key from
the receiving device to the sending machine as one copy/paste-safe string.
Decoding is a four-stage pipeline (base64url, UTF-8, JSON, structure); any
stage failing makes the whole code invalid.
"""

import json

from pydantic import ValidationError

from nudj.app.config import ELLIPSIS
from nudj.app.errors import DecodeError
from nudj.app.models.pairing import PairingData
from nudj.app.services.logging_service import get_logger
from nudj.app.utils import base64url

logger = get_logger(__name__)

DISPLAY_MAX_LENGTH = 48


def encode_pairing_code(data: PairingData) -> str:
    """Encode pairing data as an unpadded base64url string."""
    # Keep high-entropy fields near both ends of the serialized JSON.
    # Users usually compare the beginning first and the end when copying/pasting.
    document = {
        "keys": {
            "auth": data.keys.auth,
            "p256dh": data.keys.p256dh,
        },
        "endpoint": data.endpoint,
        "vapid": {
            "privateKey": data.vapid.private_key,
        },
    }
    text = json.dumps(document, separators=(",", ":"))
    return base64url.encode(text.encode("utf-8"))


def _strip_whitespace(code: str) -> str:
    return "".join(code.split())


def _decode_bytes(code: str) -> bytes:
    if not code:
        raise DecodeError("Pairing code is empty")
    return base64url.decode(code)


def _decode_text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Pairing code is not UTF-8 text: {e}") from e


def _parse_json(text: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Pairing code is not JSON: {e.msg}") from e
    except RecursionError as e:
        raise DecodeError("Pairing code is not JSON: nested too deeply") from e


def _validate(document: object) -> PairingData:
    if not isinstance(document, dict):
        raise DecodeError("Pairing code does not contain an object")
    try:
        return PairingData.model_validate(document)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise DecodeError(f"Pairing code is missing or has invalid fields: {fields}") from e


def parse_pairing_code(code: str) -> PairingData:
    """Decode and validate a pairing code.

    Whitespace anywhere in the code is ignored (terminals like to wrap long
    lines). Raises DecodeError naming the stage that failed.
    """
    cleaned = _strip_whitespace(code)
    raw = _decode_bytes(cleaned)
    text = _decode_text(raw)
    document = _parse_json(text)
    return _validate(document)


def decode_pairing_code(code: str) -> PairingData | None:
    """Decode a pairing code, returning None if it is invalid in any way."""
    try:
        return parse_pairing_code(code)
    except DecodeError as e:
        logger.debug(f"Rejected pairing code: {e}")
        return None


def truncate_pairing_code(code: str, max_length: int = DISPLAY_MAX_LENGTH) -> str:
    """Shorten a pairing code for display. The result is not decodable."""
    if len(code) <= max_length:
        return code
    return code[: max_length - 1] + ELLIPSIS
