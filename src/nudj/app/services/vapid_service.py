"""VAPID key handling.

Pairing codes only carry the VAPID private key (PKCS#8, base64url) to keep
them short. The sender re-derives the public key every time it builds a
request.
"""

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from nudj.app.config import UNCOMPRESSED_KEY_LENGTH, UNCOMPRESSED_KEY_PREFIX
from nudj.app.errors import DecodeError, KeyDerivationError
from nudj.app.models.push import VapidKeyPair
from nudj.app.utils import base64url

PRIVATE_SCALAR_LENGTH = 32


def _load_private_key(private_key_b64url: str) -> ec.EllipticCurvePrivateKey:
    try:
        der = base64url.decode(private_key_b64url)
        key = serialization.load_der_private_key(der, password=None)
    except (DecodeError, ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyDerivationError(f"VAPID private key could not be decoded: {e}") from e

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise KeyDerivationError("VAPID private key is not an elliptic curve key.")
    if not isinstance(key.curve, ec.SECP256R1):
        raise KeyDerivationError(f"VAPID private key uses {key.curve.name}, expected P-256.")
    return key


def derive_vapid_keys(private_key_b64url: str) -> VapidKeyPair:
    """Derive the VAPID key pair from a PKCS#8 private key.

    Returns the 65-byte uncompressed public point and the raw 32-byte private
    scalar, both base64url. Same input always gives the same output.
    """
    key = _load_private_key(private_key_b64url)

    private_value = key.private_numbers().private_value
    public_raw = key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    if not private_value or len(public_raw) != UNCOMPRESSED_KEY_LENGTH or public_raw[0] != UNCOMPRESSED_KEY_PREFIX:
        raise KeyDerivationError("VAPID private key missing required components.")

    private_raw = private_value.to_bytes(PRIVATE_SCALAR_LENGTH, "big")
    return VapidKeyPair(
        public_key=base64url.encode(public_raw),
        private_key=base64url.encode(private_raw),
    )


def load_signing_key(vapid_keys: VapidKeyPair) -> ec.EllipticCurvePrivateKey:
    """Rebuild the signing key from a derived pair's raw private scalar."""
    try:
        scalar = int.from_bytes(base64url.decode(vapid_keys.private_key), "big")
        return ec.derive_private_key(scalar, ec.SECP256R1())
    except (DecodeError, ValueError, TypeError) as e:
        raise KeyDerivationError(f"VAPID private scalar is invalid: {e}") from e


def generate_vapid_keys() -> VapidKeyPair:
    """Generate a new VAPID key pair in the form a pairing code carries.

    The public key is the uncompressed point; the private key is PKCS#8 DER.
    """
    private_key = ec.generate_private_key(ec.SECP256R1())

    public_raw = private_key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    private_der = private_key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return VapidKeyPair(
        public_key=base64url.encode(public_raw),
        private_key=base64url.encode(private_der),
    )
