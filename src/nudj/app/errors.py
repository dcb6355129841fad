"""Exception types raised inside nudj."""


class NudjError(Exception):
    """Base class for nudj errors."""


class DecodeError(NudjError):
    """Raised when a base64url string or pairing code cannot be decoded."""


class KeyDerivationError(NudjError):
    """Raised when a VAPID private key is corrupted or not a P-256 key."""
