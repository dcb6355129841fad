"""Pairing data models.

A pairing code is the base64url-encoded JSON form of PairingData:

    {"keys": {"auth": ..., "p256dh": ...}, "endpoint": ..., "vapid": {"privateKey": ...}}

Only the camelCase wire names are accepted when validating.
"""

from pydantic import BaseModel, Field, StrictStr


class PairingKeys(BaseModel):
    """Encryption keys from the browser's PushSubscription."""

    p256dh: StrictStr = Field(min_length=1, description="ECDH public key (base64url)")
    auth: StrictStr = Field(min_length=1, description="Auth secret (base64url)")


class PairingVapid(BaseModel):
    """VAPID credentials. Only the private key travels; the public key is re-derived."""

    private_key: StrictStr = Field(
        alias="privateKey",
        min_length=1,
        description="PKCS#8 EC P-256 private key (base64url)",
    )


class PairingData(BaseModel):
    """Everything a sender needs to push to one subscription."""

    endpoint: StrictStr = Field(min_length=1, description="Push service subscription URL")
    keys: PairingKeys
    vapid: PairingVapid
