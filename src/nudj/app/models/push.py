"""Push notification models."""

from pydantic import BaseModel, Field


class NotificationPayload(BaseModel):
    """Notification sent to the service worker. Field order is the wire order."""

    title: str
    body: str
    timestamp: int = Field(description="Epoch milliseconds")


class FitResult(BaseModel):
    payload: NotificationPayload
    truncated: bool = False


class VapidKeyPair(BaseModel):
    """VAPID key pair, both halves base64url-encoded."""

    public_key: str
    private_key: str


class PushRequest(BaseModel):
    """Encrypted request ready to POST to a push service endpoint."""

    headers: dict[str, str]
    body: bytes


class DispatchResult(BaseModel):
    """Outcome of one push to one receiver.

    On failure exactly one of `expired` or `error` is set.
    """

    name: str
    success: bool
    expired: bool = False
    error: str | None = None
