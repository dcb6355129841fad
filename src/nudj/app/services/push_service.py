"""Sending Web Push notifications to receivers.

Each receiver gets one attempt per invocation: derive the VAPID keys from
its stored private key, encrypt the payload (aes128gcm), POST it to the
subscription endpoint and classify the response. Pushes to several
receivers run concurrently and are joined before returning.

Lifecycle side effects (touching lastUsedAt, removing expired receivers) are
applied by the caller via apply_results(), after every push has settled.
"""

import asyncio
import re
from typing import Any
from urllib.parse import urlparse

import requests
from py_vapid import Vapid02
from pywebpush import WebPusher

from nudj.app.config import PUSH_TIMEOUT_SECONDS, PUSH_TTL_SECONDS, VAPID_SUBJECT
from nudj.app.models.push import DispatchResult, NotificationPayload, PushRequest, VapidKeyPair
from nudj.app.models.receiver import Receiver
from nudj.app.services.logging_service import get_logger, redact_endpoint
from nudj.app.services.payload_service import serialize_payload
from nudj.app.services.receiver_storage_service import ReceiverStore
from nudj.app.services.vapid_service import derive_vapid_keys, load_signing_key

logger = get_logger(__name__)

CONTENT_ENCODING = "aes128gcm"
PAYLOAD_TOO_LARGE_ERROR = "payload too large for push service"

# Some push services reject oversized payloads with a plain 400.
# The wording is theirs, so only a few obvious phrases are recognised.
_SIZE_ERROR_PATTERN = re.compile(r"size|too large|4096", re.IGNORECASE)


def _audience(endpoint: str) -> str:
    url = urlparse(endpoint)
    return f"{url.scheme}://{url.netloc}"


def build_push_request(
    receiver: Receiver,
    payload: NotificationPayload,
    vapid_keys: VapidKeyPair,
) -> PushRequest:
    """Encrypt a payload for a receiver and sign the request with VAPID."""
    subscription_info = {
        "endpoint": receiver.endpoint,
        "keys": {
            "p256dh": receiver.keys.p256dh,
            "auth": receiver.keys.auth,
        },
    }
    encoded = WebPusher(subscription_info).encode(
        serialize_payload(payload).encode("utf-8"),
        content_encoding=CONTENT_ENCODING,
    )

    vapid = Vapid02(private_key=load_signing_key(vapid_keys), conf={"no-strict": True})
    claims = {"sub": VAPID_SUBJECT, "aud": _audience(receiver.endpoint)}
    vapid_headers = vapid.sign(claims)

    headers = {
        "Authorization": vapid_headers["Authorization"],
        "Content-Encoding": CONTENT_ENCODING,
        "Content-Type": "application/octet-stream",
        "TTL": str(PUSH_TTL_SECONDS),
    }
    return PushRequest(headers=headers, body=encoded["body"])


def classify_response(name: str, status_code: int, text: str = "") -> DispatchResult:
    """Map a push service response to a DispatchResult."""
    if 200 <= status_code < 300:
        return DispatchResult(name=name, success=True)

    if status_code == 410:
        return DispatchResult(name=name, success=False, expired=True)

    if status_code == 413 or (status_code == 400 and _SIZE_ERROR_PATTERN.search(text or "")):
        return DispatchResult(name=name, success=False, error=PAYLOAD_TOO_LARGE_ERROR)

    error = f"HTTP {status_code}"
    if text:
        error += f": {text}"
    return DispatchResult(name=name, success=False, error=error)


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def send_push(
    receiver: Receiver,
    payload: NotificationPayload,
    session: Any = None,
) -> DispatchResult:
    """Send one notification to one receiver. Never raises.

    `session` is anything with a requests-compatible `post` method; the
    `requests` module itself is used when omitted.
    """
    http = session if session is not None else requests
    try:
        vapid_keys = derive_vapid_keys(receiver.vapid.private_key)
        request = build_push_request(receiver, payload, vapid_keys)

        logger.debug(
            f"POST {redact_endpoint(receiver.endpoint)} for '{receiver.name}' "
            f"({len(request.body)} bytes)"
        )
        response = http.post(
            receiver.endpoint,
            headers=request.headers,
            data=request.body,
            timeout=PUSH_TIMEOUT_SECONDS,
        )
        status_code = response.status_code
        try:
            text = "" if 200 <= status_code < 300 else (response.text or "").strip()
        except Exception:
            text = ""
    except Exception as e:
        logger.warning(f"Push to '{receiver.name}' failed: {e}")
        return DispatchResult(name=receiver.name, success=False, error=_error_message(e))

    result = classify_response(receiver.name, status_code, text)
    if result.success:
        logger.info(f"Push delivered to '{receiver.name}' (status {status_code})")
    elif result.expired:
        logger.info(f"Push subscription for '{receiver.name}' expired (status {status_code})")
    else:
        logger.warning(f"Push to '{receiver.name}' rejected: {result.error}")
    return result


async def broadcast_async(
    receivers: list[Receiver],
    payload: NotificationPayload,
    session: Any = None,
) -> list[DispatchResult]:
    """Push to every receiver concurrently and wait for all of them."""
    tasks = [asyncio.to_thread(send_push, receiver, payload, session) for receiver in receivers]
    outcomes = await asyncio.gather(*tasks, return_exceptions=True)

    results = []
    for receiver, outcome in zip(receivers, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(f"Unexpected error pushing to '{receiver.name}': {outcome}")
            outcome = DispatchResult(name=receiver.name, success=False, error=_error_message(outcome))
        results.append(outcome)
    return results


def broadcast(
    receivers: list[Receiver],
    payload: NotificationPayload,
    session: Any = None,
) -> list[DispatchResult]:
    """Blocking wrapper around broadcast_async. Results keep the receivers' order."""
    if not receivers:
        return []
    results = asyncio.run(broadcast_async(receivers, payload, session))
    delivered = sum(1 for r in results if r.success)
    logger.info(f"Push notification sent to {delivered}/{len(receivers)} receivers")
    return results


def apply_results(store: ReceiverStore, results: list[DispatchResult]) -> bool:
    """Apply receiver lifecycle updates for a finished broadcast.

    Successful receivers get lastUsedAt touched, expired ones are removed,
    others are left alone. Returns True only if every push succeeded.
    """
    all_delivered = True
    for result in results:
        if result.success:
            store.touch_receiver(result.name)
            continue

        all_delivered = False
        if result.expired:
            store.remove_receiver(result.name)
            logger.info(f"Removed expired receiver '{result.name}'")
    return all_delivered
