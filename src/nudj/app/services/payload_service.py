"""Fit notifications into the Web Push payload limit.

Push services accept at most 4096 bytes of encrypted payload. aes128gcm adds
a fixed 103 bytes, which leaves 3993 bytes for the JSON text of
{title, body, timestamp}. Oversized notifications are cut at the longest
prefix that still fits and marked with an ellipsis: body first, and the
title only once the body is gone entirely.
"""

import json
from typing import Callable

from nudj.app.config import ELLIPSIS, PLAINTEXT_BUDGET_BYTES
from nudj.app.models.push import FitResult, NotificationPayload
from nudj.app.services.logging_service import get_logger

logger = get_logger(__name__)


def serialize_payload(payload: NotificationPayload) -> str:
    """JSON text of the payload exactly as it is encrypted and sent."""
    return json.dumps(
        {
            "title": payload.title,
            "body": payload.body,
            "timestamp": payload.timestamp,
        },
        ensure_ascii=False,
        separators=(",", ":"),
    )


def payload_size(payload: NotificationPayload) -> int:
    """Size in bytes of the serialized payload."""
    return len(serialize_payload(payload).encode("utf-8"))


def longest_fitting_prefix(
    length: int,
    measure: Callable[[int], int],
    budget: int,
) -> int | None:
    """Largest n in [0, length] with measure(n) <= budget.

    `measure` must be non-decreasing in n. Returns None if not even n = 0 fits.
    """
    if measure(0) > budget:
        return None

    low, high = 0, length
    while low < high:
        mid = (low + high + 1) // 2
        if measure(mid) <= budget:
            low = mid
        else:
            high = mid - 1
    return low


def _clean_text(text: str) -> str:
    # Undecodable argv/stdin bytes arrive as lone surrogates, which UTF-8 cannot encode.
    return text.encode("utf-8", "surrogatepass").decode("utf-8", "replace")


def fit_payload(
    payload: NotificationPayload,
    budget: int = PLAINTEXT_BUDGET_BYTES,
) -> FitResult:
    """Truncate a notification so its serialized form fits in `budget` bytes.

    Lone surrogates in the title or body are replaced with U+FFFD first.
    """
    title, body, timestamp = _clean_text(payload.title), _clean_text(payload.body), payload.timestamp
    if title != payload.title or body != payload.body:
        payload = NotificationPayload(title=title, body=body, timestamp=timestamp)

    if payload_size(payload) <= budget:
        return FitResult(payload=payload, truncated=False)

    def with_body(n: int) -> NotificationPayload:
        return NotificationPayload(title=title, body=body[:n] + ELLIPSIS, timestamp=timestamp)

    keep = longest_fitting_prefix(len(body), lambda n: payload_size(with_body(n)), budget)
    if keep is not None:
        logger.info(f"Notification body truncated from {len(body)} to {keep} characters")
        return FitResult(payload=with_body(keep), truncated=True)

    def with_title(n: int) -> NotificationPayload:
        return NotificationPayload(title=title[:n] + ELLIPSIS, body="", timestamp=timestamp)

    keep = longest_fitting_prefix(len(title), lambda n: payload_size(with_title(n)), budget)
    if keep is not None:
        logger.info(f"Notification body dropped and title truncated to {keep} characters")
        return FitResult(payload=with_title(keep), truncated=True)

    raise RuntimeError(
        f"Plaintext budget of {budget} bytes cannot hold an empty notification; "
        "the payload size constants are misconfigured"
    )
