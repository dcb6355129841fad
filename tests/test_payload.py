"""Tests for fitting notifications into the push payload limit."""

from __future__ import annotations

import json

import pytest

from nudj.app.config import ENCRYPTION_OVERHEAD_BYTES, MAX_ENCRYPTED_PAYLOAD_BYTES, PLAINTEXT_BUDGET_BYTES
from nudj.app.models.push import NotificationPayload
from nudj.app.services.payload_service import (
    fit_payload,
    longest_fitting_prefix,
    payload_size,
    serialize_payload,
)

TIMESTAMP = 1_700_000_000_000


def _payload(title: str = "nudj", body: str = "hello") -> NotificationPayload:
    return NotificationPayload(title=title, body=body, timestamp=TIMESTAMP)


def _assert_maximal(result, field: str, original: str):
    """The kept prefix fits and one more character would not."""
    kept = getattr(result.payload, field)
    assert kept.endswith("…")
    prefix = kept[:-1]
    assert original.startswith(prefix)
    assert payload_size(result.payload) <= PLAINTEXT_BUDGET_BYTES
    longer = result.payload.model_copy(update={field: original[: len(prefix) + 1] + "…"})
    assert payload_size(longer) > PLAINTEXT_BUDGET_BYTES


class TestConstants:
    def test_budget(self):
        assert MAX_ENCRYPTED_PAYLOAD_BYTES == 4096
        assert ENCRYPTION_OVERHEAD_BYTES == 103
        assert PLAINTEXT_BUDGET_BYTES == 3993


class TestSerialize:
    def test_field_order_and_compact(self):
        text = serialize_payload(_payload("T", "B"))
        assert text == '{"title":"T","body":"B","timestamp":1700000000000}'

    def test_non_ascii_counted_as_utf8(self):
        payload = _payload("", "é")
        assert "é" in serialize_payload(payload)
        assert payload_size(payload) == len(serialize_payload(payload)) + 1


class TestLongestFittingPrefix:
    def test_finds_boundary(self):
        assert longest_fitting_prefix(10, lambda n: n * 2, 7) == 3

    def test_everything_fits(self):
        assert longest_fitting_prefix(10, lambda n: n, 100) == 10

    def test_nothing_fits(self):
        assert longest_fitting_prefix(10, lambda n: n + 8, 7) is None

    def test_only_empty_fits(self):
        assert longest_fitting_prefix(10, lambda n: 7 + n, 7) == 0


class TestFitPayload:
    def test_small_payload_unchanged(self):
        payload = _payload()
        result = fit_payload(payload)
        assert result.truncated is False
        assert result.payload == payload

    def test_payload_exactly_at_budget_unchanged(self):
        empty = payload_size(_payload(body=""))
        payload = _payload(body="x" * (PLAINTEXT_BUDGET_BYTES - empty))
        assert payload_size(payload) == PLAINTEXT_BUDGET_BYTES
        result = fit_payload(payload)
        assert result.truncated is False
        assert result.payload == payload

    def test_long_ascii_body(self):
        body = "a" * 5000
        result = fit_payload(_payload(body=body))

        assert result.truncated is True
        assert result.payload.title == "nudj"
        assert result.payload.timestamp == TIMESTAMP
        fixed = len(json.dumps({"title": "nudj", "body": "", "timestamp": TIMESTAMP}, separators=(",", ":")))
        expected_len = PLAINTEXT_BUDGET_BYTES - fixed - len("…".encode("utf-8"))
        assert result.payload.body == "a" * expected_len + "…"
        _assert_maximal(result, "body", body)

    @pytest.mark.parametrize("char", ["é", "日", "🎉", '"', "\n", "\x01"])
    def test_multibyte_and_escaped_body(self, char):
        body = char * 4000
        result = fit_payload(_payload(body=body))
        assert result.truncated is True
        _assert_maximal(result, "body", body)

    def test_mixed_width_body(self):
        body = ("ab日🎉\"" * 2000)
        result = fit_payload(_payload(title="Build ✓", body=body))
        assert result.payload.title == "Build ✓"
        _assert_maximal(result, "body", body)

    def test_title_kept_while_body_truncated(self):
        title = "t" * 1000
        result = fit_payload(_payload(title=title, body="b" * 5000))
        assert result.truncated is True
        assert result.payload.title == title
        assert result.payload.body.startswith("b")

    def test_huge_title_drops_body_then_truncates_title(self):
        title = "T" * 5000
        result = fit_payload(_payload(title=title, body="some body"))
        assert result.truncated is True
        assert result.payload.body == ""
        _assert_maximal(result, "title", title)

    def test_title_fitting_without_body(self):
        # Fits with an empty body but not with a one-character body plus marker.
        empty = payload_size(_payload(title="", body=""))
        title = "T" * (PLAINTEXT_BUDGET_BYTES - empty - 2)
        result = fit_payload(_payload(title=title, body="body"))
        assert result.truncated is True
        assert result.payload.body == ""
        assert result.payload.title.endswith("…")
        assert payload_size(result.payload) <= PLAINTEXT_BUDGET_BYTES

    @pytest.mark.parametrize("title_len,body_len", [(0, 0), (0, 9000), (9000, 0), (2000, 2000), (3990, 10)])
    def test_always_within_budget(self, title_len, body_len):
        payload = _payload(title="é" * title_len, body="x" * body_len)
        result = fit_payload(payload)
        assert payload_size(result.payload) <= PLAINTEXT_BUDGET_BYTES
        assert result.truncated == (payload_size(payload) > PLAINTEXT_BUDGET_BYTES)

    def test_custom_budget(self):
        result = fit_payload(_payload(body="x" * 100), budget=80)
        assert result.truncated is True
        assert payload_size(result.payload) <= 80

    def test_impossible_budget_is_fatal(self):
        with pytest.raises(RuntimeError, match="misconfigured"):
            fit_payload(_payload(), budget=10)

    @pytest.mark.parametrize("title,body", [
        ("nudj", "\udcff"),
        ("\ud800 title", "body \udcff"),
        ("nudj", "\udcff" * 5000),
    ])
    def test_lone_surrogates_replaced(self, title, body):
        result = fit_payload(_payload(title=title, body=body))
        assert payload_size(result.payload) <= PLAINTEXT_BUDGET_BYTES
        assert "�" in result.payload.title + result.payload.body
        serialize_payload(result.payload).encode("utf-8")

    def test_clean_payload_returned_as_is(self):
        payload = _payload()
        assert fit_payload(payload).payload is payload
