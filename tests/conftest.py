from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest


# Ensure src/ is on sys.path so `import nudj` works without installation.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))


@pytest.fixture
def config_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    # Keep tests hermetic: avoid writing to the real user config dir.
    path = tmp_path / "nudj-home" / "config.json"
    monkeypatch.setenv("NUDJ_CONFIG", str(path))
    return path


@pytest.fixture
def store(config_file: Path):
    from nudj.app.services.receiver_storage_service import ReceiverStore

    return ReceiverStore(config_file)


@pytest.fixture
def vapid_keys():
    """A fresh VAPID pair as the receiving device would create it (PKCS#8 private key)."""
    from nudj.app.services.vapid_service import generate_vapid_keys

    return generate_vapid_keys()


@pytest.fixture
def subscription():
    """Browser-side subscription keys: (ECDH private key, p256dh, auth)."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import ec

    from nudj.app.utils import base64url

    private_key = ec.generate_private_key(ec.SECP256R1())
    p256dh = private_key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    auth = os.urandom(16)
    return private_key, base64url.encode(p256dh), base64url.encode(auth)


def make_receiver(
    name: str = "phone",
    endpoint: str = "https://push.example/abc",
    p256dh: str = "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA",
    auth: str = "tBHItJI5svbpez7KI4CCXg",
    private_key: str = "dGhpcyBpcyBhIHRlc3Qga2V5Li4u",
    last_used_at: datetime | None = None,
):
    from nudj.app.models.receiver import Receiver

    return Receiver(
        name=name,
        endpoint=endpoint,
        keys={"p256dh": p256dh, "auth": auth},
        vapid={"privateKey": private_key},
        added_at=datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        last_used_at=last_used_at,
    )


@pytest.fixture
def receiver_factory():
    return make_receiver


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo handlers installed by setup_logging() so they don't outlive capsys."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
