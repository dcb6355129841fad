"""Receiver storage.

Receivers live in a single JSON file (see config.get_config_path):

    {"receivers": [{"name": ..., "endpoint": ..., "keys": {...}, "vapid": {...},
                    "addedAt": ..., "lastUsedAt": ...}]}

Every change reads the whole file, mutates it in memory and rewrites it
atomically (temp file in the same directory, then os.replace), so a crash
mid-write leaves the previous file intact.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from nudj.app.config import get_config_path
from nudj.app.models.receiver import Receiver
from nudj.app.services.logging_service import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ReceiverStore:
    """Reads and atomically rewrites the receivers config file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path) if path is not None else get_config_path()

    # -- raw file access ------------------------------------------------

    def read_all(self) -> list[Receiver]:
        """Load all receivers. A missing or unreadable file means no receivers."""
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {self.path}: {e}")
            return []

        if not isinstance(data, dict) or not isinstance(data.get("receivers", []), list):
            logger.warning(f"Ignoring malformed config file {self.path}")
            return []

        receivers = []
        for entry in data.get("receivers", []):
            try:
                receivers.append(Receiver.model_validate(entry))
            except ValidationError as e:
                name = entry.get("name") if isinstance(entry, dict) else None
                logger.warning(f"Skipping invalid receiver {name!r}: {e.error_count()} error(s)")
        return receivers

    def write_all(self, receivers: list[Receiver]) -> None:
        """Replace the config file contents all-or-nothing."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "receivers": [r.model_dump(mode="json", by_alias=True) for r in receivers],
        }

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @contextmanager
    def transaction(self) -> Iterator[list[Receiver]]:
        """Read-modify-write block; the list is written back if the block succeeds."""
        receivers = self.read_all()
        yield receivers
        self.write_all(receivers)

    # -- receiver operations ----------------------------------------------

    def list_receivers(self) -> list[Receiver]:
        return self.read_all()

    def get_receiver(self, name: str) -> Receiver | None:
        for receiver in self.read_all():
            if receiver.name == name:
                return receiver
        return None

    def add_receiver(self, receiver: Receiver) -> None:
        """Add a receiver. Names are unique (case-sensitive)."""
        with self.transaction() as receivers:
            if any(r.name == receiver.name for r in receivers):
                raise ValueError(f"A receiver named '{receiver.name}' already exists.")
            receivers.append(receiver)
        logger.info(f"Added receiver '{receiver.name}' (total: {len(receivers)})")

    def remove_receiver(self, name: str) -> bool:
        """Remove a receiver by name. Returns False if there was none."""
        receivers = self.read_all()
        remaining = [r for r in receivers if r.name != name]
        if len(remaining) == len(receivers):
            return False
        self.write_all(remaining)
        logger.info(f"Removed receiver '{name}' (total: {len(remaining)})")
        return True

    def rename_receiver(self, old_name: str, new_name: str) -> bool:
        """Rename a receiver. Returns False if `old_name` does not exist."""
        receivers = self.read_all()
        if any(r.name == new_name for r in receivers):
            raise ValueError(f"A receiver named '{new_name}' already exists.")

        for receiver in receivers:
            if receiver.name == old_name:
                receiver.name = new_name
                self.write_all(receivers)
                logger.info(f"Renamed receiver '{old_name}' -> '{new_name}'")
                return True
        return False

    def touch_receiver(self, name: str, when: datetime | None = None) -> bool:
        """Set a receiver's lastUsedAt. Returns False if it no longer exists."""
        receivers = self.read_all()
        for receiver in receivers:
            if receiver.name == name:
                receiver.last_used_at = when or _now()
                self.write_all(receivers)
                return True
        return False
