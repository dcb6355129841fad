"""Configuration and constants."""

import os
import sys
from pathlib import Path

APP_NAME = "nudj"

# Web Push size limits (aes128gcm, single record)
MAX_ENCRYPTED_PAYLOAD_BYTES = 4096
# 16 salt + 4 record size + 1 key id length + 65 key id + 1 padding delimiter + 16 tag
ENCRYPTION_OVERHEAD_BYTES = 103
PLAINTEXT_BUDGET_BYTES = MAX_ENCRYPTED_PAYLOAD_BYTES - ENCRYPTION_OVERHEAD_BYTES

# Push request settings
PUSH_TTL_SECONDS = 86_400
PUSH_TIMEOUT_SECONDS = 30
VAPID_SUBJECT = "https://github.com/redneb/nudj"

# Uncompressed P-256 public key: 0x04 || X || Y
UNCOMPRESSED_KEY_LENGTH = 65
UNCOMPRESSED_KEY_PREFIX = 0x04

DEFAULT_TITLE = APP_NAME
ELLIPSIS = "…"

CONFIG_FILE_NAME = "config.json"


def get_config_dir() -> Path:
    """Directory holding the config file and logs.

    NUDJ_CONFIG wins; otherwise %APPDATA% on Windows, then XDG_CONFIG_HOME,
    then ~/.config.
    """
    override = os.environ.get("NUDJ_CONFIG")
    if override:
        return Path(override).parent

    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME
        return Path.home() / "AppData" / "Roaming" / APP_NAME

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME

    return Path.home() / ".config" / APP_NAME


def get_config_path() -> Path:
    """Path of the receivers config file."""
    override = os.environ.get("NUDJ_CONFIG")
    if override:
        return Path(override)
    return get_config_dir() / CONFIG_FILE_NAME


def get_logs_dir() -> Path:
    return get_config_dir() / "logs"
