"""nudj - send push notifications from your CLI to your phone."""

__version__ = "0.1.0"
