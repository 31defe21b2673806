"""Alert receivers - Render alert groups and deliver them to chat webhooks."""

__version__ = "0.1.0"
