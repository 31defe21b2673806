"""Receivers - Vendor specific notification channels."""

from alert_receivers.receivers.base import Notifier, ReceiverBase

__all__ = [
    "Notifier",
    "ReceiverBase",
]
