"""DingDing (DingTalk) robot webhook receiver."""

from alert_receivers.receivers.dingding.config import At, DingDingConfig, MessageType
from alert_receivers.receivers.dingding.notifier import DingDingNotifier

__all__ = [
    "At",
    "DingDingConfig",
    "DingDingNotifier",
    "MessageType",
]
