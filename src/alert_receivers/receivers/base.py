"""Shared receiver types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from alert_receivers.models import Alert, NotifyContext


@dataclass(frozen=True)
class ReceiverBase:
    """Identity and common options of a configured receiver."""

    name: str = ""
    type: str = ""
    uid: str = ""
    disable_resolve_message: bool = False


class Notifier(Protocol):
    """Protocol for receivers that deliver an alert group."""

    base: ReceiverBase

    async def notify(
        self, ctx: NotifyContext, *alerts: Alert
    ) -> tuple[bool, Exception | None]:
        """Deliver the alert group. Returns (success, error)."""
        ...

    def send_resolved(self) -> bool:
        """Return True if resolved notifications should be delivered."""
        ...
