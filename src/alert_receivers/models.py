"""Data models shared by the alert receivers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

STATUS_FIRING = "firing"
STATUS_RESOLVED = "resolved"


def _parse_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp, treating the zero time as unset."""
    if not value or value.startswith("0001-01-01"):
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class Alert:
    """A single alert as handed over by the alerting engine.

    Attributes:
        labels: Identifying label set.
        annotations: Informational annotation set.
        starts_at: When the alert started firing.
        ends_at: When the alert resolved, or None while still active.
        generator_url: Link back to the rule that produced the alert.
    """

    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    generator_url: str = ""

    def status(self, now: datetime | None = None) -> str:
        """Return "resolved" once ends_at has passed, "firing" otherwise."""
        if self.ends_at is None:
            return STATUS_FIRING
        now = now or datetime.now(UTC)
        return STATUS_RESOLVED if self.ends_at <= now else STATUS_FIRING

    def resolved(self, now: datetime | None = None) -> bool:
        return self.status(now) == STATUS_RESOLVED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert:
        """Create an Alert from an Alertmanager-style JSON object."""
        return cls(
            labels={str(k): str(v) for k, v in (data.get("labels") or {}).items()},
            annotations={
                str(k): str(v) for k, v in (data.get("annotations") or {}).items()
            },
            starts_at=_parse_time(data.get("startsAt")),
            ends_at=_parse_time(data.get("endsAt")),
            generator_url=str(data.get("generatorURL") or ""),
        )


@dataclass(frozen=True)
class NotifyContext:
    """Per-attempt request context passed through to the webhook sender.

    Attributes:
        group_key: Key of the alert group being notified.
        group_labels: Labels the alert group was grouped by.
        receiver: Name of the receiver handling the notification.
    """

    group_key: str = ""
    group_labels: dict[str, str] = field(default_factory=dict)
    receiver: str = ""
