"""Template data built from an alert group.

The structures here are what ``.`` refers to inside a notification template:
``.Alerts.Firing``, ``.CommonLabels.SortedPairs`` and so on.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar
from urllib.parse import quote_plus

from alert_receivers.models import STATUS_FIRING, STATUS_RESOLVED, Alert, NotifyContext

logger = logging.getLogger(__name__)

DASHBOARD_UID_ANNOTATION = "__dashboardUid__"
PANEL_ID_ANNOTATION = "__panelId__"
VALUES_ANNOTATION = "__values__"
VALUE_STRING_ANNOTATION = "__value_string__"

_FNV_OFFSET = 14695981039346656037
_FNV_PRIME = 1099511628211
_SEPARATOR = 0xFF


def is_private(name: str) -> bool:
    """Return True for reserved ``__name__`` style keys."""
    return name.startswith("__") and name.endswith("__")


def fingerprint(labels: Mapping[str, str]) -> str:
    """Compute the FNV-1a fingerprint of a label set as 16 hex digits."""
    value = _FNV_OFFSET
    for name in sorted(labels):
        for chunk in (name.encode(), bytes([_SEPARATOR]), labels[name].encode(), bytes([_SEPARATOR])):
            for byte in chunk:
                value ^= byte
                value = (value * _FNV_PRIME) & 0xFFFFFFFFFFFFFFFF
    return f"{value:016x}"


@dataclass(frozen=True)
class Pair:
    """A single label name/value pair."""

    _template_fields: ClassVar[frozenset[str]] = frozenset({"Name", "Value"})

    name: str
    value: str


class Pairs(list[Pair]):
    """A sorted list of pairs."""

    _template_fields: ClassVar[frozenset[str]] = frozenset({"Names", "Values"})

    def names(self) -> list[str]:
        return [p.name for p in self]

    def values(self) -> list[str]:
        return [p.value for p in self]


class KV(Mapping[str, str]):
    """A read-only label or annotation set, iterated in key order."""

    _template_fields: ClassVar[frozenset[str]] = frozenset(
        {"SortedPairs", "Names", "Values", "Remove"}
    )

    def __init__(self, data: Mapping[str, str] | None = None) -> None:
        self._data = dict(data or {})

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"KV({self._data!r})"

    def sorted_pairs(self) -> Pairs:
        return Pairs(Pair(k, self._data[k]) for k in sorted(self._data))

    def names(self) -> list[str]:
        return sorted(self._data)

    def values(self) -> list[str]:  # type: ignore[override]
        """Return the values sorted by their keys."""
        return [self._data[k] for k in sorted(self._data)]

    def remove(self, keys: Iterable[str]) -> KV:
        """Return a copy without the given keys."""
        drop = set(keys or ())
        return KV({k: v for k, v in self._data.items() if k not in drop})


def _public(items: Mapping[str, str]) -> KV:
    return KV({k: v for k, v in items.items() if not is_private(k)})


@dataclass(frozen=True)
class ExtendedAlert:
    """One alert as exposed to templates."""

    _template_fields: ClassVar[frozenset[str]] = frozenset(
        {
            "Status",
            "Labels",
            "Annotations",
            "StartsAt",
            "EndsAt",
            "GeneratorURL",
            "Fingerprint",
            "SilenceURL",
            "DashboardURL",
            "PanelURL",
            "Values",
            "ValueString",
        }
    )

    status: str
    labels: KV
    annotations: KV
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    generator_url: str = ""
    fingerprint: str = ""
    silence_url: str = ""
    dashboard_url: str = ""
    panel_url: str = ""
    values: dict[str, float] = field(default_factory=dict)
    value_string: str = ""


class ExtendedAlerts(list[ExtendedAlert]):
    """A list of alerts that can be split by status."""

    _template_fields: ClassVar[frozenset[str]] = frozenset({"Firing", "Resolved"})

    def firing(self) -> ExtendedAlerts:
        return ExtendedAlerts(a for a in self if a.status == STATUS_FIRING)

    def resolved(self) -> ExtendedAlerts:
        return ExtendedAlerts(a for a in self if a.status == STATUS_RESOLVED)


@dataclass(frozen=True)
class ExtendedData:
    """Top-level template data for one alert group."""

    _template_fields: ClassVar[frozenset[str]] = frozenset(
        {
            "Receiver",
            "Status",
            "Alerts",
            "GroupLabels",
            "CommonLabels",
            "CommonAnnotations",
            "ExternalURL",
            "GroupKey",
        }
    )

    receiver: str
    status: str
    alerts: ExtendedAlerts
    group_labels: KV
    common_labels: KV
    common_annotations: KV
    external_url: str
    group_key: str = ""


def join_url_path(base: str, *parts: str) -> str:
    """Join path segments onto a base URL with exactly one slash between them."""
    url = base.rstrip("/")
    for part in parts:
        url = f"{url}/{part.strip('/')}"
    return url


def silence_url(external_url: str, labels: Mapping[str, str]) -> str:
    """Build a link that opens the silence editor pre-filled with the alert labels."""
    url = join_url_path(external_url, "alerting/silence/new") + "?alertmanager=grafana"
    for name in sorted(labels):
        if is_private(name):
            continue
        url += f"&matcher={quote_plus(f'{name}={labels[name]}')}"
    return url


def _parse_values(raw: str | None) -> dict[str, float]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
        return {str(k): float(v) for k, v in decoded.items()}
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to decode alert values {raw!r}: {e}")
        return {}


def extend_alert(alert: Alert, external_url: str, now: datetime | None = None) -> ExtendedAlert:
    """Project an alert into its template representation."""
    annotations = alert.annotations
    dashboard_url = ""
    panel_url = ""
    dashboard_uid = annotations.get(DASHBOARD_UID_ANNOTATION, "")
    if dashboard_uid:
        dashboard_url = join_url_path(external_url, "d", dashboard_uid)
        panel_id = annotations.get(PANEL_ID_ANNOTATION, "")
        if panel_id:
            panel_url = f"{dashboard_url}?viewPanel={quote_plus(panel_id)}"

    return ExtendedAlert(
        status=alert.status(now),
        labels=_public(alert.labels),
        annotations=_public(annotations),
        starts_at=alert.starts_at,
        ends_at=alert.ends_at,
        generator_url=alert.generator_url,
        fingerprint=fingerprint(alert.labels),
        silence_url=silence_url(external_url, alert.labels),
        dashboard_url=dashboard_url,
        panel_url=panel_url,
        values=_parse_values(annotations.get(VALUES_ANNOTATION)),
        value_string=annotations.get(VALUE_STRING_ANNOTATION, ""),
    )


def _common(items: Sequence[Mapping[str, str]]) -> dict[str, str]:
    if not items:
        return {}
    common = dict(items[0])
    for other in items[1:]:
        common = {k: v for k, v in common.items() if other.get(k) == v}
    return common


def extend_data(
    ctx: NotifyContext,
    alerts: Sequence[Alert],
    external_url: str,
    now: datetime | None = None,
) -> ExtendedData:
    """Build the template data for an alert group.

    Args:
        ctx: Notification context carrying the group key and labels.
        alerts: Alerts of the group in delivery order.
        external_url: Base URL of the alerting UI used for links.
        now: Reference time for firing/resolved classification.

    Returns:
        The ExtendedData exposed as ``.`` to templates.
    """
    now = now or datetime.now(UTC)
    extended = ExtendedAlerts(extend_alert(a, external_url, now) for a in alerts)
    status = STATUS_FIRING if extended.firing() else STATUS_RESOLVED
    return ExtendedData(
        receiver=ctx.receiver,
        status=status,
        alerts=extended,
        group_labels=_public(ctx.group_labels),
        common_labels=_public(_common([a.labels for a in alerts])),
        common_annotations=_public(_common([a.annotations for a in alerts])),
        external_url=external_url,
        group_key=ctx.group_key,
    )
