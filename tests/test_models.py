"""Tests for alert data models."""

from datetime import UTC, datetime, timedelta

from alert_receivers.models import Alert, NotifyContext

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class TestAlert:
    """Tests for Alert."""

    def test_status_without_end_is_firing(self) -> None:
        assert Alert().status(NOW) == "firing"

    def test_status_after_end_is_resolved(self) -> None:
        alert = Alert(ends_at=NOW - timedelta(seconds=1))
        assert alert.status(NOW) == "resolved"
        assert alert.resolved(NOW) is True

    def test_status_with_future_end_is_firing(self) -> None:
        """Test an end time in the future still counts as firing."""
        alert = Alert(ends_at=NOW + timedelta(minutes=5))
        assert alert.status(NOW) == "firing"

    def test_from_dict(self) -> None:
        alert = Alert.from_dict(
            {
                "labels": {"alertname": "a"},
                "annotations": {"summary": "s"},
                "startsAt": "2024-01-01T11:00:00Z",
                "endsAt": "0001-01-01T00:00:00Z",
                "generatorURL": "http://localhost/rule",
            }
        )
        assert alert.labels == {"alertname": "a"}
        assert alert.annotations == {"summary": "s"}
        assert alert.starts_at == datetime(2024, 1, 1, 11, 0, tzinfo=UTC)
        assert alert.ends_at is None
        assert alert.generator_url == "http://localhost/rule"

    def test_from_dict_minimal(self) -> None:
        alert = Alert.from_dict({"labels": {"alertname": "a"}})
        assert alert.annotations == {}
        assert alert.starts_at is None


class TestNotifyContext:
    """Tests for NotifyContext."""

    def test_defaults(self) -> None:
        ctx = NotifyContext()
        assert ctx.group_key == ""
        assert ctx.group_labels == {}
        assert ctx.receiver == ""
