"""Template rendering entry point for receivers."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from alert_receivers.models import Alert, NotifyContext
from alert_receivers.templates.data import ExtendedData, extend_data
from alert_receivers.templates.default import DEFAULT_TEMPLATE_STRING
from alert_receivers.templates.engine import Templates

logger = logging.getLogger(__name__)


class TextRenderer(Protocol):
    """Renders template strings against one alert group."""

    def render(self, text: str) -> str:
        """Expand text. Raises TemplateError for malformed templates."""
        ...


class GroupRenderer:
    """TextRenderer bound to the template data of a single alert group."""

    def __init__(self, templates: Templates, data: ExtendedData) -> None:
        self.templates = templates
        self.data = data

    def render(self, text: str) -> str:
        return self.templates.execute_text(text, self.data)


class Template:
    """Notification template set with the external URL used for links.

    Example:
        ```python
        tmpl = Template(external_url="https://grafana.example.com")
        renderer = tmpl.text_renderer(NotifyContext(), alerts)
        title = renderer.render(DEFAULT_MESSAGE_TITLE_EMBED)
        ```
    """

    def __init__(
        self,
        external_url: str = "http://localhost:3000/",
        *,
        extra_templates: Sequence[str] = (),
    ) -> None:
        """Initialize the template set.

        Args:
            external_url: Base URL of the alerting UI.
            extra_templates: Additional template sources with ``define`` blocks.
        """
        self.external_url = external_url
        self.templates = Templates()
        self.templates.parse(DEFAULT_TEMPLATE_STRING)
        for source in extra_templates:
            self.templates.parse(source)

    def text_renderer(
        self,
        ctx: NotifyContext,
        alerts: Sequence[Alert],
        now: datetime | None = None,
    ) -> GroupRenderer:
        data = extend_data(ctx, alerts, self.external_url, now)
        logger.debug(
            f"Built template data for group {ctx.group_key!r}: "
            f"{len(data.alerts.firing())} firing, {len(data.alerts.resolved())} resolved"
        )
        return GroupRenderer(self.templates, data)
