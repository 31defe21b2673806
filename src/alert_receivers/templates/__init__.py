"""Notification templating - Go template syntax over alert group data."""

from alert_receivers.templates.data import KV, ExtendedAlert, ExtendedData, extend_data
from alert_receivers.templates.default import (
    DEFAULT_MESSAGE_EMBED,
    DEFAULT_MESSAGE_TITLE_EMBED,
)
from alert_receivers.templates.engine import Templates, TemplateError
from alert_receivers.templates.template import GroupRenderer, Template, TextRenderer

__all__ = [
    "DEFAULT_MESSAGE_EMBED",
    "DEFAULT_MESSAGE_TITLE_EMBED",
    "KV",
    "ExtendedAlert",
    "ExtendedData",
    "GroupRenderer",
    "Template",
    "TemplateError",
    "Templates",
    "TextRenderer",
    "extend_data",
]
