"""DingDing (DingTalk) robot notifier."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from alert_receivers.receivers.dingding.config import MessageType
from alert_receivers.sender import WebhookMessage
from alert_receivers.templates.data import join_url_path
from alert_receivers.templates.engine import TemplateError

if TYPE_CHECKING:
    from alert_receivers.models import Alert, NotifyContext
    from alert_receivers.receivers.base import ReceiverBase
    from alert_receivers.receivers.dingding.config import DingDingConfig
    from alert_receivers.sender import WebhookSender
    from alert_receivers.templates.template import Template

logger = logging.getLogger(__name__)

DINGTALK_LINK_PREFIX = "dingtalk://dingtalkclient/page/link?"
ACTION_CARD_SINGLE_TITLE = "More"


class DingDingNotifier:
    """Renders an alert group into a DingDing robot message and sends it.

    Every call is independent: the title and message templates are rendered,
    a ``link`` or ``actionCard`` payload is assembled, and the JSON body is
    handed to the webhook sender exactly once.
    """

    def __init__(
        self,
        base: ReceiverBase,
        config: DingDingConfig,
        template: Template,
        sender: WebhookSender,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            base: Receiver identity and common options.
            config: Validated DingDing settings.
            template: Template set used to render title and message.
            sender: Collaborator that delivers the webhook.
            log: Logger to use instead of the module logger.
        """
        self.base = base
        self.config = config
        self.template = template
        self.sender = sender
        self.log = log or logger

    def message_url(self) -> str:
        """Deep link that opens the alert list inside the DingTalk client."""
        rule_url = join_url_path(self.template.external_url, "alerting/list")
        return DINGTALK_LINK_PREFIX + urlencode({"pc_slide": "false", "url": rule_url})

    def build_payload(self, message_url: str, title: str, message: str) -> dict[str, Any]:
        """Assemble the robot message for the configured message type."""
        payload: dict[str, Any]
        if self.config.message_type is MessageType.ACTION_CARD:
            payload = {
                "msgtype": MessageType.ACTION_CARD.value,
                "actionCard": {
                    "text": message,
                    "title": title,
                    "singleTitle": ACTION_CARD_SINGLE_TITLE,
                    "singleURL": message_url,
                },
            }
        else:
            payload = {
                "msgtype": MessageType.LINK.value,
                "link": {
                    "messageUrl": message_url,
                    "text": message,
                    "title": title,
                },
            }
        payload["at"] = self.config.at.to_payload()
        return payload

    async def notify(
        self, ctx: NotifyContext, *alerts: Alert
    ) -> tuple[bool, Exception | None]:
        """Send the alert group to DingDing.

        Args:
            ctx: Notification context, passed through to the sender.
            alerts: Alerts of the group.

        Returns:
            (success, error). Template and serialization failures return
            (False, error); the sender's result is returned unchanged.
        """
        self.log.info(
            f"Sending DingDing notification for group {ctx.group_key!r} "
            f"({len(alerts)} alerts, {self.config.message_type.value})"
        )

        message_url = self.message_url()
        try:
            renderer = self.template.text_renderer(ctx, alerts)
            title = renderer.render(self.config.title)
            message = renderer.render(self.config.message)
        except TemplateError as e:
            self.log.warning(f"Failed to template DingDing message: {e}")
            return False, e

        try:
            body = json.dumps(
                self.build_payload(message_url, title, message), ensure_ascii=False
            )
        except (TypeError, ValueError) as e:
            self.log.error(f"Failed to marshal DingDing message: {e}")
            return False, e

        ok, err = await self.sender.send_webhook(
            ctx, WebhookMessage(url=self.config.url, body=body)
        )
        if not ok:
            self.log.error(f"DingDing delivery failed for group {ctx.group_key!r}: {err}")
        return ok, err

    def send_resolved(self) -> bool:
        return not self.base.disable_resolve_message
