"""Webhook delivery for receivers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import httpx

from alert_receivers import __version__

if TYPE_CHECKING:
    from alert_receivers.models import NotifyContext

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"alert-receivers/{__version__}"


class WebhookError(Exception):
    """Raised or returned when a webhook could not be delivered."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class WebhookMessage:
    """A serialized HTTP request to a webhook endpoint.

    Attributes:
        url: Target URL.
        body: Request body, already serialized.
        http_method: HTTP method to use.
        content_type: Value of the Content-Type header.
        headers: Additional request headers.
    """

    url: str
    body: str
    http_method: str = "POST"
    content_type: str = "application/json"
    headers: dict[str, str] = field(default_factory=dict)


class WebhookSender(Protocol):
    """Protocol for webhook delivery collaborators."""

    async def send_webhook(
        self, ctx: NotifyContext, message: WebhookMessage
    ) -> tuple[bool, Exception | None]:
        """Deliver message. Returns (success, error)."""
        ...


class HttpWebhookSender:
    """Webhook sender backed by httpx.

    Sends exactly one request per call; retry policy belongs to the caller.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        dry_run: bool = False,
    ) -> None:
        """Initialize the sender.

        Args:
            timeout: HTTP request timeout in seconds.
            user_agent: User-Agent header sent with each request.
            dry_run: Log requests instead of sending them.
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.dry_run = dry_run

    async def send_webhook(
        self, ctx: NotifyContext, message: WebhookMessage
    ) -> tuple[bool, Exception | None]:
        """Send message to its URL.

        Args:
            ctx: Notification context of the attempt.
            message: Request to send.

        Returns:
            (True, None) on a 2xx response, (False, WebhookError) otherwise.
        """
        if self.dry_run:
            logger.info(f"Dry run, not sending webhook for group {ctx.group_key!r}")
            return True, None

        headers = {
            "Content-Type": message.content_type,
            "User-Agent": self.user_agent,
            **message.headers,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    message.http_method,
                    message.url,
                    content=message.body.encode("utf-8"),
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            logger.warning(f"Webhook request timed out for group {ctx.group_key!r}")
            return False, WebhookError(f"webhook request timed out: {e}")
        except httpx.HTTPError as e:
            logger.error(f"Webhook request failed: {e}")
            return False, WebhookError(f"webhook request failed: {e}")

        if 200 <= response.status_code < 300:
            logger.debug(f"Webhook delivered with status {response.status_code}")
            return True, None

        logger.error(f"Webhook failed: {response.status_code} {response.text}")
        return False, WebhookError(
            f"webhook response status {response.status_code}",
            status_code=response.status_code,
        )


class MockWebhookSender:
    """In-memory sender that records the last webhook it was given."""

    def __init__(self, result: tuple[bool, Exception | None] = (True, None)) -> None:
        self.result = result
        self.webhook: WebhookMessage | None = None
        self.ctx: NotifyContext | None = None
        self.calls = 0

    async def send_webhook(
        self, ctx: NotifyContext, message: WebhookMessage
    ) -> tuple[bool, Exception | None]:
        self.ctx = ctx
        self.webhook = message
        self.calls += 1
        return self.result
