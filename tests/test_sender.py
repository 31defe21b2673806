"""Tests for webhook delivery."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from alert_receivers.models import NotifyContext
from alert_receivers.sender import (
    DEFAULT_USER_AGENT,
    HttpWebhookSender,
    MockWebhookSender,
    WebhookError,
    WebhookMessage,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def message() -> WebhookMessage:
    return WebhookMessage(url="https://oapi.dingtalk.com/robot/send?access_token=x", body='{"a": 1}')


@pytest.fixture
def ctx() -> NotifyContext:
    return NotifyContext(group_key="alertname")


def mock_client(response: MagicMock | None = None, error: Exception | None = None) -> AsyncMock:
    client = AsyncMock()
    if error is not None:
        client.request.side_effect = error
    else:
        client.request.return_value = response
    client.__aenter__.return_value = client
    client.__aexit__.return_value = None
    return client


# ============================================================================
# HttpWebhookSender Tests
# ============================================================================


class TestHttpWebhookSender:
    """Tests for the httpx webhook sender."""

    def test_init(self) -> None:
        sender = HttpWebhookSender(timeout=5.0)
        assert sender.timeout == 5.0
        assert sender.user_agent == DEFAULT_USER_AGENT
        assert sender.dry_run is False

    @pytest.mark.asyncio
    async def test_send_success(self, ctx: NotifyContext, message: WebhookMessage) -> None:
        """Test a 2xx response is a successful delivery."""
        sender = HttpWebhookSender()

        with patch("httpx.AsyncClient") as mock_client_class:
            response = MagicMock()
            response.status_code = 200
            client = mock_client(response)
            mock_client_class.return_value = client

            ok, err = await sender.send_webhook(ctx, message)

            assert ok is True
            assert err is None
            client.request.assert_called_once()
            args, kwargs = client.request.call_args
            assert args == ("POST", message.url)
            assert kwargs["content"] == b'{"a": 1}'
            assert kwargs["headers"]["Content-Type"] == "application/json"
            mock_client_class.assert_called_once_with(timeout=10.0)

    @pytest.mark.asyncio
    async def test_send_error_status(self, ctx: NotifyContext, message: WebhookMessage) -> None:
        """Test a non-2xx response returns a WebhookError with the status."""
        sender = HttpWebhookSender()

        with patch("httpx.AsyncClient") as mock_client_class:
            response = MagicMock()
            response.status_code = 500
            response.text = "Internal Server Error"
            mock_client_class.return_value = mock_client(response)

            ok, err = await sender.send_webhook(ctx, message)

            assert ok is False
            assert isinstance(err, WebhookError)
            assert err.status_code == 500

    @pytest.mark.asyncio
    async def test_send_timeout(self, ctx: NotifyContext, message: WebhookMessage) -> None:
        """Test timeouts are returned, not raised or retried."""
        sender = HttpWebhookSender()

        with patch("httpx.AsyncClient") as mock_client_class:
            client = mock_client(error=httpx.ReadTimeout("timed out"))
            mock_client_class.return_value = client

            ok, err = await sender.send_webhook(ctx, message)

            assert ok is False
            assert isinstance(err, WebhookError)
            assert "timed out" in str(err)
            assert client.request.call_count == 1

    @pytest.mark.asyncio
    async def test_send_transport_error(self, ctx: NotifyContext, message: WebhookMessage) -> None:
        sender = HttpWebhookSender()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client_class.return_value = mock_client(error=httpx.ConnectError("refused"))

            ok, err = await sender.send_webhook(ctx, message)

            assert ok is False
            assert isinstance(err, WebhookError)

    @pytest.mark.asyncio
    async def test_dry_run_skips_request(self, ctx: NotifyContext, message: WebhookMessage) -> None:
        sender = HttpWebhookSender(dry_run=True)

        with patch("httpx.AsyncClient") as mock_client_class:
            ok, err = await sender.send_webhook(ctx, message)

            assert ok is True
            assert err is None
            mock_client_class.assert_not_called()


class TestMockWebhookSender:
    """Tests for the recording sender."""

    @pytest.mark.asyncio
    async def test_records_last_webhook(self, ctx: NotifyContext, message: WebhookMessage) -> None:
        sender = MockWebhookSender()

        ok, err = await sender.send_webhook(ctx, message)

        assert (ok, err) == (True, None)
        assert sender.webhook is message
        assert sender.ctx is ctx
        assert sender.calls == 1
