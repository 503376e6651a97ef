"""
Notifier tests.
Tests for Discord and Email delivery and the notification scheduler.
"""

import asyncio
import pytest
from unittest.mock import Mock, patch, MagicMock
from datetime import datetime

import requests

from currency_tracker.notifiers.base import (
    LogNotifier,
    Notification,
    NotificationResult,
    Notifier,
    NotifierFactory,
)
from currency_tracker.notifiers.discord import DiscordNotifier
from currency_tracker.notifiers.email import EmailNotifier
from currency_tracker.notifiers.scheduler import NotificationScheduler, next_fire_time


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.sent: list[Notification] = []
        self.fail = fail

    def send(self, notification: Notification) -> NotificationResult:
        if self.fail:
            raise RuntimeError("channel down")
        self.sent.append(notification)
        return NotificationResult(success=True, channel="recording")


@pytest.fixture
def threshold_notification():
    return Notification(
        id="a1b2",
        title="Rate alert",
        body="1 USD = 139.50 JPY",
        created_at=datetime(2024, 5, 10, 9, 0),
    )


@pytest.fixture
def daily_notification():
    return Notification(
        id="daily_rate_notification",
        title="Daily rate",
        body="1 USD = 155.70 JPY",
        created_at=datetime(2024, 5, 10, 8, 0),
        recurring=True,
    )


class TestNotificationResult:
    """Test NotificationResult model."""

    def test_success_result(self):
        """Should create success result."""
        result = NotificationResult(success=True, channel="discord")
        assert result.success is True
        assert result.error is None

    def test_failure_result(self):
        """Should create failure result with error."""
        result = NotificationResult(success=False, channel="email", error="SMTP connection failed")
        assert result.success is False
        assert result.error == "SMTP connection failed"


class TestDiscordNotifier:
    """Test Discord webhook notifications."""

    @pytest.fixture
    def notifier(self, sample_discord_webhook_url):
        return DiscordNotifier(webhook_url=sample_discord_webhook_url, mention=True)

    def test_send_notification_success(self, notifier, threshold_notification):
        """Should send notification successfully."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 204
            mock_post.return_value.ok = True

            result = notifier.send(threshold_notification)

        assert result.success is True
        assert result.channel == "discord"
        mock_post.assert_called_once()

    def test_send_notification_failure(self, notifier, threshold_notification):
        """Should report HTTP errors."""
        with patch("requests.post") as mock_post:
            mock_post.return_value.status_code = 400
            mock_post.return_value.ok = False
            mock_post.return_value.text = "Bad Request"

            result = notifier.send(threshold_notification)

        assert result.success is False
        assert "400" in result.error

    def test_threshold_embed(self, notifier, threshold_notification):
        payload = notifier._create_payload(threshold_notification)

        embed = payload["embeds"][0]
        assert embed["title"] == "Rate alert"
        assert embed["description"] == "1 USD = 139.50 JPY"
        assert embed["color"] == DiscordNotifier.COLOR_THRESHOLD
        assert payload["content"] == "@here"

    def test_daily_embed_has_no_mention(self, notifier, daily_notification):
        payload = notifier._create_payload(daily_notification)

        assert payload["embeds"][0]["color"] == DiscordNotifier.COLOR_DAILY
        assert "content" not in payload

    def test_no_mention_when_disabled(self, sample_discord_webhook_url, threshold_notification):
        notifier = DiscordNotifier(webhook_url=sample_discord_webhook_url)
        assert "content" not in notifier._create_payload(threshold_notification)

    def test_rate_limit_handling(self, notifier, threshold_notification):
        """Should retry once after Discord rate limiting."""
        with patch("requests.post") as mock_post:
            rate_limit_response = Mock()
            rate_limit_response.status_code = 429
            rate_limit_response.ok = False
            rate_limit_response.headers = {"Retry-After": "1"}

            success_response = Mock()
            success_response.status_code = 204
            success_response.ok = True

            mock_post.side_effect = [rate_limit_response, success_response]

            with patch("time.sleep") as mock_sleep:
                result = notifier.send(threshold_notification)

        assert mock_post.call_count == 2
        mock_sleep.assert_called_once_with(1.0)
        assert result.success is True

    def test_network_error_handling(self, notifier, threshold_notification):
        """Should handle network errors gracefully."""
        with patch("requests.post") as mock_post:
            mock_post.side_effect = requests.exceptions.ConnectionError("Network unreachable")

            result = notifier.send(threshold_notification)

        assert result.success is False
        assert "Connection error" in result.error


class TestEmailNotifier:
    """Test Email SMTP notifications."""

    @pytest.fixture
    def notifier(self, sample_smtp_config):
        return EmailNotifier(
            smtp_host=sample_smtp_config["host"],
            smtp_port=sample_smtp_config["port"],
            smtp_user=sample_smtp_config["user"],
            smtp_password=sample_smtp_config["password"],
            from_address=sample_smtp_config["from_address"],
            to_addresses=["user1@example.com", "user2@example.com"],
        )

    def test_send_email_success(self, notifier, threshold_notification):
        """Should send email over TLS."""
        with patch("smtplib.SMTP") as mock_smtp:
            mock_server = MagicMock()
            mock_smtp.return_value.__enter__.return_value = mock_server

            result = notifier.send(threshold_notification)

        assert result.success is True
        assert result.channel == "email"
        mock_server.starttls.assert_called_once()
        mock_server.send_message.assert_called_once()

        message = mock_server.send_message.call_args[0][0]
        assert message["Subject"] == "Currency Tracker: Rate alert"
        assert "user1@example.com" in message["To"]
        assert "user2@example.com" in message["To"]

    def test_send_email_failure(self, notifier, threshold_notification):
        """Should handle SMTP failure."""
        with patch("smtplib.SMTP") as mock_smtp:
            mock_smtp.return_value.__enter__.side_effect = Exception("connection refused")

            result = notifier.send(threshold_notification)

        assert result.success is False
        assert result.error.startswith("SMTP error")

    def test_html_body_contains_rate(self, notifier, threshold_notification):
        body = notifier._create_html_body(threshold_notification)

        assert "<html>" in body
        assert "1 USD = 139.50 JPY" in body

    def test_daily_and_threshold_accents(self, notifier, threshold_notification, daily_notification):
        assert "#FFA500" in notifier._create_html_body(threshold_notification)
        assert "#3498DB" in notifier._create_html_body(daily_notification)
        assert notifier._create_text_body(daily_notification).startswith("Daily rate")


class TestNotifierFactory:
    """Test notifier creation from config."""

    def test_create_discord_notifier(self):
        notifier = NotifierFactory.create(
            {"type": "discord", "webhook_url": "https://discord.com/api/webhooks/1/x", "mention": True}
        )

        assert isinstance(notifier, DiscordNotifier)
        assert notifier.mention is True

    def test_create_email_notifier(self):
        notifier = NotifierFactory.create(
            {
                "type": "email",
                "smtp_host": "smtp.gmail.com",
                "to_addresses": ["recipient@example.com"],
            }
        )

        assert isinstance(notifier, EmailNotifier)
        assert notifier.smtp_port == 587

    def test_create_log_notifier(self, threshold_notification):
        notifier = NotifierFactory.create({"type": "log"})

        assert isinstance(notifier, LogNotifier)
        assert notifier.send(threshold_notification).success is True

    def test_invalid_notifier_type(self):
        """Should raise error for invalid notifier type."""
        with pytest.raises(ValueError, match="Unknown notifier type"):
            NotifierFactory.create({"type": "pager"})


class TestNextFireTime:
    def test_later_today(self):
        assert next_fire_time(18, 0, datetime(2024, 5, 10, 9, 30)) == datetime(2024, 5, 10, 18, 0)

    def test_already_passed(self):
        assert next_fire_time(8, 0, datetime(2024, 5, 10, 9, 30)) == datetime(2024, 5, 11, 8, 0)

    def test_exactly_now_rolls_over(self):
        assert next_fire_time(9, 30, datetime(2024, 5, 10, 9, 30)) == datetime(2024, 5, 11, 9, 30)


class TestNotificationScheduler:
    """Test event-loop notification scheduling."""

    @pytest.mark.asyncio
    async def test_schedule_once_delivers(self):
        notifier = RecordingNotifier()
        scheduler = NotificationScheduler([notifier])

        scheduler.schedule_once("n1", "Rate alert", "1 USD = 90.00 JPY", delay=0.01)
        assert scheduler.pending_ids() == ["n1"]

        await scheduler.drain(poll_interval=0.01)

        assert [n.body for n in notifier.sent] == ["1 USD = 90.00 JPY"]
        assert notifier.sent[0].recurring is False
        assert scheduler.pending_ids() == []

    @pytest.mark.asyncio
    async def test_cancel_once(self):
        notifier = RecordingNotifier()
        scheduler = NotificationScheduler([notifier])

        scheduler.schedule_once("n1", "Rate alert", "body", delay=0.01)
        assert scheduler.cancel("n1") is True
        assert scheduler.cancel("n1") is False

        await asyncio.sleep(0.05)
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_same_id_replaces(self):
        notifier = RecordingNotifier()
        scheduler = NotificationScheduler([notifier])

        scheduler.schedule_once("n1", "Rate alert", "old", delay=0.01)
        scheduler.schedule_once("n1", "Rate alert", "new", delay=0.01)
        await scheduler.drain(poll_interval=0.01)

        assert [n.body for n in notifier.sent] == ["new"]

    @pytest.mark.asyncio
    async def test_recurring_fires_and_rearms(self):
        notifier = RecordingNotifier()
        # 50ms before 09:00 on every call, so each arm waits 50ms
        scheduler = NotificationScheduler(
            [notifier], clock=lambda: datetime(2024, 5, 10, 8, 59, 59, 950000)
        )

        scheduler.schedule_recurring("daily", "Daily rate", "1 USD = 155.70 JPY", 9, 0)
        assert scheduler.next_fire_at("daily") == datetime(2024, 5, 10, 9, 0)

        await asyncio.sleep(0.2)

        assert notifier.sent
        assert all(n.recurring for n in notifier.sent)
        assert scheduler.pending_ids() == ["daily"]

        assert scheduler.cancel("daily") is True
        assert scheduler.pending_ids() == []
        assert scheduler.next_fire_at("daily") is None
        await scheduler.drain(poll_interval=0.01)

    @pytest.mark.asyncio
    async def test_drain_ignores_recurring(self):
        scheduler = NotificationScheduler([RecordingNotifier()])
        scheduler.schedule_recurring("daily", "Daily rate", "body", 8, 0)

        await asyncio.wait_for(scheduler.drain(poll_interval=0.01), timeout=1)

        scheduler.close()
        assert scheduler.pending_ids() == []

    @pytest.mark.asyncio
    async def test_deliver_isolates_channel_failures(self, threshold_notification):
        good = RecordingNotifier()
        scheduler = NotificationScheduler([RecordingNotifier(fail=True), good])

        results = await scheduler.deliver(threshold_notification)

        assert [r.success for r in results] == [False, True]
        assert results[0].error == "channel down"
        assert good.sent == [threshold_notification]
