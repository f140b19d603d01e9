"""Tests for notification channel payloads and HTTP error handling."""
import smtplib
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from alerts.channels import DiscordChannel, MattermostChannel, SlackChannel
from alerts.email_channel import EmailChannel
from alerts.errors import ChannelDeliveryError
from alerts.notion_channel import NOTION_VERSION, NotionChannel, is_valid_database_id
from alerts.webhook_channels import PluginChannel, WebhookChannel
from models.alerts import Alert
from models.enums import Transition
from notifications.email_sender import EmailSender, parse_recipients

FIRED_AT = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
RESOLVED_AT = datetime(2024, 1, 1, 12, 5, 0, tzinfo=timezone.utc)


def _alert(**kwargs):
    base = dict(id=7, target_name="orders-db", instance_name="pod-1", rule_name="high_usage",
                severity="critical", message="Pool usage is high: 95%", fired_at=FIRED_AT)
    base.update(kwargs)
    return Alert(**base)


def _resolved():
    return _alert(status="resolved", resolved_at=RESOLVED_AT)


def _response(status=200, text="ok"):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    return resp


# ── Slack / Mattermost / Discord ────────────────────────

def test_slack_fired_payload():
    ch = SlackChannel({"enabled": True, "webhook_url": "https://hooks.slack.test/x", "channel": "#ops"})
    msg = ch.build_fired(_alert())
    att = msg["attachments"][0]
    assert msg["channel"] == "#ops"
    assert msg["username"] == "poolwatch"
    assert att["color"] == "danger"
    assert att["title"].endswith("Alert: high_usage")
    assert att["ts"] == int(FIRED_AT.timestamp())
    assert {f["title"] for f in att["fields"]} == {"Target", "Instance", "Severity", "Status"}


def test_slack_resolved_payload():
    att = SlackChannel({}).build_resolved(_resolved())["attachments"][0]
    assert att["color"] == "good"
    assert "Resolved: high_usage" in att["title"]


def test_slack_reminder_title():
    att = SlackChannel({}).build_fired(_alert(), reminder=True)["attachments"][0]
    assert "reminder" in att["title"]


def test_mattermost_uses_hex_colors():
    ch = MattermostChannel({"webhook_url": "https://mm.test/hook"})
    att = ch.build_fired(_alert(severity="warning"))["attachments"][0]
    assert att["color"].startswith("#")
    assert "ts" not in att


def test_discord_embed():
    embed = DiscordChannel({}).build_fired(_alert())["embeds"][0]
    assert isinstance(embed["color"], int)
    assert embed["timestamp"] == "2024-01-01T12:00:00Z"


def test_channel_disabled_without_url():
    assert SlackChannel({"enabled": True}).is_enabled() is False
    assert SlackChannel({"enabled": False, "webhook_url": "https://x"}).is_enabled() is False
    assert SlackChannel({"enabled": True, "webhook_url": "https://x"}).is_enabled() is True


# ── HTTP errors ─────────────────────────────────────────

@patch("requests.Session.request")
def test_send_posts_json(mock_request):
    mock_request.return_value = _response(200)
    SlackChannel({"enabled": True, "webhook_url": "https://hooks.slack.test/x"}).send(_alert(), Transition.FIRE)
    args, kwargs = mock_request.call_args
    assert args == ("POST", "https://hooks.slack.test/x")
    assert kwargs["json"]["attachments"][0]["color"] == "danger"


@patch("requests.Session.request")
def test_server_error_is_retryable(mock_request):
    mock_request.return_value = _response(503, "unavailable")
    with pytest.raises(ChannelDeliveryError) as exc:
        DiscordChannel({"webhook_url": "https://discord.test/x"}).send(_alert(), Transition.FIRE)
    assert exc.value.status_code == 503
    assert exc.value.retryable is True


@patch("requests.Session.request")
def test_client_error_not_retryable(mock_request):
    mock_request.return_value = _response(404, "no such hook")
    with pytest.raises(ChannelDeliveryError) as exc:
        WebhookChannel({"url": "https://hook.test/x"}).send(_alert(), Transition.FIRE)
    assert exc.value.retryable is False


@patch("requests.Session.request")
def test_timeout_is_delivery_error(mock_request):
    import requests
    mock_request.side_effect = requests.exceptions.Timeout("read timed out")
    with pytest.raises(ChannelDeliveryError) as exc:
        SlackChannel({"webhook_url": "https://x"}).send(_alert(), Transition.FIRE)
    assert exc.value.retryable is True


# ── Webhook / plugin ────────────────────────────────────

def test_webhook_payload():
    payload = WebhookChannel({"url": "https://x"}).build_payload(_resolved(), Transition.RESOLVE)
    assert payload["event"] == "alert_resolved"
    assert payload["alert"]["resolved_at"] == "2024-01-01T12:05:00Z"
    assert "poolwatch_version" in payload


@patch("requests.Session.request")
def test_webhook_custom_method_and_headers(mock_request):
    mock_request.return_value = _response(200)
    ch = WebhookChannel({"url": "https://x", "method": "put", "headers": {"X-Token": "abc"}})
    ch.send(_alert(), Transition.FIRE)
    args, kwargs = mock_request.call_args
    assert args[0] == "PUT"
    assert kwargs["headers"]["X-Token"] == "abc"


def test_plugin_wire_format():
    ch = PluginChannel({"name": "pager", "url": "https://pager.test/hook"})
    now = datetime(2024, 1, 1, 12, 0, 1, tzinfo=timezone.utc)
    payload = ch.build_payload(_alert(), Transition.FIRE, now=now)
    assert ch.name == "plugin:pager"
    assert payload["event"] == "alert.fired"
    assert payload["alert"] == {
        "id": 7, "target_name": "orders-db", "instance_name": "pod-1", "rule_name": "high_usage",
        "severity": "critical", "message": "Pool usage is high: 95%", "status": "fired",
        "fired_at": "2024-01-01T12:00:00Z", "resolved_at": None,
    }
    assert payload["metadata"] == {"timestamp": "2024-01-01T12:00:01Z", "plugin_name": "pager", "version": "1.0"}


def test_plugin_retry_policy_and_timeout():
    ch = PluginChannel({"name": "p", "url": "https://x", "timeout": "5s", "retry_count": 4, "retry_delay": "500ms"})
    assert ch.timeout == 5.0
    assert ch.retry_policy.max_attempts == 4
    assert ch.retry_policy.base_delay == 0.5
    assert PluginChannel({"name": "p", "url": "https://x", "retry_count": 0}).retry_policy.max_attempts == 1


@patch("requests.Session.request")
def test_plugin_headers(mock_request):
    mock_request.return_value = _response(200)
    PluginChannel({"name": "pager", "url": "https://x", "headers": {"Authorization": "Bearer t"}}).send(
        _alert(), Transition.RESOLVE)
    _, kwargs = mock_request.call_args
    assert kwargs["headers"]["X-Poolwatch-Plugin"] == "pager"
    assert kwargs["headers"]["Authorization"] == "Bearer t"
    assert kwargs["json"]["event"] == "alert.resolved"


@patch("requests.Session.request")
def test_plugin_client_errors_still_retryable(mock_request):
    mock_request.return_value = _response(400, "bad")
    with pytest.raises(ChannelDeliveryError) as exc:
        PluginChannel({"name": "p", "url": "https://x"}).send(_alert(), Transition.FIRE)
    assert exc.value.retryable is True


# ── Notion ──────────────────────────────────────────────

def test_notion_database_id_format():
    assert is_valid_database_id("a" * 32) is True
    assert is_valid_database_id("12345678-1234-1234-1234-1234567890ab") is True
    assert is_valid_database_id("not-an-id") is False


@patch("requests.Session.request")
def test_notion_page(mock_request):
    mock_request.return_value = _response(200)
    ch = NotionChannel({"enabled": True, "token": "secret", "database_id": "a" * 32})
    assert ch.is_enabled()
    ch.send(_resolved(), Transition.RESOLVE)
    args, kwargs = mock_request.call_args
    assert args[1] == "https://api.notion.com/v1/pages"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["headers"]["Notion-Version"] == NOTION_VERSION
    assert kwargs["timeout"] == 15
    props = kwargs["json"]["properties"]
    assert props["Status"]["select"]["name"] == "Resolved"
    assert props["Resolved At"]["date"]["start"] == "2024-01-01T12:05:00Z"


def test_notion_requires_token_and_database():
    assert NotionChannel({"enabled": True, "token": "t"}).is_enabled() is False


# ── Email ───────────────────────────────────────────────

EMAIL_CFG = {
    "enabled": True, "smtp_host": "smtp.test", "smtp_port": 587, "username": "u", "password": "p",
    "from": "poolwatch@test.io", "to": ["ops@test.io", "not-an-address"], "use_tls": True,
}


def test_parse_recipients():
    assert parse_recipients("a@x.io, b@y.io") == ["a@x.io", "b@y.io"]
    assert parse_recipients(["bad", "c@z.io"]) == ["c@z.io"]
    assert parse_recipients(None) == []


def test_email_requires_host_and_recipient():
    assert EmailChannel({"enabled": True, "smtp_host": "smtp.test", "to": []}).is_enabled() is False
    assert EmailChannel({"enabled": True, "to": ["ops@test.io"]}).is_enabled() is False
    assert EmailChannel(EMAIL_CFG).is_enabled() is True


def test_email_subjects():
    ch = EmailChannel(EMAIL_CFG)
    assert ch.subject(_alert(severity="warning"), Transition.FIRE) == "[poolwatch WARNING] high_usage: orders-db"
    assert ch.subject(_resolved(), Transition.RESOLVE) == "[poolwatch RESOLVED] high_usage: orders-db"


@patch("notifications.email_sender.smtplib.SMTP")
def test_email_send(mock_smtp):
    server = mock_smtp.return_value.__enter__.return_value
    EmailChannel(EMAIL_CFG).send(_alert(), Transition.FIRE)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("u", "p")
    msg = server.send_message.call_args[0][0]
    assert msg["To"] == "ops@test.io"
    assert msg.is_multipart()


@patch("notifications.email_sender.smtplib.SMTP")
def test_email_auth_failure_not_retryable(mock_smtp):
    server = mock_smtp.return_value.__enter__.return_value
    server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
    with pytest.raises(ChannelDeliveryError) as exc:
        EmailChannel(EMAIL_CFG).send(_alert(), Transition.FIRE)
    assert exc.value.retryable is False


@patch("notifications.email_sender.smtplib.SMTP")
def test_email_connection_failure_retryable(mock_smtp):
    mock_smtp.side_effect = OSError("connection refused")
    with pytest.raises(ChannelDeliveryError) as exc:
        EmailChannel(EMAIL_CFG).send(_alert(), Transition.FIRE)
    assert exc.value.retryable is True


def test_email_sender_uses_from_or_username():
    assert EmailSender({"username": "me@test.io"}).from_address == "me@test.io"
