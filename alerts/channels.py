"""Alert notification channels: protocol, HTTP base and chat webhooks."""
import logging
from typing import Protocol, runtime_checkable

from alerts.errors import ChannelDeliveryError
from models.enums import Transition
from utils.formatters import (
    FOOTER_TEXT, COLOR_RESOLVED, alert_title, resolved_title, iso_utc,
    severity_color, severity_color_int, slack_color, username_or_default,
)
from utils.http_client import HTTPClient, APIError, DEFAULT_TIMEOUT
from utils.retry import RetryPolicy

logger = logging.getLogger("poolwatch.alerts.channels")

# Fixed policy for built-in channels: 3 attempts, 2s then 4s between them
BUILTIN_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=2.0, multiplier=2.0, max_delay=60.0)


@runtime_checkable
class AlertChannel(Protocol):
    name: str
    retry_policy: RetryPolicy

    def is_enabled(self) -> bool: ...

    def send(self, alert, transition) -> None: ...


def _sev(alert):
    return alert.severity.value if hasattr(alert.severity, "value") else str(alert.severity)


class HTTPChannel:
    """Base for channels that deliver a JSON document over HTTP."""

    name = "http"
    retry_policy = BUILTIN_RETRY_POLICY

    def __init__(self, config=None, client=None, timeout=DEFAULT_TIMEOUT):
        self.config = config or {}
        self.timeout = timeout
        self.client = client or HTTPClient(timeout=timeout)

    def is_enabled(self):
        return bool(self.config.get("enabled")) and bool(self.url)

    @property
    def url(self):
        return self.config.get("webhook_url", "")

    def _post(self, url, payload, method="POST", headers=None):
        try:
            self.client.send_json(url, payload, method=method, headers=headers, timeout=self.timeout)
        except APIError as e:
            raise ChannelDeliveryError(
                f"{self.name}: {e}", channel=self.name,
                status_code=e.status_code, retryable=e.retryable,
            ) from e

    def send(self, alert, transition):
        transition = Transition(transition)
        if transition == Transition.RESOLVE:
            payload = self.build_resolved(alert)
        else:
            payload = self.build_fired(alert, reminder=transition == Transition.RENOTIFY)
        self._post(self.url, payload)

    def build_fired(self, alert, reminder=False):
        raise NotImplementedError

    def build_resolved(self, alert):
        raise NotImplementedError


class SlackChannel(HTTPChannel):
    """Slack incoming webhook with a colored attachment."""

    name = "slack"

    def _message(self, icon, attachment):
        msg = {
            "username": username_or_default(self.config.get("username")),
            "icon_emoji": icon,
            "attachments": [attachment],
        }
        if self.config.get("channel"):
            msg["channel"] = self.config["channel"]
        return msg

    def build_fired(self, alert, reminder=False):
        return self._message(":warning:", {
            "color": slack_color(alert.severity),
            "title": alert_title(alert, reminder),
            "text": alert.message,
            "fields": [
                {"title": "Target", "value": alert.target_name, "short": True},
                {"title": "Instance", "value": alert.instance_name, "short": True},
                {"title": "Severity", "value": _sev(alert), "short": True},
                {"title": "Status", "value": "Fired", "short": True},
            ],
            "footer": FOOTER_TEXT,
            "ts": int(alert.fired_at.timestamp()),
        })

    def build_resolved(self, alert):
        resolved_at = alert.resolved_at or alert.fired_at
        return self._message(":white_check_mark:", {
            "color": "good",
            "title": resolved_title(alert),
            "text": alert.message,
            "fields": [
                {"title": "Target", "value": alert.target_name, "short": True},
                {"title": "Instance", "value": alert.instance_name, "short": True},
                {"title": "Status", "value": "Resolved", "short": True},
            ],
            "footer": FOOTER_TEXT,
            "ts": int(resolved_at.timestamp()),
        })


class MattermostChannel(SlackChannel):
    """Mattermost incoming webhook; Slack-compatible format with hex colors."""

    name = "mattermost"

    def build_fired(self, alert, reminder=False):
        msg = super().build_fired(alert, reminder)
        msg["attachments"][0]["color"] = severity_color(alert.severity)
        msg["attachments"][0].pop("ts", None)
        return msg

    def build_resolved(self, alert):
        msg = super().build_resolved(alert)
        msg["attachments"][0]["color"] = COLOR_RESOLVED
        msg["attachments"][0].pop("ts", None)
        return msg


class DiscordChannel(HTTPChannel):
    """Discord webhook with an embed."""

    name = "discord"

    def build_fired(self, alert, reminder=False):
        return {
            "username": username_or_default(None),
            "embeds": [{
                "title": alert_title(alert, reminder),
                "description": alert.message,
                "color": severity_color_int(alert.severity),
                "fields": [
                    {"name": "Target", "value": alert.target_name, "inline": True},
                    {"name": "Instance", "value": alert.instance_name, "inline": True},
                    {"name": "Severity", "value": _sev(alert), "inline": True},
                    {"name": "Status", "value": "Fired", "inline": True},
                ],
                "footer": {"text": FOOTER_TEXT},
                "timestamp": iso_utc(alert.fired_at),
            }],
        }

    def build_resolved(self, alert):
        return {
            "username": username_or_default(None),
            "embeds": [{
                "title": resolved_title(alert),
                "description": alert.message,
                "color": int(COLOR_RESOLVED.lstrip("#"), 16),
                "fields": [
                    {"name": "Target", "value": alert.target_name, "inline": True},
                    {"name": "Instance", "value": alert.instance_name, "inline": True},
                    {"name": "Status", "value": "Resolved", "inline": True},
                ],
                "footer": {"text": FOOTER_TEXT},
                "timestamp": iso_utc(alert.resolved_at or alert.fired_at),
            }],
        }
