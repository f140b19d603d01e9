"""Generic HTTP webhook and operator-defined plugin channels."""
import logging
from datetime import datetime, timezone

from __version__ import __version__
from alerts.channels import HTTPChannel
from alerts.errors import ChannelDeliveryError
from config import parse_duration
from models.enums import Transition
from utils.formatters import iso_utc
from utils.http_client import DEFAULT_TIMEOUT
from utils.retry import RetryPolicy

logger = logging.getLogger("poolwatch.alerts.webhook")

PLUGIN_PAYLOAD_VERSION = "1.0"
DEFAULT_PLUGIN_RETRY_DELAY = 1.0


def alert_data(alert):
    """Alert section shared by webhook and plugin payloads."""
    return {
        "id": alert.id or 0,
        "target_name": alert.target_name,
        "instance_name": alert.instance_name,
        "rule_name": alert.rule_name,
        "severity": alert.severity.value if hasattr(alert.severity, "value") else alert.severity,
        "message": alert.message,
        "status": alert.status.value if hasattr(alert.status, "value") else alert.status,
        "fired_at": iso_utc(alert.fired_at),
        "resolved_at": iso_utc(alert.resolved_at),
    }


class WebhookChannel(HTTPChannel):
    """POSTs (or the configured method) a JSON document describing the alert."""

    name = "webhook"

    @property
    def url(self):
        return self.config.get("url", "")

    def build_payload(self, alert, transition, now=None):
        resolved = Transition(transition) == Transition.RESOLVE
        return {
            "event": "alert_resolved" if resolved else "alert_fired",
            "alert": alert_data(alert),
            "timestamp": iso_utc(now or datetime.now(timezone.utc)),
            "poolwatch_version": __version__,
        }

    def send(self, alert, transition):
        payload = self.build_payload(alert, transition)
        self._post(
            self.url, payload,
            method=self.config.get("method") or "POST",
            headers=self.config.get("headers") or {},
        )


class PluginChannel(HTTPChannel):
    """Operator-defined HTTP endpoint with its own timeout and retry policy."""

    def __init__(self, config=None, client=None):
        config = config or {}
        timeout = parse_duration(config.get("timeout"), DEFAULT_TIMEOUT)
        super().__init__(config, client=client, timeout=timeout)
        self.plugin_name = config.get("name", "")
        self.name = f"plugin:{self.plugin_name}"
        self.retry_policy = RetryPolicy(
            max_attempts=max(1, int(config.get("retry_count") or 1)),
            base_delay=parse_duration(config.get("retry_delay"), DEFAULT_PLUGIN_RETRY_DELAY),
            multiplier=2.0,
            max_delay=60.0,
        )

    @property
    def url(self):
        return self.config.get("url", "")

    def is_enabled(self):
        # Plugins are on unless explicitly disabled
        return bool(self.config.get("enabled", True)) and bool(self.url)

    def build_payload(self, alert, transition, now=None):
        resolved = Transition(transition) == Transition.RESOLVE
        return {
            "event": "alert.resolved" if resolved else "alert.fired",
            "alert": alert_data(alert),
            "metadata": {
                "timestamp": iso_utc(now or datetime.now(timezone.utc)),
                "plugin_name": self.plugin_name,
                "version": PLUGIN_PAYLOAD_VERSION,
            },
        }

    def send(self, alert, transition):
        headers = {"X-Poolwatch-Plugin": self.plugin_name}
        headers.update(self.config.get("headers") or {})
        try:
            self._post(
                self.url, self.build_payload(alert, transition),
                method=self.config.get("method") or "POST",
                headers=headers,
            )
        except ChannelDeliveryError as e:
            # Plugins retry on any failure, as configured by the operator
            e.retryable = True
            raise
