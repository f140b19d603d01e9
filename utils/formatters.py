"""Formatting utilities for alert messages and CLI display."""
from datetime import datetime, timezone

from models.enums import Severity

EMOJI_CRITICAL = "\U0001f6a8"
EMOJI_WARNING = "⚠️"
EMOJI_INFO = "ℹ️"
EMOJI_RESOLVED = "✅"

COLOR_CRITICAL = "#E74C3C"
COLOR_WARNING = "#F39C12"
COLOR_INFO = "#3498DB"
COLOR_RESOLVED = "#2ECC71"

DEFAULT_USERNAME = "poolwatch"
FOOTER_TEXT = "poolwatch alert"


def _sev(severity):
    return severity.value if hasattr(severity, "value") else str(severity).lower()


def severity_emoji(severity):
    return {
        Severity.CRITICAL.value: EMOJI_CRITICAL,
        Severity.WARNING.value: EMOJI_WARNING,
    }.get(_sev(severity), EMOJI_INFO)


def severity_color(severity):
    """Hex color string (Slack-compatible attachments)."""
    return {
        Severity.CRITICAL.value: COLOR_CRITICAL,
        Severity.WARNING.value: COLOR_WARNING,
    }.get(_sev(severity), COLOR_INFO)


def severity_color_int(severity):
    """Integer color for Discord embeds."""
    return int(severity_color(severity).lstrip("#"), 16)


def slack_color(severity):
    """Slack named colors where available."""
    return {
        Severity.CRITICAL.value: "danger",
        Severity.WARNING.value: "warning",
    }.get(_sev(severity), COLOR_INFO)


def alert_title(alert, reminder=False):
    title = f"{severity_emoji(alert.severity)} Alert: {alert.rule_name}"
    return f"{title} (reminder)" if reminder else title


def resolved_title(alert):
    return f"{EMOJI_RESOLVED} Resolved: {alert.rule_name}"


def username_or_default(username):
    return username or DEFAULT_USERNAME


def format_number(value):
    """Render integral values without decimals, others with up to 2."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return str(value)
        if value.is_integer():
            return str(int(value))
        return f"{value:.2f}".rstrip("0").rstrip(".")
    return str(value)


def iso_utc(ts):
    """ISO-8601 UTC with a trailing Z, e.g. 2024-01-01T12:00:00Z."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc).replace(microsecond=0)
    return ts.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_timestamp(ts):
    """Format a datetime to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        return ts
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def time_ago(dt):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    now = datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = int(delta.total_seconds())

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"
