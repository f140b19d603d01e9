"""Email channel: HTML + plaintext alert mail over SMTP."""
import html
import smtplib
import logging

from alerts.channels import BUILTIN_RETRY_POLICY
from alerts.errors import ChannelDeliveryError
from models.enums import Transition
from notifications.email_sender import EmailSender
from utils.formatters import COLOR_RESOLVED, format_timestamp, severity_color

logger = logging.getLogger("poolwatch.alerts.email")


def _sev(alert):
    return alert.severity.value if hasattr(alert.severity, "value") else str(alert.severity)


class EmailChannel:
    name = "email"
    retry_policy = BUILTIN_RETRY_POLICY

    def __init__(self, config=None, sender=None):
        self.config = config or {}
        self.sender = sender or EmailSender(self.config)

    def is_enabled(self):
        return bool(self.config.get("enabled")) and self.sender.is_configured()

    def subject(self, alert, transition):
        transition = Transition(transition)
        if transition == Transition.RESOLVE:
            label = "RESOLVED"
        else:
            label = _sev(alert).upper()
        prefix = "Reminder: " if transition == Transition.RENOTIFY else ""
        return f"{prefix}[poolwatch {label}] {alert.rule_name}: {alert.target_name}"

    def plain_body(self, alert, resolved):
        lines = [
            f"Rule: {alert.rule_name}",
            f"Target: {alert.target_name}",
            f"Instance: {alert.instance_name}",
            f"Severity: {_sev(alert)}",
            f"Status: {'Resolved' if resolved else 'Fired'}",
            f"Fired at: {format_timestamp(alert.fired_at)}",
        ]
        if resolved:
            lines.append(f"Resolved at: {format_timestamp(alert.resolved_at)}")
        lines += ["", alert.message or ""]
        return "\n".join(lines)

    def html_body(self, alert, resolved):
        color = COLOR_RESOLVED if resolved else severity_color(alert.severity)
        status = "Resolved" if resolved else "Fired"
        resolved_row = ""
        if resolved:
            resolved_row = (f'<tr><td style="color: #888;">Resolved at</td>'
                            f'<td>{format_timestamp(alert.resolved_at)}</td></tr>')
        return f"""
        <div style="font-family: system-ui, sans-serif; max-width: 560px; margin: 0 auto;
                    padding: 20px; background: #FFFFFF; color: #1E272E; border-radius: 12px;">
            <div style="background: #F0F1F6; padding: 16px; border-radius: 8px;
                        border-left: 4px solid {color};">
                <h3 style="margin-top: 0; color: {color};">
                    {status}: {html.escape(alert.rule_name)}
                </h3>
                <p>{html.escape(alert.message or "")}</p>
                <table style="font-size: 13px;">
                    <tr><td style="color: #888;">Target</td><td>{html.escape(alert.target_name)}</td></tr>
                    <tr><td style="color: #888;">Instance</td><td>{html.escape(alert.instance_name)}</td></tr>
                    <tr><td style="color: #888;">Severity</td><td>{_sev(alert)}</td></tr>
                    <tr><td style="color: #888;">Fired at</td><td>{format_timestamp(alert.fired_at)}</td></tr>
                    {resolved_row}
                </table>
            </div>
            <p style="color: #636E72; font-size: 12px; margin-top: 16px;">poolwatch automated alert</p>
        </div>
        """

    def build_message(self, alert, transition):
        resolved = Transition(transition) == Transition.RESOLVE
        return self.sender.build_message(
            self.subject(alert, transition),
            self.plain_body(alert, resolved),
            self.html_body(alert, resolved),
        )

    def send(self, alert, transition):
        msg = self.build_message(alert, transition)
        try:
            self.sender.send(msg)
        except smtplib.SMTPAuthenticationError as e:
            raise ChannelDeliveryError(
                f"email: SMTP authentication failed: {e}", channel=self.name, retryable=False
            ) from e
        except smtplib.SMTPRecipientsRefused as e:
            raise ChannelDeliveryError(
                f"email: recipients refused: {e}", channel=self.name, retryable=False
            ) from e
        except (smtplib.SMTPException, OSError) as e:
            raise ChannelDeliveryError(f"email: {e}", channel=self.name) from e
