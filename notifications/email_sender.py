"""
SMTP email transport for poolwatch alerts.

Handles:
  - SMTP connection with optional STARTTLS
  - MIME multipart construction (plaintext + HTML alternative)
  - Recipient validation

Credentials come from the alerting.channels.email config section; the
POOLWATCH_SMTP_USER / POOLWATCH_SMTP_PASS environment overrides are applied
when the config is loaded.
"""
import re
import ssl
import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

logger = logging.getLogger("poolwatch.notifications.email_sender")

SMTP_TIMEOUT = 30
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_address(address: str) -> bool:
    return bool(address) and bool(_EMAIL_RE.match(address.strip()))


def parse_recipients(value) -> list:
    """Accepts a list or a comma-separated string; drops invalid addresses."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    recipients = []
    for addr in value:
        addr = str(addr).strip()
        if not addr:
            continue
        if is_valid_address(addr):
            recipients.append(addr)
        else:
            logger.warning(f"Ignoring invalid email recipient '{addr}'")
    return recipients


class EmailSender:
    """
    SMTP email sender.

    Raises smtplib.SMTPException / OSError on failure; callers decide
    whether a failure is worth retrying.
    """

    def __init__(self, config: dict):
        config = config or {}
        self.smtp_host = config.get("smtp_host", "")
        self.smtp_port = int(config.get("smtp_port") or 587)
        self.use_tls = config.get("use_tls", True)
        self.username = config.get("username", "")
        self.password = config.get("password", "")
        self.from_address = config.get("from", "") or self.username
        self.from_name = config.get("from_name", "poolwatch")
        self.recipients = parse_recipients(config.get("to"))

    def is_configured(self) -> bool:
        """Host and at least one valid recipient are required."""
        return bool(self.smtp_host) and bool(self.recipients)

    def build_message(self, subject: str, text: str, html: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = ", ".join(self.recipients)
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send(self, msg: MIMEMultipart):
        """Send a constructed MIME message via SMTP."""
        context = ssl.create_default_context()
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=SMTP_TIMEOUT) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls(context=context)
                server.ehlo()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg, from_addr=self.from_address, to_addrs=self.recipients)
        logger.info(f"Email sent to {', '.join(self.recipients)}: {msg['Subject']}")

