"""Notion channel: records each alert as a page in a Notion database."""
import re
import logging

from alerts.channels import HTTPChannel
from models.enums import Severity, Transition
from utils.formatters import EMOJI_RESOLVED, iso_utc, severity_emoji

logger = logging.getLogger("poolwatch.alerts.notion")

NOTION_PAGES_URL = "https://api.notion.com/v1/pages"
NOTION_VERSION = "2022-06-28"
NOTION_TIMEOUT = 15

_DB_ID = re.compile(r"^[a-fA-F0-9]{32}$")
_DB_UUID = re.compile(r"^[a-fA-F0-9]{8}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{4}-[a-fA-F0-9]{12}$")


def is_valid_database_id(db_id):
    return bool(_DB_ID.match(db_id) or _DB_UUID.match(db_id))


def _text(content):
    return [{"type": "text", "text": {"content": content or ""}}]


class NotionChannel(HTTPChannel):
    name = "notion"

    def __init__(self, config=None, client=None):
        super().__init__(config, client=client, timeout=NOTION_TIMEOUT)
        db_id = self.config.get("database_id", "")
        if db_id and not is_valid_database_id(db_id):
            logger.warning(f"Notion database ID '{db_id}' may have an invalid format")

    @property
    def url(self):
        return NOTION_PAGES_URL

    def is_enabled(self):
        return (bool(self.config.get("enabled"))
                and bool(self.config.get("token"))
                and bool(self.config.get("database_id")))

    def build_page(self, alert, resolved):
        severity = alert.severity.value if hasattr(alert.severity, "value") else str(alert.severity)
        if resolved:
            emoji = EMOJI_RESOLVED
            status = "Resolved"
            title = f"[RESOLVED] {alert.rule_name} - {alert.target_name}"
        else:
            emoji = severity_emoji(severity or Severity.INFO.value)
            status = "Fired"
            title = f"[{severity}] {alert.rule_name} - {alert.target_name}"

        properties = {
            "Name": {"title": _text(title)},
            "Message": {"rich_text": _text(alert.message)},
            "Target": {"rich_text": _text(alert.target_name)},
            "Instance": {"rich_text": _text(alert.instance_name)},
            "Severity": {"select": {"name": severity}},
            "Status": {"select": {"name": status}},
            "Rule": {"rich_text": _text(alert.rule_name)},
            "Fired At": {"date": {"start": iso_utc(alert.fired_at)}},
        }
        if resolved and alert.resolved_at:
            properties["Resolved At"] = {"date": {"start": iso_utc(alert.resolved_at)}}

        return {
            "parent": {"database_id": self.config.get("database_id", "")},
            "icon": {"type": "emoji", "emoji": emoji},
            "properties": properties,
        }

    def send(self, alert, transition):
        page = self.build_page(alert, Transition(transition) == Transition.RESOLVE)
        headers = {
            "Authorization": f"Bearer {self.config.get('token', '')}",
            "Notion-Version": NOTION_VERSION,
        }
        self._post(self.url, page, headers=headers)
