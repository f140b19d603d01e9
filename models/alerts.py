"""Dataclasses for alert rules, alert records and maintenance windows."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from models.enums import AlertStatus, Severity

# Weekday numbering follows 0=Sunday .. 6=Saturday
_DAY_NAMES = {
    "sun": 0, "sunday": 0,
    "mon": 1, "monday": 1,
    "tue": 2, "tuesday": 2,
    "wed": 3, "wednesday": 3,
    "thu": 4, "thursday": 4,
    "fri": 5, "friday": 5,
    "sat": 6, "saturday": 6,
}


def _utcnow():
    return datetime.now(timezone.utc)


class AlertKey(NamedTuple):
    target_name: str
    instance_name: str
    rule_name: str

    def __str__(self):
        return f"{self.target_name}/{self.instance_name}/{self.rule_name}"


@dataclass
class AlertRule:
    id: Optional[int] = None
    name: str = ""
    condition: str = ""
    severity: str = Severity.WARNING.value
    message: str = ""
    enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Alert:
    id: Optional[int] = None
    target_name: str = ""
    instance_name: str = ""
    rule_name: str = ""
    severity: str = Severity.WARNING.value
    message: str = ""
    status: str = AlertStatus.FIRED.value
    fired_at: datetime = field(default_factory=_utcnow)
    resolved_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None
    channels: set = field(default_factory=set)

    @property
    def key(self):
        return AlertKey(self.target_name, self.instance_name, self.rule_name)

    @property
    def is_fired(self):
        return self.status == AlertStatus.FIRED.value

    def channels_str(self):
        return ",".join(sorted(self.channels))

    def to_dict(self):
        return {
            "id": self.id,
            "target_name": self.target_name,
            "instance_name": self.instance_name,
            "rule_name": self.rule_name,
            "severity": self.severity,
            "message": self.message,
            "status": self.status,
            "fired_at": self.fired_at.isoformat() if self.fired_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "notified_at": self.notified_at.isoformat() if self.notified_at else None,
            "channels": sorted(self.channels),
        }


@dataclass
class AlertStats:
    total_alerts: int = 0
    active_alerts: int = 0
    resolved_alerts: int = 0
    by_severity: dict = field(default_factory=dict)
    by_target: dict = field(default_factory=dict)
    by_rule: dict = field(default_factory=dict)


def parse_days_of_week(raw):
    """Parse "1,2,3" or "mon,tue" into a set of weekday numbers (0=Sunday)."""
    days = set()
    if not raw:
        return days
    if isinstance(raw, str):
        raw = raw.split(",")
    for part in raw:
        token = str(part).strip().lower()
        if not token:
            continue
        if token.isdigit():
            num = int(token)
            if 0 <= num <= 6:
                days.add(num)
                continue
        elif token in _DAY_NAMES:
            days.add(_DAY_NAMES[token])
            continue
        raise ValueError(f"invalid day of week: {part!r}")
    return days


def _align(at, ref):
    """Express `at` in the same timezone convention as `ref`."""
    if ref.tzinfo is not None and at.tzinfo is not None:
        return at.astimezone(ref.tzinfo)
    if ref.tzinfo is None and at.tzinfo is not None:
        return at.astimezone().replace(tzinfo=None)
    if ref.tzinfo is not None and at.tzinfo is None:
        return at.replace(tzinfo=ref.tzinfo)
    return at


@dataclass
class MaintenanceWindow:
    id: Optional[int] = None
    name: str = ""
    description: str = ""
    target_name: str = ""  # empty = all targets
    start_time: datetime = field(default_factory=_utcnow)
    end_time: datetime = field(default_factory=_utcnow)
    recurring: bool = False
    days_of_week: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def matches_target(self, target_name):
        return not self.target_name or self.target_name == target_name

    def is_active(self, at=None):
        """Whether the window covers `at`.

        One-time windows cover [start_time, end_time). Recurring windows only
        look at the weekday and the hour:minute of start/end.
        """
        at = at or _utcnow()
        if not self.recurring:
            at = _align(at, self.start_time)
            return self.start_time <= at < _align(self.end_time, self.start_time)

        at = _align(at, self.start_time)
        days = parse_days_of_week(self.days_of_week)
        # isoweekday: Monday=1 .. Sunday=7
        if days and at.isoweekday() % 7 not in days:
            return False

        now_minutes = at.hour * 60 + at.minute
        start_minutes = self.start_time.hour * 60 + self.start_time.minute
        end_minutes = self.end_time.hour * 60 + self.end_time.minute
        if start_minutes <= end_minutes:
            return start_minutes <= now_minutes <= end_minutes
        # Spans midnight
        return now_minutes >= start_minutes or now_minutes <= end_minutes
