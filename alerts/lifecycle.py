"""Alert lifecycle: fired / resolved state per (target, instance, rule)."""
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from alerts.errors import PersistenceError, store_call
from alerts.templates import default_message, render_message
from models.alerts import Alert, AlertKey
from models.enums import AlertStatus, Transition
from utils.keyed_lock import KeyedLock

logger = logging.getLogger("poolwatch.alerts.lifecycle")

DEFAULT_COOLDOWN = 300.0


def utcnow():
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TransitionEvent:
    transition: Transition
    alert: Alert
    fields: dict = field(default_factory=dict)
    at: datetime = field(default_factory=utcnow)

    @property
    def key(self):
        return self.alert.key


class AlertLifecycleTracker:
    """Owns every status change of Alert records.

    Each key moves Inactive -> Fired -> Inactive. All work on a key happens
    under that key's lock, so the timer sweep and the per-sample check can
    race without creating duplicate alerts. The store's open alert is the
    source of truth for whether a key is Fired.
    """

    def __init__(self, store, cooldown=DEFAULT_COOLDOWN, clock=utcnow):
        self.store = store
        self.cooldown = cooldown
        self.clock = clock
        self._locks = KeyedLock()
        # key -> time of the last notification slot handed out
        self._last_notified = {}

    def set_cooldown(self, seconds):
        self.cooldown = seconds

    def evaluate(self, key, rule, triggered, suppressed=False, fields=None, now=None):
        """Apply one evaluation result. Returns a TransitionEvent or None.

        Raises PersistenceError when the open alert cannot be read.
        """
        key = AlertKey(*key)
        now = now or self.clock()
        fields = fields or {}
        with self._locks.hold(key):
            existing = store_call(self.store, "get_active_alert_by_key", *key)

            if existing is None:
                if triggered and not suppressed:
                    return self._fire(key, rule, fields, now)
                return None

            if not triggered:
                return self._resolve(existing, now, fields)
            if suppressed:
                return None
            return self._maybe_renotify(existing, now, fields)

    def resolve_key(self, key, now=None):
        """Resolve the open alert for `key`, if any. Idempotent."""
        key = AlertKey(*key)
        now = now or self.clock()
        with self._locks.hold(key):
            existing = store_call(self.store, "get_active_alert_by_key", *key)
            if existing is None:
                return None
            return self._resolve(existing, now)

    def resolve_alert(self, alert_id, now=None):
        """Manual resolution by id. Unknown or already resolved ids are a no-op."""
        now = now or self.clock()
        alert = store_call(self.store, "get_alert", alert_id)
        if alert is None or not alert.is_fired:
            return None
        with self._locks.hold(alert.key):
            # Re-read under the lock; a sweep may have resolved it meanwhile
            alert = store_call(self.store, "get_alert", alert_id)
            if alert is None or not alert.is_fired:
                return None
            logger.info(f"Manually resolving alert {alert_id} ({alert.key})")
            return self._resolve(alert, now)

    def record_delivery(self, event, result, now=None):
        """Persist which channels received `event`. Never touches status."""
        alert_id = event.alert.id
        if alert_id is None:
            return
        now = now or self.clock()
        with self._locks.hold(event.key):
            try:
                current = store_call(self.store, "get_alert", alert_id)
                if current is None:
                    return
                if result.succeeded:
                    current.channels |= set(result.succeeded)
                    current.notified_at = now
                store_call(self.store, "update_alert", current)
            except PersistenceError as e:
                logger.warning(f"Failed to record delivery for alert {alert_id}: {e}")

    # --- transitions ---

    def _fire(self, key, rule, fields, now):
        message = render_message(
            rule.message, fields, default=default_message(rule.name, rule.condition)
        )
        alert = Alert(
            target_name=key.target_name,
            instance_name=key.instance_name,
            rule_name=key.rule_name,
            severity=rule.severity,
            message=message,
            status=AlertStatus.FIRED.value,
            fired_at=now,
        )
        try:
            store_call(self.store, "save_alert", alert)
        except PersistenceError as e:
            logger.error(f"FAILED TO PERSIST new alert {key}, will retry next check: {e}")
            return None

        self._last_notified[key] = now
        logger.info(f"Fired alert {key}: {message}")
        return TransitionEvent(Transition.FIRE, copy.deepcopy(alert), dict(fields), now)

    def _maybe_renotify(self, alert, now, fields):
        key = alert.key
        last = alert.notified_at or alert.fired_at
        reserved = self._last_notified.get(key)
        if reserved is not None and (last is None or reserved > last):
            last = reserved
        if last is not None and (now - last).total_seconds() < self.cooldown:
            return None

        self._last_notified[key] = now
        event_alert = copy.deepcopy(alert)
        event_alert.notified_at = now
        logger.info(f"Re-notifying open alert {key} (id={alert.id})")
        return TransitionEvent(Transition.RENOTIFY, event_alert, dict(fields), now)

    def _resolve(self, alert, now, fields=None):
        alert.status = AlertStatus.RESOLVED.value
        alert.resolved_at = now
        try:
            store_call(self.store, "update_alert", alert)
        except PersistenceError as e:
            logger.error(f"FAILED TO PERSIST resolution of alert {alert.id} ({alert.key}): {e}")
            return None

        self._last_notified.pop(alert.key, None)
        logger.info(f"Resolved alert {alert.key} (id={alert.id})")
        return TransitionEvent(Transition.RESOLVE, copy.deepcopy(alert), dict(fields or {}), now)
