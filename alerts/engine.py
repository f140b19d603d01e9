"""Alert evaluation engine: ties rules, suppression, lifecycle and dispatch together."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait as wait_futures
from datetime import timezone

from alerts.conditions import compute_fields, validate_condition
from alerts.dispatcher import NotificationDispatcher
from alerts.errors import EvaluationError, PersistenceError, store_call
from alerts.lifecycle import AlertLifecycleTracker, utcnow
from alerts.maintenance import MaintenanceFilter
from alerts.registry import ChannelRegistry
from alerts.rules_manager import RulesManager
from config import get_cooldown, get_sample_max_age
from models.alerts import AlertKey
from models.enums import PoolStatus

logger = logging.getLogger("poolwatch.alerts.engine")


class AlertEngine:
    """Rule coordinator.

    ``check(sample)`` is the push path used by collectors; ``sweep()`` is the
    timer path that re-evaluates the latest stored sample of every target.
    Both take one snapshot of the rule set, the channel registry and the
    maintenance windows per pass.
    """

    def __init__(self, store, config, rules_manager=None, registry=None, dispatcher=None,
                 clock=None, async_dispatch=True, delivery_workers=4):
        alerting = (config or {}).get("alerting") or {}
        self.store = store
        self.clock = clock or utcnow
        self.enabled = bool(alerting.get("enabled", True))
        self.sample_max_age = get_sample_max_age(alerting)

        self.rules_manager = rules_manager or RulesManager(store, alerting.get("rules"))
        self.registry = registry if registry is not None else ChannelRegistry.from_config(alerting)
        self.dispatcher = dispatcher or NotificationDispatcher(self.registry)
        self.dispatcher.set_registry(self.registry)
        self.tracker = AlertLifecycleTracker(store, cooldown=get_cooldown(alerting), clock=self.clock)
        self.maintenance = MaintenanceFilter(store)

        self.async_dispatch = async_dispatch
        self._delivery = None
        if async_dispatch:
            self._delivery = ThreadPoolExecutor(max_workers=delivery_workers,
                                                thread_name_prefix="poolwatch-delivery")
        self._pending = set()
        self._pending_lock = threading.Lock()
        # Guards the (rule set, registry) pair against a half-applied config reload
        self._config_lock = threading.RLock()

        self.rules_manager.reload()

    # --- evaluation ---

    def _snapshot(self):
        """(rule set, registry, windows) for one pass. Raises PersistenceError."""
        windows = self.maintenance.load_windows()
        with self._config_lock:
            return self.rules_manager.current(), self.registry, windows

    def _evaluate_sample(self, sample, ruleset, registry, windows, now):
        if sample.status != PoolStatus.HEALTHY.value:
            logger.debug(f"Skipping {sample.target_name}/{sample.instance_name}: status {sample.status}")
            return []
        fields = compute_fields(sample)
        suppressed = self.maintenance.is_suppressed(sample.target_name, now, windows)
        events = []
        for compiled in ruleset:
            key = AlertKey(sample.target_name, sample.instance_name, compiled.name)
            try:
                triggered = compiled.condition.evaluate(fields)
            except EvaluationError as e:
                logger.error(f"Rule '{compiled.name}' failed to evaluate for {key}: {e}")
                continue

            try:
                event = self.tracker.evaluate(key, compiled.rule, triggered, suppressed, fields, now)
            except PersistenceError as e:
                logger.error(f"Skipping evaluation of {key}: {e}")
                continue

            if event is not None:
                self._deliver(event, registry)
                events.append(event)
        return events

    def check(self, sample, now=None):
        """Evaluate every enabled rule against a freshly collected sample."""
        if not self.enabled:
            return []
        now = now or self.clock()
        try:
            ruleset, registry, windows = self._snapshot()
        except PersistenceError as e:
            logger.error(f"Cannot read maintenance windows, skipping check of "
                         f"{sample.target_name}/{sample.instance_name}: {e}")
            return []
        return self._evaluate_sample(sample, ruleset, registry, windows, now)

    def _is_stale(self, sample, now):
        ts = sample.timestamp
        if ts is None:
            return True
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return (now - ts).total_seconds() > self.sample_max_age

    def sweep(self, now=None):
        """Re-evaluate the latest stored sample of every target/instance."""
        if not self.enabled:
            return []
        now = now or self.clock()
        try:
            samples = store_call(self.store, "get_latest_metrics_all") or []
            ruleset, registry, windows = self._snapshot()
        except PersistenceError as e:
            logger.error(f"Alert sweep skipped: {e}")
            return []

        events = []
        for sample in samples:
            if self._is_stale(sample, now):
                logger.debug(f"Skipping stale sample for {sample.target_name}/{sample.instance_name}")
                continue
            events.extend(self._evaluate_sample(sample, ruleset, registry, windows, now))
        logger.debug(f"Sweep evaluated {len(samples)} samples, {len(events)} transitions")
        return events

    # --- delivery ---

    def _dispatch_and_record(self, event, registry):
        result = self.dispatcher.dispatch(event, registry.enabled())
        self.tracker.record_delivery(event, result)
        if registry.enabled() and not result.any_success:
            logger.error(f"No channel accepted {event.transition.value} for {event.key}")
        return result

    def _deliver(self, event, registry):
        if not registry.enabled():
            return
        if not self.async_dispatch:
            self._dispatch_and_record(event, registry)
            return
        future = self._delivery.submit(self._dispatch_and_record, event, registry)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._on_delivery_done)

    def _on_delivery_done(self, future):
        with self._pending_lock:
            self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Delivery task failed: {exc}")

    def flush(self, timeout=None):
        """Wait for queued deliveries. Returns True when none are left pending."""
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    # --- management surface ---

    def reload_rules(self):
        return self.rules_manager.reload()

    def validate_condition(self, text):
        return validate_condition(text)

    def update_config(self, config):
        """Swap in channels, cooldown and config rules from a reloaded config.

        Rules and channels are published together: a concurrent pass sees
        either the old pair or the new one.
        """
        alerting = (config or {}).get("alerting") or {}
        registry = ChannelRegistry.from_config(alerting)
        with self._config_lock:
            self.rules_manager.set_config_rules(alerting.get("rules"))
            self.registry = registry
            self.dispatcher.set_registry(registry)
            self.tracker.set_cooldown(get_cooldown(alerting))
            self.sample_max_age = get_sample_max_age(alerting)
            self.enabled = bool(alerting.get("enabled", True))
        logger.info("Alerting configuration reloaded")

    def resolve_alert(self, alert_id):
        """Manually resolve an open alert and notify channels."""
        event = self.tracker.resolve_alert(alert_id)
        if event is not None:
            self._deliver(event, self.registry)
        return event

    def send_test_alert(self, severity=None, channels=None, message=None):
        return self.dispatcher.send_test(severity=severity or "warning", message=message,
                                         channels=channels)

    def enabled_channels(self):
        return self.registry.names()

    def stats(self):
        return store_call(self.store, "get_alert_stats")

    def shutdown(self, wait=True):
        if self._delivery is not None:
            self._delivery.shutdown(wait=wait)
        self.dispatcher.shutdown(wait=wait)
        logger.info("Alert engine stopped")
