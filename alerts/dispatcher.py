"""Notification dispatch: concurrent fan-out to channels with bounded retries."""
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from alerts.errors import ValidationError
from alerts.lifecycle import TransitionEvent
from models.alerts import Alert
from models.enums import AlertStatus, Severity, Transition
from utils.retry import RetryExhausted, retry_call

logger = logging.getLogger("poolwatch.alerts.dispatcher")

TEST_TARGET = "test-target"
TEST_INSTANCE = "test-instance"
TEST_RULE = "test_alert"
TEST_MESSAGE = "This is a test alert from poolwatch"


@dataclass
class ChannelOutcome:
    channel: str
    success: bool
    attempts: int = 0
    error: Optional[str] = None


@dataclass
class DispatchResult:
    outcomes: List[ChannelOutcome] = field(default_factory=list)

    @property
    def succeeded(self):
        return [o.channel for o in self.outcomes if o.success]

    @property
    def failed(self):
        return [o.channel for o in self.outcomes if not o.success]

    @property
    def any_success(self):
        return any(o.success for o in self.outcomes)


@dataclass
class TestAlertResult:
    __test__ = False

    alert: Alert
    targeted: List[str] = field(default_factory=list)
    unknown: List[str] = field(default_factory=list)
    results: dict = field(default_factory=dict)
    outcomes: List[ChannelOutcome] = field(default_factory=list)

    @property
    def success(self):
        return any(self.results.values())


class NotificationDispatcher:
    """Sends a transition event to every selected channel in parallel.

    Each channel send is retried according to that channel's retry policy;
    the retry sleeps happen in the channel's worker thread only. Failures
    are logged and reported in the DispatchResult, never raised.
    """

    def __init__(self, registry=None, max_workers=8, sleep=time.sleep):
        self.registry = registry
        self.sleep = sleep
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="poolwatch-notify")

    def set_registry(self, registry):
        self.registry = registry

    def _send_one(self, channel, alert, transition):
        label = f"{channel.name} {transition.value} {alert.key}"
        try:
            _, attempts = retry_call(
                lambda: channel.send(alert, transition),
                policy=channel.retry_policy,
                sleep=self.sleep,
                label=label,
            )
            logger.info(f"Delivered {label} (attempts={attempts})")
            return ChannelOutcome(channel.name, True, attempts)
        except RetryExhausted as e:
            logger.error(f"Giving up on {label} after {e.attempts} attempt(s): {e.last_error}")
            return ChannelOutcome(channel.name, False, e.attempts, str(e.last_error))

    def _fan_out(self, alert, transition, channels):
        futures = [
            (channel, self._executor.submit(self._send_one, channel, alert, transition))
            for channel in channels
        ]
        outcomes = []
        for channel, future in futures:
            try:
                outcomes.append(future.result())
            except Exception as e:
                logger.exception(f"Unexpected error sending via {channel.name}")
                outcomes.append(ChannelOutcome(channel.name, False, 0, str(e)))
        return DispatchResult(outcomes)

    def dispatch(self, event: TransitionEvent, channels=None) -> DispatchResult:
        """Deliver `event` to `channels` (default: every enabled channel)."""
        if channels is None:
            channels = self.registry.enabled() if self.registry is not None else ()
        if not channels:
            logger.debug(f"No channels for {event.transition.value} {event.key}")
            return DispatchResult()
        return self._fan_out(event.alert, Transition(event.transition), channels)

    def send_test(self, severity=Severity.WARNING.value, message=None, channels=None) -> TestAlertResult:
        """Send a synthetic alert. Touches no storage and no lifecycle state."""
        severity = str(severity or Severity.WARNING.value).lower()
        if severity not in {s.value for s in Severity}:
            raise ValidationError(f"invalid severity '{severity}', must be info, warning or critical")

        alert = Alert(
            id=0,
            target_name=TEST_TARGET,
            instance_name=TEST_INSTANCE,
            rule_name=TEST_RULE,
            severity=severity,
            message=message or TEST_MESSAGE,
            status=AlertStatus.FIRED.value,
            fired_at=datetime.now(timezone.utc),
        )
        if self.registry is None:
            return TestAlertResult(alert=alert, unknown=list(channels or []))

        selected, unknown = self.registry.select(channels)
        for name in unknown:
            logger.warning(f"Test alert: channel '{name}' is not enabled or does not exist")

        result = TestAlertResult(alert=alert, targeted=[c.name for c in selected], unknown=unknown)
        if not selected:
            return result

        dispatched = self._fan_out(alert, Transition.FIRE, selected)
        result.outcomes = dispatched.outcomes
        result.results = {o.channel: o.success for o in dispatched.outcomes}
        return result

    def shutdown(self, wait=True):
        self._executor.shutdown(wait=wait)
