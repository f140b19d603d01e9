"""Alert system module."""
from alerts.engine import AlertEngine
from alerts.rules_manager import RulesManager, RuleSet, CompiledRule
from alerts.conditions import Condition, parse_condition, validate_condition, evaluate, compute_fields
from alerts.lifecycle import AlertLifecycleTracker, TransitionEvent
from alerts.maintenance import MaintenanceFilter
from alerts.registry import ChannelRegistry
from alerts.dispatcher import NotificationDispatcher, DispatchResult, ChannelOutcome, TestAlertResult
from alerts.errors import (
    AlertingError, ValidationError, ConditionError, RuleNotFoundError,
    EvaluationError, ChannelDeliveryError, PersistenceError,
)
