"""Alert rules loading and management."""
import logging
import threading
from dataclasses import dataclass
from typing import Tuple

from alerts.conditions import Condition, parse_condition
from alerts.errors import (
    ConditionError, PersistenceError, RuleNotFoundError, ValidationError, store_call,
)
from models.alerts import AlertRule
from models.enums import Severity

logger = logging.getLogger("poolwatch.alerts.rules")

VALID_SEVERITIES = {s.value for s in Severity}


@dataclass(frozen=True)
class CompiledRule:
    rule: AlertRule
    condition: Condition

    @property
    def name(self):
        return self.rule.name


@dataclass(frozen=True)
class RuleSet:
    """Immutable snapshot of the enabled rules with their parsed conditions."""
    rules: Tuple[CompiledRule, ...] = ()

    def __iter__(self):
        return iter(self.rules)

    def __len__(self):
        return len(self.rules)

    def names(self):
        return [r.name for r in self.rules]


def normalize_severity(severity):
    value = str(severity or "").strip().lower()
    if value not in VALID_SEVERITIES:
        raise ValidationError(f"invalid severity '{severity}', must be info, warning or critical")
    return value


def rule_from_config(raw):
    return AlertRule(
        name=str(raw.get("name", "")).strip(),
        condition=str(raw.get("condition", "")),
        severity=str(raw.get("severity") or Severity.WARNING.value).lower(),
        message=raw.get("message") or "",
        enabled=raw.get("enabled", True),
    )


class RulesManager:
    """Owns the active RuleSet and the rule CRUD surface.

    Rules come from the config file and from the store. A store rule whose
    name matches a config rule is ignored. The rule set is rebuilt on every
    change and swapped in one assignment, so readers always see a
    consistent snapshot.
    """

    def __init__(self, store, config_rules=None):
        self.store = store
        self._config_rules = [rule_from_config(r) for r in (config_rules or [])]
        self._ruleset = RuleSet()
        self._reload_lock = threading.Lock()

    def current(self) -> RuleSet:
        return self._ruleset

    def set_config_rules(self, rules):
        self._config_rules = [rule_from_config(r) for r in (rules or [])]
        return self.reload()

    def _compile(self, rules, source):
        compiled = []
        for rule in rules:
            if not rule.enabled:
                continue
            try:
                compiled.append(CompiledRule(rule, parse_condition(rule.condition)))
            except ConditionError as e:
                logger.error(f"Skipping {source} rule '{rule.name}': {e}")
        return compiled

    def reload(self) -> RuleSet:
        """Rebuild the rule set. A store failure keeps the previous set."""
        with self._reload_lock:
            try:
                stored = store_call(self.store, "get_alert_rules") or []
            except PersistenceError as e:
                logger.error(f"Failed to load alert rules, keeping previous rule set: {e}")
                return self._ruleset

            config_names = {r.name for r in self._config_rules}
            shadowed = [r.name for r in stored if r.name in config_names]
            if shadowed:
                logger.warning(f"Stored rules shadowed by config rules: {', '.join(shadowed)}")

            compiled = self._compile(self._config_rules, "config")
            compiled += self._compile([r for r in stored if r.name not in config_names], "stored")
            self._ruleset = RuleSet(tuple(compiled))
            logger.info(f"Loaded {len(self._ruleset)} enabled alert rules")
            return self._ruleset

    # --- rule management ---

    def _validate(self, name, condition, severity, exclude_id=None):
        name = (name or "").strip()
        if not name:
            raise ValidationError("rule name is required")
        if not condition or not str(condition).strip():
            raise ValidationError("rule condition is required")
        parse_condition(condition)
        severity = normalize_severity(severity)

        existing = store_call(self.store, "get_alert_rule_by_name", name)
        if existing is not None and existing.id != exclude_id:
            raise ValidationError(f"rule '{name}' already exists")
        return name, severity

    def get_rule(self, rule_id):
        rule = store_call(self.store, "get_alert_rule", rule_id)
        if rule is None:
            raise RuleNotFoundError(f"rule {rule_id} not found")
        return rule

    def list_rules(self):
        return store_call(self.store, "get_alert_rules") or []

    def create_rule(self, name, condition, severity=Severity.WARNING.value, message="", enabled=True):
        name, severity = self._validate(name, condition, severity)
        rule = AlertRule(
            name=name, condition=str(condition).strip(), severity=severity,
            message=message or "", enabled=bool(enabled),
        )
        store_call(self.store, "save_alert_rule", rule)
        logger.info(f"Created alert rule '{name}' ({rule.condition})")
        self.reload()
        return rule

    def update_rule(self, rule_id, name=None, condition=None, severity=None, message=None, enabled=None):
        rule = self.get_rule(rule_id)
        new_name = rule.name if name is None else name
        new_condition = rule.condition if condition is None else condition
        new_severity = rule.severity if severity is None else severity
        new_name, new_severity = self._validate(new_name, new_condition, new_severity, exclude_id=rule.id)

        rule.name = new_name
        rule.condition = str(new_condition).strip()
        rule.severity = new_severity
        if message is not None:
            rule.message = message
        if enabled is not None:
            rule.enabled = bool(enabled)
        store_call(self.store, "update_alert_rule", rule)
        logger.info(f"Updated alert rule {rule_id} '{rule.name}'")
        self.reload()
        return rule

    def delete_rule(self, rule_id):
        rule = self.get_rule(rule_id)
        store_call(self.store, "delete_alert_rule", rule_id)
        logger.info(f"Deleted alert rule {rule_id} '{rule.name}'")
        self.reload()
        return rule

    def toggle_rule(self, rule_id):
        rule = self.get_rule(rule_id)
        rule.enabled = not rule.enabled
        store_call(self.store, "update_alert_rule", rule)
        logger.info(f"Alert rule '{rule.name}' {'enabled' if rule.enabled else 'disabled'}")
        self.reload()
        return rule

    def get_config_rules(self):
        return list(self._config_rules)
