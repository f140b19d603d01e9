"""Parsing and evaluation of single-comparison alert conditions.

A condition has the form ``<field> <op> <number>``, e.g. ``usage > 80`` or
``pending>=5``. Conditions are parsed once into a :class:`Condition` and then
evaluated cheaply against the field map computed from each metric sample.
"""
import math
import logging
import operator as _op
from dataclasses import dataclass

from alerts.errors import ConditionError, EvaluationError
from models.enums import MetricField, Operator

logger = logging.getLogger("poolwatch.alerts.conditions")

# Longest operators first so ">=" is not read as ">"
_OPERATOR_TOKENS = (">=", "<=", "==", "!=", ">", "<")
_OPERATOR_CHARS = set("<>=!")

OPERATOR_MAP = {
    Operator.GT: _op.gt,
    Operator.GE: _op.ge,
    Operator.LT: _op.lt,
    Operator.LE: _op.le,
    Operator.EQ: _op.eq,
    Operator.NE: _op.ne,
}

FIELD_ALIASES = {
    "usage": MetricField.USAGE,
    "active": MetricField.ACTIVE,
    "idle": MetricField.IDLE,
    "pending": MetricField.PENDING,
    "max": MetricField.MAX,
    "timeout": MetricField.TIMEOUT,
    "heap_usage": MetricField.HEAP_USAGE,
    "heapusage": MetricField.HEAP_USAGE,
    "cpu_usage": MetricField.CPU_USAGE,
    "cpuusage": MetricField.CPU_USAGE,
    "cpu": MetricField.CPU_USAGE,
    "heap_used": MetricField.HEAP_USED,
    "heapused": MetricField.HEAP_USED,
    "heap_max": MetricField.HEAP_MAX,
    "heapmax": MetricField.HEAP_MAX,
    "non_heap_used": MetricField.NON_HEAP_USED,
    "nonheapused": MetricField.NON_HEAP_USED,
    "nonheap": MetricField.NON_HEAP_USED,
    "threads_live": MetricField.THREADS_LIVE,
    "threads": MetricField.THREADS_LIVE,
    "gc_count": MetricField.GC_COUNT,
    "gccount": MetricField.GC_COUNT,
    "gc_time": MetricField.GC_TIME,
    "gctime": MetricField.GC_TIME,
}


@dataclass(frozen=True)
class Condition:
    field: MetricField
    operator: Operator
    threshold: float
    text: str = ""

    def evaluate(self, fields):
        """True when the sample's field value satisfies the comparison.

        Missing fields read as 0. NaN or infinite values never match.
        """
        raw = fields.get(self.field.value, 0) if fields else 0
        try:
            value = float(raw if raw is not None else 0)
        except (TypeError, ValueError):
            raise EvaluationError(f"field {self.field.value} is not numeric: {raw!r}")
        if math.isnan(value) or math.isinf(value):
            logger.warning(f"{self.field.value} is {value}, skipping condition '{self}'")
            return False
        return OPERATOR_MAP[self.operator](value, self.threshold)

    def __str__(self):
        return self.text or f"{self.field.value} {self.operator.value} {self.threshold:g}"


def _split(text):
    """Split into (field, operator, value) around the first operator run."""
    for i, ch in enumerate(text):
        if ch in _OPERATOR_CHARS:
            j = i
            while j < len(text) and text[j] in _OPERATOR_CHARS:
                j += 1
            return text[:i].strip(), text[i:j], text[j:].strip()
    return None


def parse_condition(text):
    """Parse a condition string. Raises ConditionError when invalid."""
    if not isinstance(text, str) or not text.strip():
        raise ConditionError("condition cannot be empty", text)
    text = text.strip()

    parts = _split(text)
    if parts is None:
        raise ConditionError(
            f"invalid condition format: expected 'field operator value', got '{text}'", text
        )
    field_name, op_token, value_str = parts

    if op_token not in _OPERATOR_TOKENS:
        raise ConditionError(
            f"unknown operator '{op_token}'. Valid operators: {', '.join(_OPERATOR_TOKENS)}", text
        )

    if not field_name:
        raise ConditionError(f"missing field in condition '{text}'", text)
    field = FIELD_ALIASES.get(field_name.lower())
    if field is None:
        valid = ", ".join(f.value for f in MetricField)
        raise ConditionError(f"unknown field '{field_name}'. Valid fields: {valid}", text)

    try:
        threshold = float(value_str)
    except ValueError:
        raise ConditionError(f"invalid value '{value_str}': must be a number", text)
    if math.isnan(threshold) or math.isinf(threshold):
        raise ConditionError(f"invalid value '{value_str}': must be a finite number", text)

    return Condition(field=field, operator=Operator(op_token), threshold=threshold, text=text)


def validate_condition(text):
    """Raise ConditionError if `text` is not a valid condition; return the parsed form."""
    return parse_condition(text)


def evaluate(condition, fields):
    """Evaluate a condition (string or parsed) against a field map."""
    if not isinstance(condition, Condition):
        try:
            condition = parse_condition(condition)
        except ConditionError as e:
            raise EvaluationError(str(e)) from e
    return condition.evaluate(fields)


def compute_fields(sample):
    """Field map for condition evaluation and message rendering."""
    return {
        MetricField.ACTIVE.value: sample.active,
        MetricField.IDLE.value: sample.idle,
        MetricField.PENDING.value: sample.pending,
        MetricField.MAX.value: sample.max,
        MetricField.USAGE.value: sample.usage,
        MetricField.TIMEOUT.value: sample.timeout,
        MetricField.HEAP_USAGE.value: sample.heap_usage,
        MetricField.CPU_USAGE.value: sample.cpu_usage,
        MetricField.HEAP_USED.value: sample.heap_used,
        MetricField.HEAP_MAX.value: sample.heap_max,
        MetricField.NON_HEAP_USED.value: sample.non_heap_used,
        MetricField.THREADS_LIVE.value: sample.threads_live,
        MetricField.GC_COUNT.value: sample.gc_count,
        MetricField.GC_TIME.value: sample.gc_time,
        "target_name": sample.target_name,
        "instance_name": sample.instance_name,
    }
