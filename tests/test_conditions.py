"""Tests for condition parsing, validation and evaluation."""
import math
import pytest

from alerts.conditions import (
    Condition, compute_fields, evaluate, parse_condition, validate_condition,
)
from alerts.errors import ConditionError, EvaluationError, ValidationError
from models.enums import MetricField, Operator
from conftest import make_sample


# ── Parsing ─────────────────────────────────────────────

@pytest.mark.parametrize("text,field,op,threshold", [
    ("usage > 80", MetricField.USAGE, Operator.GT, 80.0),
    ("usage>80", MetricField.USAGE, Operator.GT, 80.0),
    ("pending >= 5", MetricField.PENDING, Operator.GE, 5.0),
    ("idle<=1", MetricField.IDLE, Operator.LE, 1.0),
    ("active == 10", MetricField.ACTIVE, Operator.EQ, 10.0),
    ("timeout != 0", MetricField.TIMEOUT, Operator.NE, 0.0),
    ("heap_usage < 90.5", MetricField.HEAP_USAGE, Operator.LT, 90.5),
    ("cpu_usage > 0.75", MetricField.CPU_USAGE, Operator.GT, 0.75),
])
def test_parse_valid(text, field, op, threshold):
    cond = parse_condition(text)
    assert cond.field == field
    assert cond.operator == op
    assert cond.threshold == threshold


def test_field_names_case_insensitive():
    assert parse_condition("USAGE > 80").field == MetricField.USAGE
    assert parse_condition("HeapUsage > 80").field == MetricField.HEAP_USAGE


def test_aliases():
    assert parse_condition("cpu > 1").field == MetricField.CPU_USAGE
    assert parse_condition("threads > 200").field == MetricField.THREADS_LIVE
    assert parse_condition("gctime > 3").field == MetricField.GC_TIME


def test_negative_threshold():
    assert parse_condition("active > -1").threshold == -1.0


@pytest.mark.parametrize("text", [
    "",
    "   ",
    "usage",
    "usage 80",
    "usage >> 80",
    "usage => 80",
    "usage =< 80",
    "usage = 80",
    "bogus > 80",
    "usage > abc",
    "usage > ",
    "> 80",
    "usage > nan",
    "usage > inf",
])
def test_parse_invalid(text):
    with pytest.raises(ConditionError):
        parse_condition(text)


def test_condition_error_is_validation_error():
    with pytest.raises(ValidationError):
        validate_condition("usage >> 80")


def test_validate_returns_parsed():
    assert isinstance(validate_condition("pending > 0"), Condition)


# ── Evaluation ──────────────────────────────────────────

def test_threshold_boundaries():
    fields = {"usage": 80.0}
    assert evaluate("usage > 80", fields) is False
    assert evaluate("usage >= 80", fields) is True
    assert evaluate("usage < 80", fields) is False
    assert evaluate("usage <= 80", fields) is True
    assert evaluate("usage == 80", fields) is True
    assert evaluate("usage != 80", fields) is False


def test_parsed_and_string_agree():
    fields = {"pending": 3}
    cond = parse_condition("pending > 2")
    assert evaluate(cond, fields) == evaluate("pending > 2", fields) is True


def test_missing_field_reads_zero():
    assert evaluate("pending > 0", {}) is False
    assert evaluate("pending == 0", {}) is True


def test_nan_and_inf_never_trigger():
    assert evaluate("usage > 0", {"usage": math.nan}) is False
    assert evaluate("usage < 0", {"usage": math.nan}) is False
    assert evaluate("usage > 0", {"usage": math.inf}) is False


def test_invalid_stored_condition_raises_evaluation_error():
    with pytest.raises(EvaluationError):
        evaluate("usage >> 80", {"usage": 90})


def test_non_numeric_field_raises_evaluation_error():
    with pytest.raises(EvaluationError):
        evaluate("usage > 1", {"usage": "lots"})


# ── Field computation ───────────────────────────────────

def test_compute_fields_usage():
    fields = compute_fields(make_sample(active=8, max_=10, heap_used=900, heap_max=1000))
    assert fields["usage"] == pytest.approx(80.0)
    assert fields["heap_usage"] == pytest.approx(90.0)
    assert fields["target_name"] == "orders-db"
    assert fields["instance_name"] == "pod-1"


def test_compute_fields_zero_max():
    fields = compute_fields(make_sample(active=3, max_=0, heap_used=10, heap_max=0))
    assert fields["usage"] == 0
    assert fields["heap_usage"] == 0
    assert evaluate("usage > 0", fields) is False


def test_cpu_usage_passed_through():
    fields = compute_fields(make_sample(cpu_usage=0.42))
    assert fields["cpu_usage"] == pytest.approx(0.42)


def test_usage_ninety_percent_triggers_high_usage():
    fields = compute_fields(make_sample(active=90, max_=100))
    assert fields["usage"] == pytest.approx(90.0)
    assert evaluate("usage > 80", fields) is True
