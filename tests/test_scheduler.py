"""Tests for the sweep scheduler."""
from unittest.mock import MagicMock

from monitor.scheduler import MonitorScheduler
from conftest import make_sample


def test_run_once_calls_sweep_and_callbacks():
    engine = MagicMock()
    engine.sweep.return_value = ["event"]
    seen = []
    scheduler = MonitorScheduler(engine, interval_seconds=30)
    scheduler.on_sweep(seen.append)
    assert scheduler.run_once() == ["event"]
    assert seen == [["event"]]


def test_sweep_failure_is_contained():
    engine = MagicMock()
    engine.sweep.side_effect = RuntimeError("boom")
    scheduler = MonitorScheduler(engine)
    assert scheduler.run_once() == []
    assert scheduler._consecutive_failures == 1


def test_on_sample_pushes_to_engine():
    engine = MagicMock()
    engine.check.return_value = []
    sample = make_sample()
    MonitorScheduler(engine).on_sample(sample)
    engine.check.assert_called_once_with(sample)


def test_start_stop():
    engine = MagicMock()
    engine.sweep.return_value = []
    scheduler = MonitorScheduler(engine, interval_seconds=60)
    scheduler.start()
    assert scheduler.running
    scheduler.stop()
    assert not scheduler.running
    assert engine.sweep.call_count >= 1
