"""Tests for SQLite storage of samples, alerts, rules and windows."""
from datetime import timedelta

from models.alerts import Alert, AlertRule, MaintenanceWindow
from conftest import NOW, make_sample


def test_metrics_roundtrip_and_latest(temp_db):
    temp_db.save_metrics(make_sample(active=1, timestamp=NOW - timedelta(minutes=1)))
    temp_db.save_metrics(make_sample(active=7, timestamp=NOW))
    temp_db.save_metrics(make_sample(target="billing-db", active=3, timestamp=NOW))

    latest = temp_db.get_latest_metrics("orders-db", "pod-1")
    assert latest.active == 7
    assert latest.timestamp == NOW
    assert latest.id is not None

    all_latest = temp_db.get_latest_metrics_all()
    assert [(m.target_name, m.active) for m in all_latest] == [("billing-db", 3), ("orders-db", 7)]


def test_alert_crud(temp_db):
    alert = Alert(target_name="orders-db", instance_name="pod-1", rule_name="high_usage",
                  severity="warning", message="m", fired_at=NOW)
    alert_id = temp_db.save_alert(alert)
    assert temp_db.get_active_alert_by_key("orders-db", "pod-1", "high_usage").id == alert_id

    alert.channels = {"slack", "discord"}
    alert.status = "resolved"
    alert.resolved_at = NOW + timedelta(minutes=2)
    temp_db.update_alert(alert)

    stored = temp_db.get_alert(alert_id)
    assert stored.channels == {"slack", "discord"}
    assert stored.resolved_at == NOW + timedelta(minutes=2)
    assert temp_db.get_active_alert_by_key("orders-db", "pod-1", "high_usage") is None
    assert [a.id for a in temp_db.get_alerts(status="resolved")] == [alert_id]


def test_alert_stats_and_cleanup(temp_db):
    for rule, status in (("a", "fired"), ("b", "fired"), ("c", "resolved")):
        temp_db.save_alert(Alert(target_name="t", instance_name="i", rule_name=rule, status=status,
                                 severity="critical", fired_at=NOW,
                                 resolved_at=NOW if status == "resolved" else None))
    stats = temp_db.get_alert_stats()
    assert (stats.total_alerts, stats.active_alerts, stats.resolved_alerts) == (3, 2, 1)
    assert stats.by_rule == {"a": 1, "b": 1}

    assert temp_db.cleanup_alerts(NOW + timedelta(days=1)) == 1
    assert temp_db.get_alert_stats().total_alerts == 2


def test_rule_crud(temp_db):
    rule = AlertRule(name="slow_gc", condition="gc_time > 5", severity="critical")
    temp_db.save_alert_rule(rule)
    assert temp_db.get_alert_rule_by_name("slow_gc").id == rule.id

    rule.enabled = False
    temp_db.update_alert_rule(rule)
    assert temp_db.get_alert_rule(rule.id).enabled is False

    temp_db.delete_alert_rule(rule.id)
    assert temp_db.get_alert_rules() == []


def test_window_crud_and_active(temp_db):
    window = MaintenanceWindow(name="deploy", target_name="orders-db",
                               start_time=NOW - timedelta(minutes=5), end_time=NOW + timedelta(minutes=5))
    temp_db.save_maintenance_window(window)
    assert [w.id for w in temp_db.get_active_maintenance_windows(NOW)] == [window.id]
    assert temp_db.get_active_maintenance_windows(NOW + timedelta(hours=1)) == []

    window.recurring = True
    window.days_of_week = "1,2"
    temp_db.update_maintenance_window(window)
    stored = temp_db.get_maintenance_window(window.id)
    assert stored.recurring is True
    assert stored.days_of_week == "1,2"

    temp_db.delete_maintenance_window(window.id)
    assert temp_db.get_all_maintenance_windows() == []
