"""Tests for config loading, duration parsing and env overrides."""
import pytest
import yaml
from unittest.mock import patch

from config import (
    get_check_interval, get_cooldown, get_sample_max_age, load_config, parse_duration,
)


@pytest.mark.parametrize("value,expected", [
    (30, 30.0),
    (1.5, 1.5),
    ("30", 30.0),
    ("30s", 30.0),
    ("5m", 300.0),
    ("2h", 7200.0),
    ("1d", 86400.0),
    ("250ms", 0.25),
    (" 10 s ", 10.0),
])
def test_parse_duration(value, expected):
    assert parse_duration(value) == pytest.approx(expected)


def test_parse_duration_defaults():
    assert parse_duration(None, 30) == 30
    assert parse_duration("", 30) == 30
    assert parse_duration(0, 30) == 30


@pytest.mark.parametrize("value", ["fast", "5 minutes", "-5s", True])
def test_parse_duration_invalid(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_defaults_loaded():
    config = load_config()
    alerting = config["alerting"]
    assert get_check_interval(alerting) == 30
    assert get_cooldown(alerting) == 300
    assert get_sample_max_age(alerting) == 300
    assert {r["name"] for r in alerting["rules"]} >= {"high_usage", "pool_exhausted"}
    assert alerting["channels"]["plugins"] == []


def test_file_overrides_merge(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "alerting": {"cooldown": "10m", "channels": {"slack": {"enabled": True, "webhook_url": "https://x"}}},
    }))
    config = load_config(str(path))
    assert get_cooldown(config["alerting"]) == 600
    assert config["alerting"]["channels"]["slack"]["enabled"] is True
    # untouched siblings survive the merge
    assert "discord" in config["alerting"]["channels"]
    assert config["alerting"]["check_interval"] == "30s"


def test_env_overrides():
    with patch.dict("os.environ", {
        "POOLWATCH_DB_PATH": "/tmp/pw-test.db",
        "POOLWATCH_CHECK_INTERVAL": "15s",
        "POOLWATCH_SMTP_USER": "alerts@example.com",
        "POOLWATCH_SMTP_PASS": "hunter2",
    }):
        config = load_config()
    assert config["database"]["path"] == "/tmp/pw-test.db"
    assert get_check_interval(config["alerting"]) == 15
    assert config["alerting"]["channels"]["email"]["username"] == "alerts@example.com"
    assert config["alerting"]["channels"]["email"]["password"] == "hunter2"


def _write(tmp_path, data):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


def test_invalid_duration_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"alerting": {"cooldown": "soon"}}))


def test_invalid_rule_severity_rejected(tmp_path):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"alerting": {"rules": [{"name": "x", "condition": "usage > 1",
                                                                "severity": "fatal"}]}}))


def test_duplicate_plugin_names_rejected(tmp_path):
    plugins = [{"name": "p", "url": "https://a"}, {"name": "p", "url": "https://b"}]
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, {"alerting": {"channels": {"plugins": plugins}}}))
