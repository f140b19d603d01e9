"""Configuration management."""
import os
import re
import yaml
from pathlib import Path

from models.enums import Severity

_config = None
_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"

DEFAULT_CHECK_INTERVAL = 30.0
DEFAULT_COOLDOWN = 300.0
DEFAULT_SAMPLE_MAX_AGE = 300.0

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400, None: 1}


def parse_duration(value, default=None):
    """Parse 30, "30s", "5m", "100ms", "1d" into seconds. Falls back to `default`."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    return seconds if seconds > 0 else default


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    global _config

    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    # Environment variable overrides
    env_map = {
        "POOLWATCH_DB_PATH": ("database", "path"),
        "POOLWATCH_LOG_LEVEL": ("logging", "level"),
        "POOLWATCH_CHECK_INTERVAL": ("alerting", "check_interval"),
        "POOLWATCH_COOLDOWN": ("alerting", "cooldown"),
        "POOLWATCH_SMTP_USER": ("alerting", "channels", "email", "username"),
        "POOLWATCH_SMTP_PASS": ("alerting", "channels", "email", "password"),
    }
    for env_key, config_path in env_map.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            d[config_path[-1]] = val

    _validate_config(config)
    _config = config
    return config


def get_config():
    """Return cached config, loading defaults if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_check_interval(alerting):
    return parse_duration(alerting.get("check_interval"), DEFAULT_CHECK_INTERVAL)


def get_cooldown(alerting):
    return parse_duration(alerting.get("cooldown"), DEFAULT_COOLDOWN)


def get_sample_max_age(alerting):
    return parse_duration(alerting.get("sample_max_age"), DEFAULT_SAMPLE_MAX_AGE)


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    """Basic config validation."""
    for section in ("alerting", "database"):
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    alerting = config["alerting"] or {}
    for key in ("check_interval", "cooldown", "sample_max_age"):
        parse_duration(alerting.get(key))

    valid_severities = {s.value for s in Severity}
    for rule in alerting.get("rules") or []:
        if not rule.get("name"):
            raise ValueError("Alert rule without a name")
        if str(rule.get("severity", "warning")).lower() not in valid_severities:
            raise ValueError(f"Alert rule {rule['name']}: invalid severity {rule.get('severity')!r}")

    names = [p.get("name") for p in (alerting.get("channels") or {}).get("plugins") or []]
    if any(not n for n in names):
        raise ValueError("Plugin channel without a name")
    if len(names) != len(set(names)):
        raise ValueError("Duplicate plugin channel names")
