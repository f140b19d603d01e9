"""Alert message templates: ``{{Usage}}`` style placeholders."""
import re

from utils.formatters import format_number

_PLACEHOLDER = re.compile(r"\{\{\s*\.?\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def _normalize(name):
    return name.replace("_", "").lower()


def render_message(template, fields, default=""):
    """Interpolate placeholders with values from `fields`.

    ``{{Usage}}``, ``{{usage}}``, ``{{.Usage}}`` and ``{{heap_usage}}`` /
    ``{{HeapUsage}}`` all resolve to the same field. Unknown placeholders
    render as an empty string. Never raises.
    """
    if not template:
        return default
    lookup = {_normalize(str(k)): v for k, v in (fields or {}).items()}

    def _sub(match):
        value = lookup.get(_normalize(match.group(1)))
        try:
            return format_number(value)
        except Exception:
            return ""

    return _PLACEHOLDER.sub(_sub, str(template))


def default_message(rule_name, condition):
    return f"{rule_name}: {condition}"
