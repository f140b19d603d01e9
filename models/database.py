"""SQLite storage for metric samples, alerts, alert rules and maintenance windows."""
import sqlite3
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from models.alerts import Alert, AlertRule, AlertStats, MaintenanceWindow
from models.metrics import PoolMetrics

logger = logging.getLogger("poolwatch.db")

_ALERT_COLUMNS = (
    "id, target_name, instance_name, rule_name, severity, message, status, "
    "fired_at, resolved_at, notified_at, channels"
)
_RULE_COLUMNS = "id, name, condition, severity, message, enabled, created_at, updated_at"
_WINDOW_COLUMNS = (
    "id, name, description, target_name, start_time, end_time, recurring, "
    "days_of_week, created_at, updated_at"
)


def _ts(value):
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _parse_ts(value):
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _now():
    return datetime.now(timezone.utc)


class Database:
    def __init__(self, db_path="data/poolwatch.db"):
        self.db_path = db_path
        self.conn = None
        self._lock = threading.RLock()

    def connect(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS pool_metrics (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                target_name TEXT NOT NULL,
                instance_name TEXT NOT NULL DEFAULT 'default',
                status TEXT NOT NULL DEFAULT 'healthy',
                active INTEGER, idle INTEGER, pending INTEGER, max INTEGER,
                timeout INTEGER, acquire_p99 REAL,
                heap_used INTEGER, heap_max INTEGER,
                non_heap_used INTEGER, non_heap_max INTEGER,
                threads_live INTEGER, cpu_usage REAL,
                gc_count INTEGER, gc_time REAL,
                young_gc_count INTEGER, old_gc_count INTEGER,
                timestamp TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_metrics_target_time
                ON pool_metrics(target_name, instance_name, timestamp);

            CREATE TABLE IF NOT EXISTS alerts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                target_name TEXT NOT NULL,
                instance_name TEXT NOT NULL,
                rule_name TEXT NOT NULL,
                severity TEXT NOT NULL,
                message TEXT,
                status TEXT NOT NULL DEFAULT 'fired',
                fired_at TEXT NOT NULL,
                resolved_at TEXT,
                notified_at TEXT,
                channels TEXT DEFAULT ''
            );

            CREATE INDEX IF NOT EXISTS idx_alerts_key
                ON alerts(target_name, instance_name, rule_name, status);

            CREATE TABLE IF NOT EXISTS alert_rules (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                condition TEXT NOT NULL,
                severity TEXT NOT NULL DEFAULT 'warning',
                message TEXT,
                enabled INTEGER NOT NULL DEFAULT 1,
                created_at TEXT,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS maintenance_windows (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                target_name TEXT,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                recurring INTEGER NOT NULL DEFAULT 0,
                days_of_week TEXT,
                created_at TEXT,
                updated_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_windows_target
                ON maintenance_windows(target_name);
        """)
        self.conn.commit()

    def _write(self, query, params=()):
        with self._lock:
            cur = self.conn.execute(query, params)
            self.conn.commit()
            return cur

    def _fetchone(self, query, params=()):
        with self._lock:
            return self.conn.execute(query, params).fetchone()

    def _fetchall(self, query, params=()):
        with self._lock:
            return self.conn.execute(query, params).fetchall()

    # --- Metric samples ---

    def save_metrics(self, metrics: PoolMetrics):
        d = metrics.to_dict()
        columns = ", ".join(d)
        placeholders = ", ".join("?" for _ in d)
        cur = self._write(
            f"INSERT INTO pool_metrics ({columns}) VALUES ({placeholders})",
            tuple(d.values()),
        )
        metrics.id = cur.lastrowid
        logger.debug(f"Saved metrics for {metrics.target_name}/{metrics.instance_name}")

    def get_latest_metrics(self, target_name, instance_name="default"):
        row = self._fetchone("""
            SELECT * FROM pool_metrics
            WHERE target_name = ? AND instance_name = ?
            ORDER BY timestamp DESC, id DESC LIMIT 1
        """, (target_name, instance_name))
        return PoolMetrics.from_dict(dict(row)) if row else None

    def get_latest_metrics_all(self):
        """Latest sample for every (target, instance) pair."""
        rows = self._fetchall("""
            SELECT m.* FROM pool_metrics m
            JOIN (
                SELECT target_name, instance_name, MAX(id) AS max_id
                FROM pool_metrics GROUP BY target_name, instance_name
            ) latest ON m.id = latest.max_id
            ORDER BY m.target_name, m.instance_name
        """)
        return [PoolMetrics.from_dict(dict(r)) for r in rows]

    # --- Alerts ---

    @staticmethod
    def _row_to_alert(row):
        return Alert(
            id=row["id"],
            target_name=row["target_name"],
            instance_name=row["instance_name"],
            rule_name=row["rule_name"],
            severity=row["severity"],
            message=row["message"] or "",
            status=row["status"],
            fired_at=_parse_ts(row["fired_at"]),
            resolved_at=_parse_ts(row["resolved_at"]),
            notified_at=_parse_ts(row["notified_at"]),
            channels={c for c in (row["channels"] or "").split(",") if c},
        )

    def save_alert(self, alert: Alert):
        cur = self._write(f"""
            INSERT INTO alerts ({_ALERT_COLUMNS.replace('id, ', '', 1)})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            alert.target_name, alert.instance_name, alert.rule_name,
            alert.severity, alert.message, alert.status,
            _ts(alert.fired_at), _ts(alert.resolved_at), _ts(alert.notified_at),
            alert.channels_str(),
        ))
        alert.id = cur.lastrowid
        return alert.id

    def update_alert(self, alert: Alert):
        self._write("""
            UPDATE alerts SET
                severity = ?, message = ?, status = ?,
                resolved_at = ?, notified_at = ?, channels = ?
            WHERE id = ?
        """, (
            alert.severity, alert.message, alert.status,
            _ts(alert.resolved_at), _ts(alert.notified_at), alert.channels_str(),
            alert.id,
        ))

    def get_alert(self, alert_id):
        row = self._fetchone(f"SELECT {_ALERT_COLUMNS} FROM alerts WHERE id = ?", (alert_id,))
        return self._row_to_alert(row) if row else None

    def get_alerts(self, status=None, limit=100):
        if status:
            rows = self._fetchall(f"""
                SELECT {_ALERT_COLUMNS} FROM alerts WHERE status = ?
                ORDER BY fired_at DESC LIMIT ?
            """, (status, limit))
        else:
            rows = self._fetchall(f"""
                SELECT {_ALERT_COLUMNS} FROM alerts
                ORDER BY fired_at DESC LIMIT ?
            """, (limit,))
        return [self._row_to_alert(r) for r in rows]

    def get_active_alert_by_key(self, target_name, instance_name, rule_name):
        row = self._fetchone(f"""
            SELECT {_ALERT_COLUMNS} FROM alerts
            WHERE target_name = ? AND instance_name = ? AND rule_name = ?
              AND status = 'fired'
            ORDER BY fired_at DESC LIMIT 1
        """, (target_name, instance_name, rule_name))
        return self._row_to_alert(row) if row else None

    def get_alert_stats(self):
        stats = AlertStats()
        rows = self._fetchall("""
            SELECT 'status' AS type, status AS key, COUNT(*) AS count FROM alerts GROUP BY status
            UNION ALL
            SELECT 'severity', severity, COUNT(*) FROM alerts WHERE status = 'fired' GROUP BY severity
            UNION ALL
            SELECT 'target', target_name, COUNT(*) FROM alerts WHERE status = 'fired' GROUP BY target_name
            UNION ALL
            SELECT 'rule', rule_name, COUNT(*) FROM alerts WHERE status = 'fired' GROUP BY rule_name
        """)
        for r in rows:
            typ, key, count = r["type"], r["key"], r["count"]
            if typ == "status":
                stats.total_alerts += count
                if key == "fired":
                    stats.active_alerts = count
                else:
                    stats.resolved_alerts += count
            elif typ == "severity":
                stats.by_severity[key] = count
            elif typ == "target":
                stats.by_target[key] = count
            elif typ == "rule":
                stats.by_rule[key] = count
        return stats

    def cleanup_alerts(self, older_than):
        """Delete resolved alerts resolved before `older_than`."""
        cur = self._write(
            "DELETE FROM alerts WHERE status = 'resolved' AND resolved_at < ?",
            (_ts(older_than),),
        )
        return cur.rowcount

    # --- Alert rules ---

    @staticmethod
    def _row_to_rule(row):
        return AlertRule(
            id=row["id"],
            name=row["name"],
            condition=row["condition"],
            severity=row["severity"],
            message=row["message"] or "",
            enabled=bool(row["enabled"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def save_alert_rule(self, rule: AlertRule):
        now = _now()
        cur = self._write("""
            INSERT INTO alert_rules (name, condition, severity, message, enabled, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (rule.name, rule.condition, rule.severity, rule.message,
              int(rule.enabled), _ts(now), _ts(now)))
        rule.id = cur.lastrowid
        rule.created_at = rule.updated_at = now
        return rule.id

    def update_alert_rule(self, rule: AlertRule):
        now = _now()
        self._write("""
            UPDATE alert_rules SET
                name = ?, condition = ?, severity = ?, message = ?, enabled = ?, updated_at = ?
            WHERE id = ?
        """, (rule.name, rule.condition, rule.severity, rule.message,
              int(rule.enabled), _ts(now), rule.id))
        rule.updated_at = now

    def delete_alert_rule(self, rule_id):
        self._write("DELETE FROM alert_rules WHERE id = ?", (rule_id,))

    def get_alert_rule(self, rule_id):
        row = self._fetchone(f"SELECT {_RULE_COLUMNS} FROM alert_rules WHERE id = ?", (rule_id,))
        return self._row_to_rule(row) if row else None

    def get_alert_rule_by_name(self, name):
        row = self._fetchone(f"SELECT {_RULE_COLUMNS} FROM alert_rules WHERE name = ?", (name,))
        return self._row_to_rule(row) if row else None

    def get_alert_rules(self):
        rows = self._fetchall(f"SELECT {_RULE_COLUMNS} FROM alert_rules ORDER BY id ASC")
        return [self._row_to_rule(r) for r in rows]

    # --- Maintenance windows ---

    @staticmethod
    def _row_to_window(row):
        return MaintenanceWindow(
            id=row["id"],
            name=row["name"],
            description=row["description"] or "",
            target_name=row["target_name"] or "",
            start_time=_parse_ts(row["start_time"]),
            end_time=_parse_ts(row["end_time"]),
            recurring=bool(row["recurring"]),
            days_of_week=row["days_of_week"] or "",
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    def save_maintenance_window(self, window: MaintenanceWindow):
        now = _now()
        cur = self._write("""
            INSERT INTO maintenance_windows
            (name, description, target_name, start_time, end_time, recurring, days_of_week, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            window.name, window.description, window.target_name,
            _ts(window.start_time), _ts(window.end_time), int(window.recurring),
            window.days_of_week, _ts(now), _ts(now),
        ))
        window.id = cur.lastrowid
        window.created_at = window.updated_at = now
        return window.id

    def update_maintenance_window(self, window: MaintenanceWindow):
        now = _now()
        self._write("""
            UPDATE maintenance_windows SET
                name = ?, description = ?, target_name = ?, start_time = ?, end_time = ?,
                recurring = ?, days_of_week = ?, updated_at = ?
            WHERE id = ?
        """, (
            window.name, window.description, window.target_name,
            _ts(window.start_time), _ts(window.end_time), int(window.recurring),
            window.days_of_week, _ts(now), window.id,
        ))
        window.updated_at = now

    def delete_maintenance_window(self, window_id):
        self._write("DELETE FROM maintenance_windows WHERE id = ?", (window_id,))

    def get_maintenance_window(self, window_id):
        row = self._fetchone(
            f"SELECT {_WINDOW_COLUMNS} FROM maintenance_windows WHERE id = ?", (window_id,)
        )
        return self._row_to_window(row) if row else None

    def get_all_maintenance_windows(self):
        rows = self._fetchall(
            f"SELECT {_WINDOW_COLUMNS} FROM maintenance_windows ORDER BY start_time ASC"
        )
        return [self._row_to_window(r) for r in rows]

    def get_active_maintenance_windows(self, at=None):
        at = at or _now()
        return [w for w in self.get_all_maintenance_windows() if w.is_active(at)]
