"""Data models."""
from models.enums import MetricField, Operator, Severity, AlertStatus, Transition, PoolStatus
from models.metrics import PoolMetrics
from models.alerts import AlertKey, AlertRule, Alert, AlertStats, MaintenanceWindow
