"""Enums for metric fields, operators, severity and alert state."""
from enum import Enum


class MetricField(str, Enum):
    ACTIVE = "active"
    IDLE = "idle"
    PENDING = "pending"
    MAX = "max"
    USAGE = "usage"
    TIMEOUT = "timeout"
    HEAP_USAGE = "heap_usage"
    CPU_USAGE = "cpu_usage"
    # Raw JVM values
    HEAP_USED = "heap_used"
    HEAP_MAX = "heap_max"
    NON_HEAP_USED = "non_heap_used"
    THREADS_LIVE = "threads_live"
    GC_COUNT = "gc_count"
    GC_TIME = "gc_time"


class Operator(str, Enum):
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    EQ = "=="
    NE = "!="


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    FIRED = "fired"
    RESOLVED = "resolved"


class Transition(str, Enum):
    FIRE = "fire"
    RENOTIFY = "renotify"
    RESOLVE = "resolve"


class PoolStatus(str, Enum):
    HEALTHY = "healthy"
    NO_POOL = "no_pool"
    ERROR = "error"
