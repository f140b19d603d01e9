"""Dataclass for connection pool / JVM metric samples."""
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone


@dataclass
class PoolMetrics:
    target_name: str = ""
    instance_name: str = "default"
    status: str = "healthy"  # healthy, no_pool, error

    # HikariCP
    active: int = 0
    idle: int = 0
    pending: int = 0
    max: int = 0
    timeout: int = 0
    acquire_p99: float = 0.0

    # JVM
    heap_used: int = 0       # bytes
    heap_max: int = 0        # bytes
    non_heap_used: int = 0   # bytes
    non_heap_max: int = 0    # bytes
    threads_live: int = 0
    cpu_usage: float = 0.0

    # GC
    gc_count: int = 0
    gc_time: float = 0.0     # seconds
    young_gc_count: int = 0
    old_gc_count: int = 0

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: int = None

    @property
    def usage(self):
        """Pool usage percentage, 0 when max is unknown."""
        if not self.max:
            return 0.0
        return self.active / self.max * 100

    @property
    def heap_usage(self):
        if not self.heap_max:
            return 0.0
        return self.heap_used / self.heap_max * 100

    def to_dict(self):
        """Flatten into a dict for DB storage."""
        d = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "id"}
        d["timestamp"] = self.timestamp.isoformat()
        return d

    @classmethod
    def from_dict(cls, d):
        """Reconstruct from a flat DB row dict."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in d.items() if k in known and v is not None}
        ts = kwargs.get("timestamp")
        if isinstance(ts, str):
            ts = datetime.fromisoformat(ts)
            if ts.tzinfo is None:
                ts = ts.replace(tzinfo=timezone.utc)
            kwargs["timestamp"] = ts
        return cls(**kwargs)
