"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.database import Database
from models.metrics import PoolMetrics
from datetime import datetime, timezone


NOW = datetime(2024, 3, 6, 12, 0, 0, tzinfo=timezone.utc)  # a Wednesday


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    os.unlink(db_path)
    for suffix in ("-wal", "-shm"):
        if os.path.exists(db_path + suffix):
            os.unlink(db_path + suffix)


def make_sample(target="orders-db", instance="pod-1", active=5, max_=10, pending=0,
                heap_used=512, heap_max=1024, status="healthy", timestamp=None, **kwargs):
    return PoolMetrics(
        target_name=target,
        instance_name=instance,
        status=status,
        active=active,
        idle=max(max_ - active, 0),
        pending=pending,
        max=max_,
        heap_used=heap_used,
        heap_max=heap_max,
        timestamp=timestamp or NOW,
        **kwargs,
    )


@pytest.fixture
def sample_metrics():
    """A realistic healthy sample at 50% pool usage."""
    return make_sample()


class FakeChannel:
    """In-memory channel recording every delivery."""

    def __init__(self, name="fake", fail_times=0, retryable=True, max_attempts=3):
        from utils.retry import RetryPolicy
        self.name = name
        self.retry_policy = RetryPolicy(max_attempts=max_attempts, base_delay=0.01)
        self.fail_times = fail_times
        self.retryable = retryable
        self.calls = []

    def is_enabled(self):
        return True

    def send(self, alert, transition):
        from alerts.errors import ChannelDeliveryError
        self.calls.append((alert, transition))
        if len(self.calls) <= self.fail_times:
            raise ChannelDeliveryError(f"{self.name} down", channel=self.name, retryable=self.retryable)

    @property
    def transitions(self):
        return [t.value if hasattr(t, "value") else t for _, t in self.calls]


@pytest.fixture
def fake_channel():
    return FakeChannel()
