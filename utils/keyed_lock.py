"""One lock per key, created on demand."""
import threading
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class KeyedLock:
    """Thread-safe registry of per-key locks.

    Work on different keys proceeds in parallel; work on the same key is
    serialized. A key's lock is dropped once no thread holds or waits on it,
    so the registry only tracks keys currently in use.
    """

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def _acquire_entry(self, key):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _Entry()
                self._locks[key] = entry
            entry.users += 1
            return entry

    def _release_entry(self, key, entry):
        with self._guard:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, key):
        entry = self._acquire_entry(key)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(key, entry)

    def __len__(self):
        with self._guard:
            return len(self._locks)
