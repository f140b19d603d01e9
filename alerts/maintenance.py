"""Maintenance window suppression."""
import logging
from datetime import datetime, timezone

from alerts.errors import store_call

logger = logging.getLogger("poolwatch.alerts.maintenance")


class MaintenanceFilter:
    """Decides whether a target is inside an active maintenance window.

    Read-only over the window set; never mutates alerts. A window that
    cannot be interpreted (e.g. a bad weekday list) counts as inactive.
    """

    def __init__(self, store):
        self.store = store

    def load_windows(self):
        """Fetch all windows once. Raises PersistenceError on store failure."""
        return store_call(self.store, "get_all_maintenance_windows") or []

    def _window_active(self, window, at):
        try:
            return window.is_active(at)
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring malformed maintenance window '{window.name}' (id={window.id}): {e}")
            return False

    def active_windows(self, at=None, windows=None):
        at = at or datetime.now(timezone.utc)
        if windows is None:
            windows = self.load_windows()
        return [w for w in windows if self._window_active(w, at)]

    def is_suppressed(self, target_name, at=None, windows=None):
        at = at or datetime.now(timezone.utc)
        if windows is None:
            windows = self.load_windows()
        for window in windows:
            if window.matches_target(target_name) and self._window_active(window, at):
                logger.debug(f"{target_name} suppressed by maintenance window '{window.name}'")
                return True
        return False
