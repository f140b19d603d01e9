"""Background scheduler for periodic alert sweeps."""
import logging
import threading
import schedule
import time

logger = logging.getLogger("poolwatch.scheduler")

MAX_CONSECUTIVE_FAILURES = 5


class MonitorScheduler:
    def __init__(self, engine, interval_seconds=30):
        self.engine = engine
        self.interval = interval_seconds
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._running = False
        self._callbacks = []
        self._consecutive_failures = 0

    def on_sweep(self, callback):
        """Register callback called with the transition events of each sweep."""
        self._callbacks.append(callback)

    def on_sample(self, sample):
        """Push path for collectors: evaluate a freshly collected sample now."""
        try:
            return self.engine.check(sample)
        except Exception as e:
            logger.error(f"Check of {sample.target_name}/{sample.instance_name} failed: {e}")
            return []

    def start(self):
        """Start background sweeping."""
        if self._running:
            return
        self._running = True

        self._scheduler.every(self.interval).seconds.do(self.run_once)

        self._thread = threading.Thread(target=self._run_loop, name="poolwatch-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started (sweep every {self.interval}s)")

    def stop(self):
        """Stop background sweeping."""
        self._running = False
        self._scheduler.clear()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Scheduler stopped")

    @property
    def running(self):
        return self._running

    def _run_loop(self):
        # Sweep once immediately
        self.run_once()
        while self._running:
            self._scheduler.run_pending()
            time.sleep(1)

    def run_once(self):
        try:
            events = self.engine.sweep()
            self._consecutive_failures = 0
        except Exception as e:
            self._consecutive_failures += 1
            logger.error(f"Sweep failed ({self._consecutive_failures} consecutive): {e}")
            if self._consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                logger.critical(f"{MAX_CONSECUTIVE_FAILURES}+ consecutive sweep failures!")
            return []

        for cb in self._callbacks:
            try:
                cb(events)
            except Exception as e:
                logger.warning(f"Sweep callback error: {e}")
        return events
