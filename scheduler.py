import logging
import threading

from config import get_settings

logger = logging.getLogger("fitfix")


class ExpirationScheduler:
    """Runs the subscription expiration scan on a background thread at a fixed interval."""

    def __init__(self, scan, interval_seconds: float = None, run_on_start: bool = True):
        self.scan = scan
        self.interval = interval_seconds or get_settings().scheduler_interval_seconds
        self.run_on_start = run_on_start
        self.running = False
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self.running:
            return
        self.running = True
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="expiration-scan", daemon=True)
        self._thread.start()
        logger.info(f"Expiration scheduler started (every {self.interval}s)")

    def stop(self, timeout: float = 5):
        if not self.running:
            return
        self.running = False
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Expiration scheduler stopped")

    def run_once(self) -> dict:
        try:
            results = self.scan()
        except Exception as e:
            # Keep the loop alive; the next tick retries
            logger.error(f"Scheduled subscription check failed: {e}")
            return None
        logger.info(
            f"Scheduled subscription check: {results['remindersSent']} reminders, "
            f"{results['expirationsSent']} expirations, {len(results['errors'])} errors"
        )
        return results

    def _loop(self):
        if self.run_on_start:
            self.run_once()
        while not self._stop.wait(self.interval):
            self.run_once()
