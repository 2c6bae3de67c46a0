import logging
import os
import threading

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from rental.errors import RentalError

logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 15
MIN_POLL_SECONDS = 3


def make_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler(daemon=True)
    scheduler.start()
    return scheduler


def poll_interval_seconds(value=None) -> float:
    raw = value if value is not None else os.getenv("RENTAL_POLL_SECONDS", DEFAULT_POLL_SECONDS)
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        seconds = DEFAULT_POLL_SECONDS
    if seconds != seconds or seconds <= 0:
        seconds = DEFAULT_POLL_SECONDS
    return max(seconds, MIN_POLL_SECONDS)


class SnapshotPoller:
    """
    Re-run `fetch` every few seconds and hand the result to `on_result`.

    A run is skipped while the previous one is still in flight, and nothing
    is delivered once the poller is disposed. Fetch failures go to
    `on_error` and polling continues.
    """

    def __init__(self, fetch, on_result, on_error=None, interval_seconds=None, scheduler=None):
        self.fetch = fetch
        self.on_result = on_result
        self.on_error = on_error
        self.interval_seconds = poll_interval_seconds(interval_seconds)
        self.scheduler = scheduler
        self._job = None
        self._in_flight = False
        self._disposed = False
        self._lock = threading.Lock()

    def start(self):
        if self.scheduler is None:
            raise RuntimeError("SnapshotPoller needs a scheduler to run periodically")
        self._job = self.scheduler.add_job(
            self.run, "interval", seconds=self.interval_seconds, max_instances=1, coalesce=True
        )
        return self

    def run(self) -> bool:
        with self._lock:
            if self._disposed or self._in_flight:
                return False
            self._in_flight = True
        try:
            result = self.fetch()
        except RentalError as exc:
            logger.info("Poll failed: %s", exc.message)
            if self.on_error is not None and not self._disposed:
                self.on_error(exc)
            return False
        finally:
            with self._lock:
                self._in_flight = False

        if self._disposed:
            return False
        self.on_result(result)
        return True

    def dispose(self):
        with self._lock:
            self._disposed = True
        if self._job is not None:
            try:
                self._job.remove()
            except JobLookupError:
                pass
            self._job = None
