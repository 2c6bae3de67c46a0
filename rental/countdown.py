"""
Per-view ticking clock.

A Countdown owns one interval job on an APScheduler scheduler. Each tick
re-reads the injected clock rather than adding up deltas, so a late tick
never drifts the reading. Stopping removes the job and marks the countdown
cancelled under the same lock the tick takes, so a tick that starts after
`stop()` has returned produces nothing. The tick handler runs outside that
lock; owners that stop a countdown from another thread check `is_cancelled`
before using a reading.
"""
import logging
import math
import threading
from dataclasses import dataclass

from apscheduler.jobstores.base import JobLookupError

from rental.clock import ONE_HOUR_MS, ONE_MINUTE_MS, ONE_SECOND_MS, default_clock, to_timestamp_ms

logger = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
COMPLETE = "complete"

DOWN = "down"
UP = "up"

TICK_SECONDS = 1


@dataclass(frozen=True)
class CountdownReading:
    has_target: bool
    is_complete: bool
    is_running: bool
    total_milliseconds: float
    formatted: str
    now_ms: float
    target_ms: float
    hours: int = 0
    minutes: int = 0
    seconds: int = 0


def duration_parts(duration_ms) -> tuple:
    """(hours, minutes, seconds) of a non-negative duration. Hours are not wrapped into days."""
    try:
        safe_ms = max(float(duration_ms or 0), 0.0)
    except (TypeError, ValueError):
        safe_ms = 0.0
    if not math.isfinite(safe_ms):
        safe_ms = 0.0
    total_seconds = int(safe_ms // ONE_SECOND_MS)
    hours = total_seconds // (ONE_HOUR_MS // ONE_SECOND_MS)
    minutes = (total_seconds % 3600) // (ONE_MINUTE_MS // ONE_SECOND_MS)
    seconds = total_seconds % 60
    return hours, minutes, seconds


def format_duration(duration_ms) -> str:
    hours, minutes, seconds = duration_parts(duration_ms)
    return f"{hours:02d}h {minutes:02d}m {seconds:02d}s"


class Countdown:
    def __init__(self, target, direction=DOWN, auto_stop=None, clock=None, on_tick=None, job_id=None):
        if direction not in (DOWN, UP):
            raise ValueError(f"direction must be '{DOWN}' or '{UP}'")
        self.target_ms = to_timestamp_ms(target)
        self.direction = direction
        self.auto_stop = (direction == DOWN) if auto_stop is None else bool(auto_stop)
        self.clock = clock or default_clock
        self.on_tick = on_tick
        self.job_id = job_id

        self.state = IDLE
        self._last_now_ms = None
        self._job = None
        self._cancelled = False
        self._lock = threading.RLock()

    def __repr__(self):
        return f"<Countdown {self.direction} {self.state}>"

    @property
    def has_target(self) -> bool:
        return math.isfinite(self.target_ms)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def _reached_target(self, now_ms: float) -> bool:
        return self.direction == DOWN and self.auto_stop and now_ms >= self.target_ms

    def _read(self, now_ms: float) -> CountdownReading:
        if not self.has_target:
            return CountdownReading(
                has_target=False,
                is_complete=False,
                is_running=False,
                total_milliseconds=0.0,
                formatted=format_duration(0),
                now_ms=now_ms,
                target_ms=self.target_ms,
            )

        raw_delta = now_ms - self.target_ms if self.direction == UP else self.target_ms - now_ms
        clamped = max(raw_delta, 0.0)
        is_complete = self.direction == DOWN and raw_delta <= 0
        hours, minutes, seconds = duration_parts(clamped)
        return CountdownReading(
            has_target=True,
            is_complete=is_complete,
            is_running=self.state == RUNNING and not is_complete,
            total_milliseconds=clamped,
            formatted=format_duration(clamped),
            now_ms=now_ms,
            target_ms=self.target_ms,
            hours=hours,
            minutes=minutes,
            seconds=seconds,
        )

    def _monotonic_now(self) -> float:
        now_ms = self.clock.now_ms()
        if self._last_now_ms is not None and now_ms < self._last_now_ms:
            now_ms = self._last_now_ms
        self._last_now_ms = now_ms
        return now_ms

    def reading(self) -> CountdownReading:
        with self._lock:
            if self._last_now_ms is None:
                return self._read(self.clock.now_ms())
            return self._read(self._last_now_ms)

    def start(self, scheduler=None) -> CountdownReading:
        """
        Take the first reading and, unless already finished, schedule a tick
        every second on `scheduler`. Without a scheduler the caller drives
        `tick()` itself.
        """
        with self._lock:
            if self._cancelled:
                raise RuntimeError("A stopped countdown cannot be restarted")
            if self.state == RUNNING:
                return self._read(self._monotonic_now())
            if not self.has_target:
                self.state = IDLE
                return self._read(self.clock.now_ms())

            now_ms = self._monotonic_now()
            if self._reached_target(now_ms):
                self.state = COMPLETE
                return self._read(now_ms)

            self.state = RUNNING
            if scheduler is not None:
                self._job = scheduler.add_job(
                    self.tick,
                    "interval",
                    seconds=TICK_SECONDS,
                    id=self.job_id,
                    max_instances=1,
                    coalesce=True,
                )
            return self._read(now_ms)

    def tick(self) -> CountdownReading:
        with self._lock:
            if self._cancelled or self.state != RUNNING:
                return self.reading()

            now_ms = self._monotonic_now()
            if self._reached_target(now_ms):
                self.state = COMPLETE
                self._cancel_job()

            reading = self._read(now_ms)
            handler = self.on_tick

        if handler is not None:
            try:
                handler(reading)
            except Exception:
                logger.exception("Countdown tick handler failed")
        return reading

    def stop(self) -> None:
        with self._lock:
            self._cancelled = True
            self._cancel_job()
            if self.state == RUNNING:
                self.state = IDLE

    def _cancel_job(self) -> None:
        if self._job is None:
            return
        try:
            self._job.remove()
        except JobLookupError:
            pass
        self._job = None
