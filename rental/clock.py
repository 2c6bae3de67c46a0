import math
import threading
import time
from datetime import datetime, timezone

ONE_SECOND_MS = 1000
ONE_MINUTE_MS = 60 * ONE_SECOND_MS
ONE_HOUR_MS = 60 * ONE_MINUTE_MS
ONE_DAY_MS = 24 * ONE_HOUR_MS


def to_timestamp_ms(value) -> float:
    """
    Convert a datetime, ISO string or epoch-ms number to epoch milliseconds.

    Returns NaN for None, empty strings and anything unparsable. Naive
    datetimes are read as UTC, which is how the database stores them.
    """
    if value is None or isinstance(value, bool):
        return math.nan
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp() * 1000.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else math.nan
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return math.nan
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return to_timestamp_ms(datetime.fromisoformat(raw))
        except ValueError:
            return math.nan
    return math.nan


def from_timestamp_ms(value_ms: float):
    if value_ms is None or not math.isfinite(value_ms):
        return None
    return datetime.fromtimestamp(value_ms / 1000.0, tz=timezone.utc).replace(tzinfo=None)


class SystemClock:
    """Wall clock. Every call re-reads the system time."""

    def now_ms(self) -> float:
        return time.time() * 1000.0

    def now(self) -> datetime:
        return datetime.utcnow()


class FrozenClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = FrozenClock("2024-01-01T18:30:00Z")
        clock.advance(seconds=90)
    """

    def __init__(self, start=0):
        start_ms = to_timestamp_ms(start)
        if math.isnan(start_ms):
            raise ValueError(f"Cannot start a clock at {start!r}")
        self._now_ms = start_ms
        self._lock = threading.Lock()

    def now_ms(self) -> float:
        with self._lock:
            return self._now_ms

    def now(self) -> datetime:
        return from_timestamp_ms(self.now_ms())

    def set(self, value) -> None:
        value_ms = to_timestamp_ms(value)
        if math.isnan(value_ms):
            raise ValueError(f"Cannot set the clock to {value!r}")
        with self._lock:
            self._now_ms = value_ms

    def advance(self, milliseconds: float = 0, seconds: float = 0, hours: float = 0) -> float:
        delta = milliseconds + seconds * ONE_SECOND_MS + hours * ONE_HOUR_MS
        with self._lock:
            self._now_ms += delta
            return self._now_ms


default_clock = SystemClock()
