import math

from rental.clock import ONE_HOUR_MS, to_timestamp_ms

DEFAULT_GRACE_PERIOD_HOURS = 1.0


def normalize_grace_hours(value, default: float = DEFAULT_GRACE_PERIOD_HOURS) -> float:
    """
    Absent grace hours default to one hour; negative or non-finite ones
    collapse to zero.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        return 0.0
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(hours) or hours < 0:
        return 0.0
    return hours


def grace_deadline_ms(drop_date_time, grace_period_hours=DEFAULT_GRACE_PERIOD_HOURS) -> float:
    """Drop time plus grace hours, in epoch ms. NaN when the drop time is unusable."""
    drop_ms = to_timestamp_ms(drop_date_time)
    if math.isnan(drop_ms):
        return math.nan
    return drop_ms + normalize_grace_hours(grace_period_hours) * ONE_HOUR_MS


def has_deadline(deadline_ms: float) -> bool:
    return deadline_ms is not None and math.isfinite(deadline_ms)
