import math
from typing import Mapping

from rental.deadline import grace_deadline_ms
from rental.snapshot import BookingSnapshot
from rental.status import (
    STAGE_ORDER,
    Stage,
    is_advance_paid_status,
    is_cancelled_booking_status,
    is_completed_booking_status,
    is_completed_trip_status,
    is_confirmed_booking_status,
    parse_stage,
)


def _as_snapshot(booking) -> BookingSnapshot:
    if isinstance(booking, BookingSnapshot):
        return booking
    if isinstance(booking, Mapping):
        return BookingSnapshot.from_dict(booking)
    raise TypeError(f"Cannot resolve a stage for {type(booking).__name__}")


def is_payment_secured(booking: BookingSnapshot) -> bool:
    return (
        is_confirmed_booking_status(booking.booking_status)
        or is_advance_paid_status(booking.payment_status)
        or booking.advance_paid > 0
    )


def booking_deadline_ms(booking: BookingSnapshot) -> float:
    if booking.drop_ms is None:
        return math.nan
    return grace_deadline_ms(booking.drop_ms, booking.grace_period_hours)


def resolve_stage(booking, now_ms: float) -> Stage:
    """
    Derive the lifecycle stage of `booking` at `now_ms`.

    The checks run in a fixed order and the first match wins. A missing drop
    time means the booking can never turn Overdue; a missing pickup time
    keeps it Scheduled.
    """
    booking = _as_snapshot(booking)

    if is_cancelled_booking_status(booking.booking_status):
        return Stage.CANCELLED

    if (
        is_completed_trip_status(booking.trip_status)
        or is_completed_booking_status(booking.booking_status)
        or booking.actual_return_ms is not None
    ):
        return Stage.COMPLETED

    if not is_payment_secured(booking):
        return Stage.PENDING_PAYMENT

    if booking.pickup_ms is None or now_ms < booking.pickup_ms:
        return Stage.SCHEDULED

    deadline = booking_deadline_ms(booking)
    if math.isnan(deadline) or now_ms <= deadline:
        return Stage.ACTIVE

    return Stage.OVERDUE


def advance_stage(persisted_stage, booking, now_ms: float) -> Stage:
    """
    Server-side stage progression: never moves a stored stage backwards
    along PendingPayment -> Scheduled -> Active -> Overdue -> Completed.
    """
    resolved = resolve_stage(booking, now_ms)
    current = parse_stage(persisted_stage)
    if current is None or resolved == Stage.CANCELLED or current == Stage.CANCELLED:
        return resolved
    if STAGE_ORDER[resolved] < STAGE_ORDER[current]:
        return current
    return resolved
