from flask import current_app

from models import db
from models.booking import Booking
from rental import status as st
from rental.clock import from_timestamp_ms
from rental.settlement import late_fee_cap_for, round_currency, settlement_from_snapshot
from rental.stage import advance_stage
from rental.status import Stage
from utils.payment_timeout import OPEN_STATUS_VALUES, expire_bargain
from utils.serializers import booking_snapshot

# bookings the sync never touches again
FINAL_BOOKING_STATUSES = (st.COMPLETED, st.REJECTED, st.CANCELLED_BY_USER, st.CANCELLED)


def sync_booking_stage(booking, now_ms) -> bool:
    """
    Move the stored stage forward to what the timestamps say now and, while
    Overdue, persist the late figures at this instant. Returns True if the
    row changed. The caller commits.
    """
    snapshot = booking_snapshot(booking)
    stage = advance_stage(booking.rental_stage, snapshot, now_ms)
    changed = False

    if booking.rental_stage != stage.value:
        current_app.logger.info("Booking %s stage %s -> %s", booking.id, booking.rental_stage, stage.value)
        booking.rental_stage = stage.value
        changed = True

    if stage in (Stage.ACTIVE, Stage.OVERDUE) and booking.trip_status == st.TRIP_UPCOMING:
        booking.trip_status = st.TRIP_ACTIVE
        changed = True

    # open negotiations end at pickup
    if (
        stage in (Stage.ACTIVE, Stage.OVERDUE)
        and booking.bargain_status in OPEN_STATUS_VALUES
        and expire_bargain(booking, from_timestamp_ms(now_ms))
    ):
        current_app.logger.info("Booking %s open bargain expired at pickup", booking.id)
        changed = True

    if stage == Stage.OVERDUE:
        cap = late_fee_cap_for(snapshot.final_amount, current_app.config.get("LATE_FEE_CAP_MULTIPLE"))
        live = settlement_from_snapshot(snapshot, stage, now_ms, late_fee_cap=cap)
        late_hours = round(live.late_hours, 2)
        late_fee = round_currency(live.late_fee)
        remaining = round_currency(live.remaining_amount)
        if (booking.late_hours, booking.late_fee, booking.remaining_amount) != (late_hours, late_fee, remaining):
            booking.late_hours = late_hours
            booking.late_fee = late_fee
            booking.remaining_amount = remaining
            changed = True

    return changed


def sync_all_stages(now_ms) -> int:
    rows = (
        Booking.query
        .filter(Booking.booking_status.notin_(FINAL_BOOKING_STATUSES))
        .all()
    )
    changed = 0
    for booking in rows:
        if sync_booking_stage(booking, now_ms):
            changed += 1
    db.session.commit()
    return changed
