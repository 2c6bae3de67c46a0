from datetime import timedelta

from flask import current_app

from models import db
from models.booking import Booking
from models.offer import Offer
from rental import status as st
from rental.status import TERMINAL_BARGAIN_STATUSES, Stage
from utils.audit import log_event
from utils.bargain_store import load_bargain, store_bargain

OPEN_STATUS_VALUES = tuple(
    s.value for s in st.BargainStatus if s not in TERMINAL_BARGAIN_STATUSES and s != st.BargainStatus.NONE
)


def payment_deadline_for(booking):
    if booking.payment_deadline is not None:
        return booking.payment_deadline
    minutes = current_app.config.get("PAYMENT_TIMEOUT_MINUTES", 15)
    return booking.created_at + timedelta(minutes=minutes)


def expire_bargain(row, now) -> bool:
    bargain = load_bargain(row)
    if not bargain.expire():
        return False
    store_bargain(row, bargain, now)
    return True


def sweep_payment_timeouts(now) -> int:
    """Cancel PENDING_PAYMENT bookings whose payment window closed without an advance."""
    rows = Booking.query.filter_by(booking_status=st.PENDING_PAYMENT).all()
    cancelled = 0
    for booking in rows:
        if booking.advance_paid > 0 or st.is_advance_paid_status(booking.payment_status):
            continue
        deadline = payment_deadline_for(booking)
        if now <= deadline:
            continue

        booking.payment_deadline = deadline
        booking.booking_status = st.CANCELLED
        booking.payment_status = st.UNPAID
        booking.rental_stage = Stage.CANCELLED.value
        booking.remaining_amount = 0
        booking.cancel_reason = "Payment timeout"
        booking.cancelled_at = now
        expire_bargain(booking, now)
        log_event("BOOKING_PAYMENT_TIMEOUT", entity="booking", entity_id=booking.id, commit=False)
        cancelled += 1

    db.session.commit()
    if cancelled:
        current_app.logger.info("Cancelled %s unpaid bookings", cancelled)
    return cancelled


def expire_stale_negotiations(now) -> dict:
    """
    Expire open negotiations idle for longer than OFFER_TIMEOUT_HOURS, and any
    still open on a booking that has already closed.
    """
    cutoff = now - timedelta(hours=current_app.config.get("OFFER_TIMEOUT_HOURS", 48))
    expired = {"offers": 0, "bookings": 0}

    for offer in Offer.query.filter(Offer.bargain_status.in_(OPEN_STATUS_VALUES)).all():
        last_move = offer.bargain_updated_at or offer.created_at
        if last_move < cutoff and expire_bargain(offer, now):
            log_event("OFFER_EXPIRED", entity="offer", entity_id=offer.id, commit=False)
            expired["offers"] += 1

    for booking in Booking.query.filter(Booking.bargain_status.in_(OPEN_STATUS_VALUES)).all():
        closed = (
            st.is_cancelled_booking_status(booking.booking_status)
            or st.is_completed_booking_status(booking.booking_status)
        )
        last_move = booking.bargain_updated_at or booking.created_at
        if (closed or last_move < cutoff) and expire_bargain(booking, now):
            log_event("BARGAIN_EXPIRED", entity="booking", entity_id=booking.id, commit=False)
            expired["bookings"] += 1

    db.session.commit()
    return expired
