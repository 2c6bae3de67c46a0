"""
Money-moving workflows on a booking: advance payment, final settlement and
refunds. Each function validates first, then mutates the row and adds a
Payment record. The caller commits.
"""
from flask import current_app

from models import db
from models.payment import Payment
from rental import status as st
from rental.errors import InvalidTransitionError, ValidationError
from rental.settlement import (
    calculate_advance_breakdown,
    calculate_live_settlement,
    late_fee_cap_for,
    remaining_amount,
    round_currency,
)
from rental.stage import is_payment_secured, resolve_stage
from rental.status import BargainStatus, Stage
from utils.bargain_store import load_bargain
from utils.serializers import booking_snapshot

OPEN_BARGAIN_STATUSES = (BargainStatus.USER_OFFERED, BargainStatus.ADMIN_COUNTERED, BargainStatus.LOCKED)


def normalize_payment_method(value) -> str:
    allowed = current_app.config.get("ALLOWED_PAYMENT_METHODS", ("CARD", "UPI", "NETBANKING", "CASH"))
    method = str(value or "CASH").strip().upper()
    if method not in allowed:
        raise ValidationError(f"paymentMethod must be {', '.join(allowed[:-1])}, or {allowed[-1]}")
    return method


def apply_final_amount(booking, amount) -> None:
    """Reprice a booking: advance split and balance follow the new final amount."""
    breakdown = calculate_advance_breakdown(amount)
    booking.final_amount = breakdown["final_amount"]
    if not booking.advance_paid:
        booking.advance_required = breakdown["advance_required"]
    booking.remaining_amount = round_currency(remaining_amount(
        booking.final_amount,
        booking.late_fee,
        booking.damage_cost if booking.damage_detected else 0,
        booking.advance_paid,
        booking.refund_amount,
    ))


def record_advance_payment(booking, payment_method, now) -> Payment:
    method = normalize_payment_method(payment_method)
    if not st.is_pending_payment_booking_status(booking.booking_status):
        raise InvalidTransitionError("Advance already paid or booking closed")
    if booking.payment_deadline is not None and now > booking.payment_deadline:
        raise InvalidTransitionError("Payment window has expired")
    if load_bargain(booking).status in OPEN_BARGAIN_STATUSES:
        raise InvalidTransitionError("Finish the price negotiation before paying")

    amount = round_currency(booking.advance_required)
    booking.advance_paid = amount
    booking.advance_paid_at = now
    booking.payment_status = st.ADVANCE_PAID
    booking.booking_status = st.CONFIRMED
    booking.rental_stage = Stage.SCHEDULED.value
    booking.remaining_amount = round_currency(remaining_amount(booking.final_amount, 0, 0, amount, 0))

    payment = Payment(booking_id=booking.id, kind="ADVANCE", method=method, amount=amount)
    db.session.add(payment)
    return payment


def finalize_settlement(booking, payment_method, now, now_ms, require_inspection=True) -> dict:
    """
    Close the rental: late fee frozen at `now_ms`, damage from the return
    inspection, balance collected in full.
    """
    method = normalize_payment_method(payment_method)
    snapshot = booking_snapshot(booking)
    stage = resolve_stage(snapshot, now_ms)

    if stage == Stage.COMPLETED:
        raise ValidationError("Booking is already completed")
    if not st.is_confirmed_booking_status(booking.booking_status) or not is_payment_secured(snapshot):
        raise ValidationError("Only confirmed bookings can be completed")
    if stage not in (Stage.ACTIVE, Stage.OVERDUE):
        raise InvalidTransitionError(f"A {stage.value} booking has not started and cannot be returned")
    if require_inspection and booking.inspected_at is None:
        raise ValidationError("Return inspection must be submitted before completion")

    cap = late_fee_cap_for(snapshot.final_amount, current_app.config.get("LATE_FEE_CAP_MULTIPLE"))
    settlement = calculate_live_settlement(
        stage=stage,
        now_ms=now_ms,
        drop_date_time=snapshot.drop_ms,
        grace_period_hours=snapshot.grace_period_hours,
        late_hours=snapshot.late_hours,
        late_fee=snapshot.late_fee,
        remaining_amount_stored=None,
        hourly_late_rate=snapshot.hourly_late_rate,
        final_amount=snapshot.final_amount,
        advance_paid=snapshot.advance_paid,
        damage_cost=snapshot.damage_cost,
        late_fee_discount_percent=snapshot.late_fee_discount_percent,
        refund_amount=snapshot.refund_amount,
        payment_status=snapshot.payment_status,
        late_fee_cap=cap,
    )
    collected = round_currency(settlement.remaining_amount)

    booking.late_hours = round(settlement.late_hours, 2)
    booking.late_fee = round_currency(settlement.late_fee)
    booking.full_payment_amount = collected
    booking.full_payment_method = method
    booking.full_payment_received_at = now
    booking.actual_return_time = now
    booking.trip_status = st.TRIP_COMPLETED
    booking.booking_status = st.COMPLETED
    booking.payment_status = st.FULLY_PAID
    booking.rental_stage = Stage.COMPLETED.value
    booking.remaining_amount = 0

    db.session.add(Payment(booking_id=booking.id, kind="SETTLEMENT", method=method, amount=collected))
    current_app.logger.info(
        "Booking %s settled: late %.2fh fee %.2f collected %.2f", booking.id, booking.late_hours,
        booking.late_fee, collected,
    )
    return {
        "collectedAmount": collected,
        "lateHours": booking.late_hours,
        "lateFee": booking.late_fee,
        "damageCost": snapshot.damage_cost,
        "paymentMethod": method,
    }


def refund_booking(booking, amount=None) -> float:
    """Refund up to the advance paid. Defaults to the whole advance."""
    paid = round_currency(booking.advance_paid)
    if amount is None:
        refund = paid
    else:
        try:
            refund = float(amount)
        except (TypeError, ValueError):
            raise ValidationError("refundAmount must be a number")
        if refund != refund or refund < 0 or refund > paid:
            raise ValidationError(f"refundAmount must be between 0 and {paid}")
    refund = round_currency(refund)

    booking.refund_amount = refund
    booking.remaining_amount = 0
    if refund > 0:
        booking.refund_status = st.REFUND_PROCESSED
        booking.payment_status = st.REFUNDED
        db.session.add(Payment(booking_id=booking.id, kind="REFUND", method="ORIGINAL", amount=refund,
                               status="REFUNDED"))
    return refund
