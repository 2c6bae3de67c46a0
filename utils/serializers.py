from flask import current_app

from rental.clock import from_timestamp_ms
from rental.settlement import late_fee_cap_for, settlement_from_snapshot
from rental.snapshot import BookingSnapshot
from rental.stage import booking_deadline_ms, resolve_stage
from utils.bargain_store import load_bargain


def iso(dt):
    return dt.isoformat() + "Z" if dt else None


def bargain_to_dict(bargain) -> dict:
    return {
        "status": bargain.status.value,
        "userAttempts": bargain.user_attempts,
        "maxAttempts": bargain.max_attempts,
        "attemptsLeft": bargain.attempts_left,
        "offeredPrice": bargain.offered_price,
        "adminCounterPrice": bargain.admin_counter_price,
        "history": list(bargain.history),
        "agreedPrice": bargain.agreed_price,
        "lastActor": bargain.last_actor,
    }


def booking_to_dict(b, now_ms=None) -> dict:
    """
    Wire form of a booking. With `now_ms` it also carries the derived stage,
    the grace deadline and the live settlement figures at that instant.
    """
    data = {
        "id": b.id,
        "userId": b.user_id,
        "carId": b.car_id,
        "pickupDateTime": iso(b.pickup_date_time),
        "dropDateTime": iso(b.drop_date_time),
        "gracePeriodHours": b.grace_period_hours,
        "actualReturnTime": iso(b.actual_return_time),
        "paymentDeadline": iso(b.payment_deadline),
        "pricePerDay": b.price_per_day,
        "totalAmount": b.total_amount,
        "finalAmount": b.final_amount,
        "advanceRequired": b.advance_required,
        "advancePaid": b.advance_paid,
        "hourlyLateRate": b.hourly_late_rate,
        "lateHours": b.late_hours,
        "lateFee": b.late_fee,
        "lateFeeDiscountPercent": b.late_fee_discount_percent,
        "remainingAmount": b.remaining_amount,
        "fullPaymentAmount": b.full_payment_amount,
        "fullPaymentMethod": b.full_payment_method,
        "damageDetected": bool(b.damage_detected),
        "damageCost": b.damage_cost if b.damage_detected else 0,
        "inspectedAt": iso(b.inspected_at),
        "refundAmount": b.refund_amount,
        "refundStatus": b.refund_status,
        "rejectionReason": b.rejection_reason,
        "cancelReason": b.cancel_reason,
        "bookingStatus": b.booking_status,
        "tripStatus": b.trip_status,
        "paymentStatus": b.payment_status,
        "rentalStage": b.rental_stage,
        "offerId": b.offer_id,
        "createdAt": iso(b.created_at),
        "bargain": bargain_to_dict(load_bargain(b)),
    }
    if now_ms is None:
        return data

    snapshot = BookingSnapshot.from_dict(data)
    stage = resolve_stage(snapshot, now_ms)
    cap = late_fee_cap_for(snapshot.final_amount, current_app.config.get("LATE_FEE_CAP_MULTIPLE"))
    data["stage"] = stage.value
    data["deadline"] = iso(from_timestamp_ms(booking_deadline_ms(snapshot)))
    data["live"] = settlement_from_snapshot(snapshot, stage, now_ms, late_fee_cap=cap).for_display()
    return data


def booking_snapshot(b) -> BookingSnapshot:
    return BookingSnapshot.from_dict(booking_to_dict(b))


def offer_to_dict(o) -> dict:
    bargain = load_bargain(o)
    return {
        "id": o.id,
        "userId": o.user_id,
        "carId": o.car_id,
        "fromDate": iso(o.from_date),
        "toDate": iso(o.to_date),
        "pricePerDay": o.price_per_day,
        "originalPrice": o.original_price,
        "message": o.message,
        "adminMessage": o.admin_message,
        "status": bargain.status.value,
        "bargain": bargain_to_dict(bargain),
        "bookingId": o.booking_id,
        "createdAt": iso(o.created_at),
    }


def payment_to_dict(p) -> dict:
    return {
        "id": p.id,
        "bookingId": p.booking_id,
        "kind": p.kind,
        "method": p.method,
        "amount": p.amount,
        "currency": p.currency,
        "status": p.status,
        "createdAt": iso(p.created_at),
    }
