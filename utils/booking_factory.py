import math
from datetime import timedelta

from flask import current_app

from models.booking import Booking
from rental import status as st
from rental.clock import ONE_HOUR_MS, from_timestamp_ms, to_timestamp_ms
from rental.errors import ValidationError
from rental.negotiation import validate_price
from rental.settlement import calculate_advance_breakdown, calculate_hourly_late_rate, calculate_rental_amount
from rental.status import Stage


def parse_datetime(value, field_name: str):
    """ISO string or epoch ms -> naive UTC datetime."""
    ms = to_timestamp_ms(value)
    if math.isnan(ms):
        raise ValidationError(f"{field_name} must be an ISO datetime")
    return from_timestamp_ms(ms)


def validate_rental_window(pickup, drop, now):
    if pickup < now:
        raise ValidationError("Pickup date cannot be in the past")
    if drop <= pickup:
        raise ValidationError("Return date must be after pickup date")
    min_hours = current_app.config.get("MIN_RENTAL_HOURS", 1)
    duration_hours = (to_timestamp_ms(drop) - to_timestamp_ms(pickup)) / ONE_HOUR_MS
    if duration_hours < min_hours:
        raise ValidationError(f"Rental must last at least {min_hours:g} hour(s)")


def quote(pickup, drop, price_per_day) -> float:
    per_day = validate_price(price_per_day, "pricePerDay")
    amount = calculate_rental_amount(pickup, drop, per_day)["amount"]
    if amount <= 0:
        raise ValidationError("Invalid booking duration")
    return amount


def build_booking(user_id, car_id, pickup, drop, price_per_day, now, final_amount=None) -> Booking:
    """
    New PENDING_PAYMENT booking. `final_amount` overrides the quoted total
    when the price was negotiated beforehand. The caller adds and commits.
    """
    total = quote(pickup, drop, price_per_day)
    breakdown = calculate_advance_breakdown(final_amount if final_amount is not None else total)
    cfg = current_app.config

    return Booking(
        user_id=user_id,
        car_id=car_id,
        pickup_date_time=pickup,
        drop_date_time=drop,
        grace_period_hours=cfg.get("DEFAULT_GRACE_PERIOD_HOURS", 1.0),
        payment_deadline=now + timedelta(minutes=cfg.get("PAYMENT_TIMEOUT_MINUTES", 15)),
        price_per_day=float(price_per_day),
        total_amount=total,
        final_amount=breakdown["final_amount"],
        advance_required=breakdown["advance_required"],
        advance_paid=0,
        hourly_late_rate=calculate_hourly_late_rate(price_per_day, cfg.get("LATE_RATE_MULTIPLIER", 1.5)),
        remaining_amount=breakdown["final_amount"],
        booking_status=st.PENDING_PAYMENT,
        trip_status=st.TRIP_UPCOMING,
        payment_status=st.UNPAID,
        rental_stage=Stage.PENDING_PAYMENT.value,
        created_at=now,
    )
