"""
Late fee and remaining-amount arithmetic.

The Flask routes use these functions to persist authoritative figures and
the client views use them to tick live figures between syncs, so both sides
always compute with the same rules. Every public function coerces
non-finite input to zero instead of raising.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Optional

from rental.clock import ONE_HOUR_MS, ONE_MINUTE_MS, to_timestamp_ms
from rental.deadline import DEFAULT_GRACE_PERIOD_HOURS, grace_deadline_ms
from rental.snapshot import BookingSnapshot, finite_number
from rental.status import Stage, is_fully_paid_status, parse_stage

LATE_RATE_MULTIPLIER = 1.5
HOURS_PER_DAY = 24
HALF_DAY_HOURS = 12


def round_currency(value) -> float:
    return round(finite_number(value), 2)


def _non_negative(value) -> float:
    return max(finite_number(value), 0.0)


@dataclass(frozen=True)
class LiveSettlement:
    stage: Stage
    late_hours: float
    late_fee: float
    remaining_amount: float
    is_live: bool

    def for_display(self) -> dict:
        """Presentation rounding: hours to one decimal, money to cents."""
        return {
            "stage": self.stage.value,
            "late_hours": round(self.late_hours, 1),
            "late_fee": round_currency(self.late_fee),
            "remaining_amount": round_currency(self.remaining_amount),
            "is_live": self.is_live,
        }

    def as_dict(self) -> dict:
        data = asdict(self)
        data["stage"] = self.stage.value
        return data


def remaining_amount(final_amount, late_fee=0, damage_cost=0, advance_paid=0, refund_amount=0) -> float:
    """max(final + late fee + damage - advance - refund, 0)."""
    total = (
        _non_negative(final_amount)
        + _non_negative(late_fee)
        + _non_negative(damage_cost)
        - _non_negative(advance_paid)
        - _non_negative(refund_amount)
    )
    return max(total, 0.0)


def live_late_hours(now_ms, deadline_ms) -> float:
    now_ms = finite_number(now_ms, default=math.nan)
    if math.isnan(now_ms) or deadline_ms is None or not math.isfinite(deadline_ms):
        return 0.0
    return max(0.0, (now_ms - deadline_ms) / ONE_HOUR_MS)


def late_fee_for(hours, hourly_late_rate, discount_percent=0, cap: Optional[float] = None) -> float:
    discount = min(max(finite_number(discount_percent), 0.0), 100.0)
    fee = _non_negative(hours) * _non_negative(hourly_late_rate) * (1 - discount / 100.0)
    fee = max(fee, 0.0)
    if cap is not None and math.isfinite(cap) and cap >= 0:
        fee = min(fee, cap)
    return fee


def calculate_live_settlement(
    stage,
    now_ms,
    drop_date_time=None,
    grace_period_hours=DEFAULT_GRACE_PERIOD_HOURS,
    late_hours=0,
    late_fee=0,
    remaining_amount_stored=None,
    hourly_late_rate=0,
    final_amount=0,
    advance_paid=0,
    damage_cost=0,
    late_fee_discount_percent=0,
    refund_amount=0,
    payment_status=None,
    late_fee_cap: Optional[float] = None,
) -> LiveSettlement:
    """
    Late hours, late fee and remaining amount for a booking at `now_ms`.

    Only an Overdue booking is recomputed. For every other stage the server's
    stored figures are passed through, since those are already settled.
    """
    stage = parse_stage(stage) or Stage.SCHEDULED

    if stage != Stage.OVERDUE:
        stored_fee = _non_negative(late_fee)
        if remaining_amount_stored is None or not math.isfinite(finite_number(remaining_amount_stored, math.nan)):
            stored_remaining = remaining_amount(final_amount, stored_fee, damage_cost, advance_paid, refund_amount)
        else:
            stored_remaining = _non_negative(remaining_amount_stored)
        if is_fully_paid_status(payment_status):
            stored_remaining = 0.0
        return LiveSettlement(
            stage=stage,
            late_hours=_non_negative(late_hours),
            late_fee=stored_fee,
            remaining_amount=stored_remaining,
            is_live=False,
        )

    deadline = grace_deadline_ms(drop_date_time, grace_period_hours)
    hours = live_late_hours(now_ms, deadline)
    fee = late_fee_for(hours, hourly_late_rate, late_fee_discount_percent, late_fee_cap)
    remaining = remaining_amount(final_amount, fee, damage_cost, advance_paid, refund_amount)
    if is_fully_paid_status(payment_status):
        remaining = 0.0

    return LiveSettlement(
        stage=stage,
        late_hours=hours,
        late_fee=fee,
        remaining_amount=remaining,
        is_live=True,
    )


def late_fee_cap_for(final_amount, cap_multiple) -> Optional[float]:
    """Cap as a multiple of the agreed price. None (no cap) unless configured."""
    if cap_multiple is None:
        return None
    multiple = finite_number(cap_multiple, default=math.nan)
    if math.isnan(multiple) or multiple < 0:
        return None
    return _non_negative(final_amount) * multiple


def settlement_from_snapshot(
    booking: BookingSnapshot, stage, now_ms, late_fee_cap: Optional[float] = None
) -> LiveSettlement:
    return calculate_live_settlement(
        stage=stage,
        now_ms=now_ms,
        drop_date_time=booking.drop_ms,
        grace_period_hours=booking.grace_period_hours,
        late_hours=booking.late_hours,
        late_fee=booking.late_fee,
        remaining_amount_stored=booking.remaining_amount,
        hourly_late_rate=booking.hourly_late_rate,
        final_amount=booking.final_amount,
        advance_paid=booking.advance_paid,
        damage_cost=booking.damage_cost,
        late_fee_discount_percent=booking.late_fee_discount_percent,
        refund_amount=booking.refund_amount,
        payment_status=booking.payment_status,
        late_fee_cap=late_fee_cap,
    )


# ---------- pricing helpers ----------

def calculate_hourly_late_rate(price_per_day, multiplier: float = LATE_RATE_MULTIPLIER) -> float:
    per_day = finite_number(price_per_day)
    if per_day <= 0:
        return 0.0
    return round_currency(per_day / HOURS_PER_DAY * multiplier)


def advance_rate(amount) -> float:
    amount = finite_number(amount)
    if amount < 3000:
        return 0.3
    if amount <= 10000:
        return 0.25
    return 0.2


def calculate_advance_breakdown(amount) -> dict:
    final_amount = _non_negative(amount)
    rate = advance_rate(final_amount)
    advance_required = max(round(final_amount * rate), 0)
    return {
        "final_amount": final_amount,
        "advance_rate": rate,
        "advance_required": float(advance_required),
        "remaining_amount": max(final_amount - advance_required, 0.0),
    }


def rental_duration_hours(pickup, drop) -> float:
    """Every started minute is billable."""
    pickup_ms = to_timestamp_ms(pickup)
    drop_ms = to_timestamp_ms(drop)
    if math.isnan(pickup_ms) or math.isnan(drop_ms) or drop_ms <= pickup_ms:
        return 0.0
    total_minutes = math.ceil((drop_ms - pickup_ms) / ONE_MINUTE_MS)
    return total_minutes / 60.0


def billing_days(pickup, drop) -> float:
    """Full days, plus half a day for a remainder under 12 hours, else a full day."""
    total_hours = rental_duration_hours(pickup, drop)
    if total_hours <= 0:
        return 0.0
    full_days = math.floor(total_hours / HOURS_PER_DAY)
    remainder = round(total_hours - full_days * HOURS_PER_DAY, 4)
    if remainder <= 0:
        return float(full_days)
    if remainder < HALF_DAY_HOURS:
        return full_days + 0.5
    return float(full_days + 1)


def calculate_rental_amount(pickup, drop, price_per_day) -> dict:
    days = billing_days(pickup, drop)
    per_day = finite_number(price_per_day)
    if per_day <= 0 or days <= 0:
        return {"days": days, "amount": 0.0}
    return {"days": days, "amount": float(round(days * per_day))}
