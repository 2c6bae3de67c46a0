from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from rental.clock import to_timestamp_ms
from rental.deadline import DEFAULT_GRACE_PERIOD_HOURS, normalize_grace_hours
from rental.negotiation import Bargain


def finite_number(value, default: float = 0.0) -> float:
    """Coerce to a finite float; anything else becomes `default`."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def optional_number(value) -> Optional[float]:
    if value is None:
        return None
    number = finite_number(value, default=math.nan)
    return None if math.isnan(number) else number


def _optional_ms(value) -> Optional[float]:
    ms = to_timestamp_ms(value)
    return None if math.isnan(ms) else ms


def _pick(data: Mapping[str, Any], *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class BookingSnapshot:
    """
    Read replica of one server booking.

    Timestamps are epoch milliseconds or None. Money fields are finite floats,
    optional ones stay None when the server never set them.
    """

    id: Any
    pickup_ms: Optional[float] = None
    drop_ms: Optional[float] = None
    grace_period_hours: float = DEFAULT_GRACE_PERIOD_HOURS
    actual_return_ms: Optional[float] = None

    final_amount: float = 0.0
    advance_paid: float = 0.0
    full_payment_amount: Optional[float] = None
    damage_cost: float = 0.0
    hourly_late_rate: float = 0.0
    late_hours: float = 0.0
    late_fee: float = 0.0
    remaining_amount: Optional[float] = None
    late_fee_discount_percent: float = 0.0
    refund_amount: float = 0.0
    refund_status: Optional[str] = None

    booking_status: str = ""
    trip_status: str = ""
    payment_status: str = ""
    rental_stage: str = ""

    bargain: Bargain = field(default_factory=Bargain)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BookingSnapshot":
        """Build a snapshot from server JSON. Accepts snake_case or camelCase keys."""
        data = data or {}
        final_amount = finite_number(_pick(data, "final_amount", "finalAmount"))
        if final_amount <= 0:
            final_amount = finite_number(_pick(data, "total_amount", "totalAmount"))

        raw_grace = _pick(data, "grace_period_hours", "gracePeriodHours")
        grace = DEFAULT_GRACE_PERIOD_HOURS if raw_grace is None else normalize_grace_hours(raw_grace)

        return cls(
            id=_pick(data, "id", "_id"),
            pickup_ms=_optional_ms(_pick(data, "pickup_date_time", "pickupDateTime", "fromDate")),
            drop_ms=_optional_ms(_pick(data, "drop_date_time", "dropDateTime", "toDate")),
            grace_period_hours=grace,
            actual_return_ms=_optional_ms(_pick(data, "actual_return_time", "actualReturnTime")),
            final_amount=max(final_amount, 0.0),
            advance_paid=max(finite_number(_pick(data, "advance_paid", "advancePaid")), 0.0),
            full_payment_amount=optional_number(_pick(data, "full_payment_amount", "fullPaymentAmount")),
            damage_cost=max(finite_number(_pick(data, "damage_cost", "damageCost")), 0.0),
            hourly_late_rate=max(finite_number(_pick(data, "hourly_late_rate", "hourlyLateRate")), 0.0),
            late_hours=max(finite_number(_pick(data, "late_hours", "lateHours")), 0.0),
            late_fee=max(finite_number(_pick(data, "late_fee", "lateFee")), 0.0),
            remaining_amount=optional_number(_pick(data, "remaining_amount", "remainingAmount")),
            late_fee_discount_percent=finite_number(
                _pick(data, "late_fee_discount_percent", "lateFeeDiscountPercent")
            ),
            refund_amount=max(finite_number(_pick(data, "refund_amount", "refundAmount")), 0.0),
            refund_status=_pick(data, "refund_status", "refundStatus"),
            booking_status=str(_pick(data, "booking_status", "bookingStatus", default="")),
            trip_status=str(_pick(data, "trip_status", "tripStatus", default="")),
            payment_status=str(_pick(data, "payment_status", "paymentStatus", default="")),
            rental_stage=str(_pick(data, "rental_stage", "rentalStage", default="")),
            bargain=Bargain.from_dict(_pick(data, "bargain", default={})),
        )

    def with_changes(self, **changes) -> "BookingSnapshot":
        return replace(self, **changes)
