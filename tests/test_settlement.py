import math

import pytest

from rental.clock import ONE_HOUR_MS, to_timestamp_ms
from rental.settlement import (
    billing_days,
    calculate_advance_breakdown,
    calculate_hourly_late_rate,
    calculate_live_settlement,
    calculate_rental_amount,
    late_fee_cap_for,
    remaining_amount,
    round_currency,
    settlement_from_snapshot,
)
from rental.snapshot import BookingSnapshot
from rental.status import Stage

DROP = "2024-01-01T18:00:00Z"
DROP_MS = to_timestamp_ms(DROP)


def overdue(now_ms, **kwargs):
    params = dict(
        stage=Stage.OVERDUE,
        now_ms=now_ms,
        drop_date_time=DROP,
        grace_period_hours=1,
        hourly_late_rate=100,
        final_amount=1000,
        advance_paid=300,
    )
    params.update(kwargs)
    return calculate_live_settlement(**params)


def test_half_hour_past_grace():
    live = overdue(to_timestamp_ms("2024-01-01T19:30:00Z"))
    assert live.late_hours == pytest.approx(0.5)
    assert live.late_fee == pytest.approx(50)
    assert live.remaining_amount == pytest.approx(750)
    assert live.is_live


def test_remaining_formula():
    assert remaining_amount(1000, 50, 0, 300) == 750
    assert remaining_amount(1000, 50, 200, 300, 100) == 850


def test_remaining_is_never_negative():
    assert remaining_amount(100, 0, 0, 500) == 0
    live = overdue(DROP_MS + 2 * ONE_HOUR_MS, advance_paid=5000)
    assert live.remaining_amount == 0


def test_fee_grows_linearly_without_a_cap():
    now = DROP_MS + 100 * ONE_HOUR_MS
    live = overdue(now, grace_period_hours=1)
    assert live.late_hours == pytest.approx(99)
    assert live.late_fee == pytest.approx(9900)
    assert live.remaining_amount == pytest.approx(1000 + 9900 - 300)


def test_cap_applies_only_when_configured():
    now = DROP_MS + 100 * ONE_HOUR_MS
    assert late_fee_cap_for(1000, None) is None
    cap = late_fee_cap_for(1000, 2)
    assert cap == 2000
    assert overdue(now, late_fee_cap=cap).late_fee == 2000


def test_discount_reduces_fee():
    live = overdue(DROP_MS + 3 * ONE_HOUR_MS, late_fee_discount_percent=25)
    assert live.late_fee == pytest.approx(2 * 100 * 0.75)


def test_discount_outside_range_is_clamped():
    now = DROP_MS + 3 * ONE_HOUR_MS
    assert overdue(now, late_fee_discount_percent=150).late_fee == 0
    assert overdue(now, late_fee_discount_percent=-10).late_fee == pytest.approx(200)


def test_fee_is_continuous_at_the_deadline():
    deadline = DROP_MS + ONE_HOUR_MS
    assert overdue(deadline).late_fee == 0
    assert overdue(deadline + 36_000).late_fee == pytest.approx(1.0)


def test_non_overdue_stages_pass_stored_figures_through():
    live = calculate_live_settlement(
        stage=Stage.ACTIVE,
        now_ms=DROP_MS + 50 * ONE_HOUR_MS,
        drop_date_time=DROP,
        late_hours=1.5,
        late_fee=150,
        remaining_amount_stored=420,
        hourly_late_rate=100,
        final_amount=1000,
        advance_paid=300,
    )
    assert not live.is_live
    assert (live.late_hours, live.late_fee, live.remaining_amount) == (1.5, 150, 420)


def test_missing_stored_remaining_is_derived():
    live = calculate_live_settlement(stage="Scheduled", now_ms=0, final_amount=1000, advance_paid=300)
    assert live.remaining_amount == 700


def test_fully_paid_leaves_nothing_to_collect():
    live = overdue(DROP_MS + 5 * ONE_HOUR_MS, payment_status="FULLY_PAID")
    assert live.late_fee > 0
    assert live.remaining_amount == 0


def test_non_finite_inputs_become_zero():
    live = overdue(
        DROP_MS + 2 * ONE_HOUR_MS,
        hourly_late_rate=float("nan"),
        final_amount=float("inf"),
        advance_paid=None,
    )
    assert live.late_fee == 0
    assert live.remaining_amount == 0
    assert not math.isnan(live.late_hours)


def test_unknown_drop_means_no_late_hours():
    live = overdue(DROP_MS + 5 * ONE_HOUR_MS, drop_date_time=None)
    assert live.late_hours == 0
    assert live.late_fee == 0


def test_display_rounding():
    live = overdue(DROP_MS + ONE_HOUR_MS + 1234567)
    shown = live.for_display()
    assert shown["late_hours"] == round(live.late_hours, 1)
    assert shown["late_fee"] == round(live.late_fee, 2)
    assert shown["stage"] == "Overdue"


def test_settlement_from_snapshot_uses_snapshot_fields():
    snapshot = BookingSnapshot.from_dict({
        "id": 3,
        "dropDateTime": DROP,
        "gracePeriodHours": 1,
        "hourlyLateRate": 100,
        "finalAmount": 1000,
        "advancePaid": 300,
        "damageCost": 200,
    })
    live = settlement_from_snapshot(snapshot, Stage.OVERDUE, DROP_MS + 2 * ONE_HOUR_MS)
    assert live.late_fee == pytest.approx(100)
    assert live.remaining_amount == pytest.approx(1000)


def test_round_currency():
    assert round_currency(10.005) in (10.0, 10.01)
    assert round_currency(None) == 0
    assert round_currency(float("nan")) == 0


def test_hourly_late_rate():
    assert calculate_hourly_late_rate(2400) == 150
    assert calculate_hourly_late_rate(2400, multiplier=1) == 100
    assert calculate_hourly_late_rate(0) == 0


def test_advance_breakdown_tiers():
    assert calculate_advance_breakdown(2000)["advance_required"] == 600
    assert calculate_advance_breakdown(8000)["advance_required"] == 2000
    assert calculate_advance_breakdown(20000)["advance_required"] == 4000
    assert calculate_advance_breakdown(2000)["remaining_amount"] == 1400


def test_billing_days_round_partial_days():
    assert billing_days("2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z") == 1
    assert billing_days("2024-01-01T00:00:00Z", "2024-01-02T05:00:00Z") == 1.5
    assert billing_days("2024-01-01T00:00:00Z", "2024-01-02T13:00:00Z") == 2
    assert billing_days("2024-01-02T00:00:00Z", "2024-01-01T00:00:00Z") == 0


def test_rental_amount():
    quote = calculate_rental_amount("2024-01-01T00:00:00Z", "2024-01-02T05:00:00Z", 1000)
    assert quote == {"days": 1.5, "amount": 1500.0}
    assert calculate_rental_amount("2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z", 0)["amount"] == 0
