from datetime import datetime
from models.db import db

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # reference into the external car catalogue
    car_id = db.Column(db.Integer, nullable=False, index=True)

    # rental window (naive UTC)
    pickup_date_time = db.Column(db.DateTime, nullable=False)
    drop_date_time = db.Column(db.DateTime, nullable=False)
    grace_period_hours = db.Column(db.Float, nullable=False, default=1.0)
    actual_return_time = db.Column(db.DateTime, nullable=True)
    payment_deadline = db.Column(db.DateTime, nullable=True)

    # pricing
    price_per_day = db.Column(db.Float, nullable=False, default=0)
    total_amount = db.Column(db.Float, nullable=False, default=0)   # quoted
    final_amount = db.Column(db.Float, nullable=False, default=0)   # agreed
    advance_required = db.Column(db.Float, nullable=False, default=0)
    advance_paid = db.Column(db.Float, nullable=False, default=0)
    advance_paid_at = db.Column(db.DateTime, nullable=True)

    # settlement
    hourly_late_rate = db.Column(db.Float, nullable=False, default=0)
    late_hours = db.Column(db.Float, nullable=False, default=0)
    late_fee = db.Column(db.Float, nullable=False, default=0)
    late_fee_discount_percent = db.Column(db.Float, nullable=False, default=0)
    remaining_amount = db.Column(db.Float, nullable=True)
    full_payment_amount = db.Column(db.Float, nullable=True)
    full_payment_method = db.Column(db.String(20), nullable=True)
    full_payment_received_at = db.Column(db.DateTime, nullable=True)

    # return inspection
    damage_detected = db.Column(db.Boolean, nullable=False, default=False)
    damage_cost = db.Column(db.Float, nullable=False, default=0)
    inspected_at = db.Column(db.DateTime, nullable=True)

    # refunds / rejection
    refund_amount = db.Column(db.Float, nullable=False, default=0)
    refund_status = db.Column(db.String(20), nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancel_reason = db.Column(db.String(120), nullable=True)

    # status values: PENDING_PAYMENT, PENDING, CONFIRMED, COMPLETED, REJECTED, CANCELLED_BY_USER, CANCELLED
    booking_status = db.Column(db.String(30), nullable=False, default="PENDING_PAYMENT", index=True)
    trip_status = db.Column(db.String(20), nullable=False, default="upcoming")
    payment_status = db.Column(db.String(20), nullable=False, default="UNPAID")
    # last stage written by the stage sync; advisory only
    rental_stage = db.Column(db.String(20), nullable=True)

    # embedded negotiation
    bargain_status = db.Column(db.String(20), nullable=False, default="NONE")
    bargain_user_attempts = db.Column(db.Integer, nullable=False, default=0)
    bargain_offered_price = db.Column(db.Float, nullable=True)
    bargain_counter_price = db.Column(db.Float, nullable=True)
    bargain_agreed_price = db.Column(db.Float, nullable=True)
    bargain_last_actor = db.Column(db.String(10), nullable=True)
    bargain_history_json = db.Column(db.Text, nullable=True)
    bargain_updated_at = db.Column(db.DateTime, nullable=True)

    offer_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
