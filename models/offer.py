from datetime import datetime
from models.db import db

class Offer(db.Model):
    """Pre-booking price quote. Accepting it creates a Booking."""
    __tablename__ = "offers"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    car_id = db.Column(db.Integer, nullable=False, index=True)

    from_date = db.Column(db.DateTime, nullable=False)
    to_date = db.Column(db.DateTime, nullable=False)
    price_per_day = db.Column(db.Float, nullable=False, default=0)
    original_price = db.Column(db.Float, nullable=False, default=0)

    message = db.Column(db.String(500), nullable=True)
    admin_message = db.Column(db.String(500), nullable=True)

    bargain_status = db.Column(db.String(20), nullable=False, default="NONE", index=True)
    bargain_user_attempts = db.Column(db.Integer, nullable=False, default=0)
    bargain_offered_price = db.Column(db.Float, nullable=True)
    bargain_counter_price = db.Column(db.Float, nullable=True)
    bargain_agreed_price = db.Column(db.Float, nullable=True)
    bargain_last_actor = db.Column(db.String(10), nullable=True)
    bargain_history_json = db.Column(db.Text, nullable=True)
    bargain_updated_at = db.Column(db.DateTime, nullable=True)

    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
