from datetime import datetime
from models.db import db

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    kind = db.Column(db.String(20), nullable=False)   # ADVANCE, SETTLEMENT, REFUND
    method = db.Column(db.String(20), nullable=False, default="CASH")  # CARD, UPI, NETBANKING, CASH
    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="INR")

    status = db.Column(db.String(20), nullable=False, default="PAID")  # PAID, REFUNDED

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
