from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking
from rental import status as st
from rental.errors import InvalidTransitionError
from rental.stage import resolve_stage
from rental.status import BargainStatus, Stage
from utils.auth_context import login_required, is_admin, current_actor
from utils.audit import log_event
from utils.bargain_store import load_bargain, store_bargain
from utils.booking_factory import build_booking, parse_datetime, validate_rental_window
from utils.booking_settlement import apply_final_amount, finalize_settlement, record_advance_payment
from utils.clock import now_ms, utcnow
from utils.payment_timeout import expire_bargain
from utils.serializers import bargain_to_dict, booking_snapshot, booking_to_dict
from utils.stage_sync import sync_booking_stage

booking_bp = Blueprint("bookings", __name__)

NEGOTIABLE_BOOKING_STATUSES = (st.PENDING_PAYMENT, st.PENDING, st.CONFIRMED)
# the price is settled once the trip starts
NEGOTIABLE_STAGES = (Stage.PENDING_PAYMENT, Stage.SCHEDULED)


def _visible_booking(booking_id: int, for_update=False):
    q = Booking.query.filter_by(id=booking_id)
    if for_update:
        q = q.with_for_update()
    booking = q.first()
    if not booking:
        return None
    if booking.user_id != g.user.id and not is_admin():
        return None
    return booking


def _own_booking(booking_id: int, for_update=False):
    booking = _visible_booking(booking_id, for_update)
    if booking is None or booking.user_id != g.user.id:
        return None
    return booking


# ---------- read ----------
@booking_bp.get("/bookings")
@login_required
def list_bookings():
    status = request.args.get("status")
    q = Booking.query
    if not is_admin():
        q = q.filter_by(user_id=g.user.id)
    if status:
        q = q.filter_by(booking_status=status)

    rows = q.order_by(Booking.created_at.desc()).limit(200).all()
    now = now_ms()
    if any([sync_booking_stage(b, now) for b in rows]):
        db.session.commit()
    return jsonify([booking_to_dict(b, now) for b in rows]), 200


@booking_bp.get("/bookings/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = _visible_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    now = now_ms()
    if sync_booking_stage(booking, now):
        db.session.commit()
    return jsonify(booking_to_dict(booking, now)), 200


# ---------- renter: create / pay / cancel ----------
@booking_bp.post("/bookings")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    car_id = data.get("carId")
    if not isinstance(car_id, int) or isinstance(car_id, bool) or car_id <= 0:
        return jsonify(error="Valid carId is required"), 400

    now = utcnow()
    pickup = parse_datetime(data.get("pickupDateTime") or data.get("fromDate"), "pickupDateTime")
    drop = parse_datetime(data.get("dropDateTime") or data.get("toDate"), "dropDateTime")
    validate_rental_window(pickup, drop, now)

    booking = build_booking(g.user.id, car_id, pickup, drop, data.get("pricePerDay"), now)
    db.session.add(booking)
    db.session.commit()

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"car_id": car_id, "final_amount": booking.final_amount})
    return jsonify(booking_to_dict(booking, now_ms())), 201


@booking_bp.post("/bookings/<int:booking_id>/advance")
@login_required
def pay_advance(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = _own_booking(booking_id, for_update=True)
    if not booking:
        return jsonify(error="Booking not found"), 404

    payment = record_advance_payment(booking, data.get("paymentMethod"), utcnow())
    db.session.commit()

    log_event("BOOKING_ADVANCE_PAID", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"amount": payment.amount, "method": payment.method})
    return jsonify(message="Advance received", booking=booking_to_dict(booking, now_ms())), 200


@booking_bp.post("/bookings/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip()[:120] or None

    booking = _own_booking(booking_id, for_update=True)
    if not booking:
        return jsonify(error="Booking not found"), 404

    stage = resolve_stage(booking_snapshot(booking), now_ms())
    if stage not in (Stage.PENDING_PAYMENT, Stage.SCHEDULED):
        raise InvalidTransitionError(f"A {stage.value} booking cannot be cancelled")

    now = utcnow()
    # user cancellation keeps the advance (no refund)
    booking.booking_status = st.CANCELLED_BY_USER
    booking.rental_stage = Stage.CANCELLED.value
    booking.remaining_amount = 0
    booking.cancelled_at = now
    booking.cancel_reason = reason
    expire_bargain(booking, now)
    db.session.commit()

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata={"reason": reason})
    return jsonify(message="Booking cancelled. Advance amount is not refundable."), 200


# ---------- negotiation on a booking ----------
@booking_bp.put("/bookings/<int:booking_id>/bargain")
@login_required
def bargain(booking_id: int):
    data = request.get_json(silent=True) or {}
    action = (data.get("action") or "").strip().lower()
    price = data.get("counterPrice", data.get("offeredPrice"))

    booking = _visible_booking(booking_id, for_update=True)
    if not booking:
        return jsonify(error="Booking not found"), 404

    stage = resolve_stage(booking_snapshot(booking), now_ms())
    if stage not in NEGOTIABLE_STAGES or booking.booking_status not in NEGOTIABLE_BOOKING_STATUSES:
        raise InvalidTransitionError(f"Bargaining is not allowed for a {stage.value} booking")

    actor = current_actor()
    negotiation = load_bargain(booking)
    negotiation.apply(action, actor, price)

    if negotiation.status == BargainStatus.ACCEPTED:
        apply_final_amount(booking, negotiation.agreed_price)
    store_bargain(booking, negotiation, utcnow())
    db.session.commit()

    current_app.logger.info("Booking %s bargain %s by %s -> %s", booking.id, action, actor, negotiation.status.value)
    log_event(f"BARGAIN_{action.upper()}", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"actor": actor, "price": price, "status": negotiation.status.value})
    return jsonify(
        message="Bargain updated",
        bargain=bargain_to_dict(negotiation),
        booking=booking_to_dict(booking, now_ms()),
    ), 200


# ---------- renter: return the car and settle ----------
@booking_bp.put("/bookings/<int:booking_id>/return")
@login_required
def return_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = _own_booking(booking_id, for_update=True)
    if not booking:
        return jsonify(error="Booking not found"), 404

    settlement = finalize_settlement(booking, data.get("paymentMethod"), utcnow(), now_ms(), require_inspection=False)
    db.session.commit()

    log_event("BOOKING_RETURNED", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata=settlement)
    return jsonify(
        message="Car returned and booking settled",
        settlement=settlement,
        booking=booking_to_dict(booking, now_ms()),
    ), 200
