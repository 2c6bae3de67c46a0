from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.offer import Offer
from rental.errors import InvalidTransitionError, ValidationError
from rental.negotiation import ADMIN, USER, Bargain
from rental.status import BargainStatus
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required, is_admin
from utils.bargain_store import load_bargain, store_bargain
from utils.booking_factory import build_booking, parse_datetime, quote, validate_rental_window
from utils.clock import now_ms, utcnow
from utils.payment_timeout import OPEN_STATUS_VALUES, expire_bargain
from utils.serializers import booking_to_dict, offer_to_dict

offers_bp = Blueprint("offers", __name__, url_prefix="/offers")

MAX_MESSAGE_LENGTH = 500


def _message(data):
    message = str(data.get("message") or "").strip()
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    return message or None


def _locked_offer(offer_id: int):
    return Offer.query.filter_by(id=offer_id).with_for_update().first()


def _close_with_booking(offer, negotiation):
    """An accepted offer turns into a PENDING_PAYMENT booking at the agreed price."""
    now = utcnow()
    if offer.from_date < now:
        # keep the expiry even though the request fails
        expire_bargain(offer, now)
        db.session.commit()
        current_app.logger.info("Offer %s expired: pickup %s already passed", offer.id, offer.from_date)
        raise InvalidTransitionError("Offer expired because the pickup date has passed")
    validate_rental_window(offer.from_date, offer.to_date, now)

    booking = build_booking(
        offer.user_id, offer.car_id, offer.from_date, offer.to_date, offer.price_per_day, now,
        final_amount=negotiation.agreed_price,
    )
    booking.offer_id = offer.id
    store_bargain(booking, negotiation, now)
    db.session.add(booking)
    db.session.flush()
    offer.booking_id = booking.id
    return booking


# ---------- renter ----------
@offers_bp.post("")
@login_required
def create_offer():
    data = request.get_json(silent=True) or {}
    car_id = data.get("carId")
    if not isinstance(car_id, int) or isinstance(car_id, bool) or car_id <= 0:
        return jsonify(error="Valid carId is required"), 400

    now = utcnow()
    from_date = parse_datetime(data.get("fromDate"), "fromDate")
    to_date = parse_datetime(data.get("toDate"), "toDate")
    validate_rental_window(from_date, to_date, now)
    original_price = quote(from_date, to_date, data.get("pricePerDay"))
    message = _message(data)

    duplicate = (
        Offer.query
        .filter_by(user_id=g.user.id, car_id=car_id, from_date=from_date, to_date=to_date)
        .filter(Offer.bargain_status.in_(OPEN_STATUS_VALUES))
        .first()
    )
    if duplicate:
        raise ValidationError("An active offer already exists for this booking period")

    negotiation = Bargain(max_attempts=current_app.config.get("MAX_BARGAIN_ATTEMPTS", 3))
    negotiation.create_offer(data.get("offeredPrice"))

    offer = Offer(
        user_id=g.user.id,
        car_id=car_id,
        from_date=from_date,
        to_date=to_date,
        price_per_day=float(data.get("pricePerDay")),
        original_price=original_price,
        message=message,
        created_at=now,
    )
    store_bargain(offer, negotiation, now)
    db.session.add(offer)
    db.session.commit()

    log_event("OFFER_CREATE", user_id=g.user.id, entity="offer", entity_id=offer.id,
              metadata={"offered_price": negotiation.offered_price, "original_price": original_price})
    return jsonify(offer_to_dict(offer)), 201


@offers_bp.get("/me")
@login_required
def my_offers():
    rows = Offer.query.filter_by(user_id=g.user.id).order_by(Offer.created_at.desc()).all()
    return jsonify([offer_to_dict(o) for o in rows]), 200


@offers_bp.put("/<int:offer_id>/respond")
@login_required
def respond_offer(offer_id: int):
    """Renter answers an admin counter: accept, reject or counter with a new price."""
    data = request.get_json(silent=True) or {}
    action = (data.get("action") or "").strip().lower()
    if action not in ("accept", "reject", "counter"):
        return jsonify(error="action must be accept, reject, or counter"), 400

    offer = _locked_offer(offer_id)
    if not offer or offer.user_id != g.user.id:
        return jsonify(error="Offer not found"), 404

    message = _message(data)
    negotiation = load_bargain(offer)
    if action == "counter" and negotiation.status == BargainStatus.NONE:
        raise ValidationError("You can counter only a countered offer")
    negotiation.apply(action, USER, data.get("offeredPrice"))

    booking = None
    if negotiation.status == BargainStatus.ACCEPTED:
        booking = _close_with_booking(offer, negotiation)
    if message:
        offer.message = message
    store_bargain(offer, negotiation, utcnow())
    db.session.commit()

    log_event(f"OFFER_USER_{action.upper()}", user_id=g.user.id, entity="offer", entity_id=offer.id,
              metadata={"status": negotiation.status.value})
    return jsonify(
        message="Offer updated",
        offer=offer_to_dict(offer),
        booking=booking_to_dict(booking, now_ms()) if booking else None,
    ), 200


# ---------- admin ----------
@offers_bp.get("")
@require_roles("ADMIN")
def list_offers():
    status = (request.args.get("status") or "").strip().upper()
    q = Offer.query
    if status:
        q = q.filter_by(bargain_status=status)
    rows = q.order_by(Offer.created_at.desc()).limit(200).all()
    return jsonify([offer_to_dict(o) for o in rows]), 200


@offers_bp.put("/<int:offer_id>/counter")
@require_roles("ADMIN")
def counter_offer(offer_id: int):
    data = request.get_json(silent=True) or {}
    offer = _locked_offer(offer_id)
    if not offer:
        return jsonify(error="Offer not found"), 404

    message = _message(data)
    negotiation = load_bargain(offer)
    negotiation.counter(data.get("counterPrice"))
    if message:
        offer.admin_message = message
    store_bargain(offer, negotiation, utcnow())
    db.session.commit()

    log_event("OFFER_ADMIN_COUNTER", user_id=g.user.id, entity="offer", entity_id=offer.id,
              metadata={"counter_price": negotiation.admin_counter_price, "status": negotiation.status.value})
    return jsonify(message="Counter offer sent", offer=offer_to_dict(offer)), 200


@offers_bp.put("/<int:offer_id>/accept")
@require_roles("ADMIN")
def accept_offer(offer_id: int):
    offer = _locked_offer(offer_id)
    if not offer:
        return jsonify(error="Offer not found"), 404

    negotiation = load_bargain(offer)
    negotiation.accept(ADMIN)
    booking = _close_with_booking(offer, negotiation)
    store_bargain(offer, negotiation, utcnow())
    db.session.commit()

    log_event("OFFER_ADMIN_ACCEPT", user_id=g.user.id, entity="offer", entity_id=offer.id,
              metadata={"agreed_price": negotiation.agreed_price, "booking_id": booking.id})
    return jsonify(
        message="Offer accepted",
        offer=offer_to_dict(offer),
        booking=booking_to_dict(booking, now_ms()),
    ), 200


@offers_bp.put("/<int:offer_id>/reject")
@require_roles("ADMIN")
def reject_offer(offer_id: int):
    offer = _locked_offer(offer_id)
    if not offer:
        return jsonify(error="Offer not found"), 404

    negotiation = load_bargain(offer)
    negotiation.reject()
    store_bargain(offer, negotiation, utcnow())
    db.session.commit()

    log_event("OFFER_ADMIN_REJECT", user_id=g.user.id, entity="offer", entity_id=offer.id)
    return jsonify(message="Offer rejected", offer=offer_to_dict(offer)), 200


@offers_bp.get("/<int:offer_id>")
@login_required
def get_offer(offer_id: int):
    offer = db.session.get(Offer, offer_id)
    if not offer or (offer.user_id != g.user.id and not is_admin()):
        return jsonify(error="Offer not found"), 404
    return jsonify(offer_to_dict(offer)), 200
