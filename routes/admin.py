import math

from flask import Blueprint, jsonify, g, request

from models import db
from models.audit_log import AuditLog
from models.booking import Booking
from models.payment import Payment
from rental import status as st
from rental.errors import InvalidTransitionError, ValidationError
from rental.settlement import remaining_amount, round_currency
from rental.stage import resolve_stage
from rental.status import Stage
from security.rbac import require_roles
from utils.audit import log_event
from utils.booking_settlement import finalize_settlement, refund_booking
from utils.clock import now_ms, utcnow
from utils.payment_timeout import expire_bargain
from utils.serializers import booking_snapshot, booking_to_dict, iso, payment_to_dict
from utils.stage_sync import sync_booking_stage

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _locked_booking(booking_id: int):
    return Booking.query.filter_by(id=booking_id).with_for_update().first()


@admin_bp.put("/bookings/complete/<int:booking_id>")
@require_roles("ADMIN")
def complete_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = _locked_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    settlement = finalize_settlement(booking, data.get("paymentMethod"), utcnow(), now_ms())
    db.session.commit()

    log_event("BOOKING_SETTLED", user_id=g.user.id, entity="booking", entity_id=booking.id, metadata=settlement)
    return jsonify(
        message="Car returned, full payment received, and booking completed",
        settlement=settlement,
        booking=booking_to_dict(booking, now_ms()),
    ), 200


@admin_bp.put("/bookings/inspection/return/<int:booking_id>")
@require_roles("ADMIN")
def return_inspection(booking_id: int):
    data = request.get_json(silent=True) or {}
    damage_detected = bool(data.get("damageDetected"))
    damage_cost = 0.0
    if damage_detected:
        try:
            damage_cost = float(data.get("damageCost"))
        except (TypeError, ValueError):
            raise ValidationError("damageCost must be a non-negative number")
        if not math.isfinite(damage_cost) or damage_cost < 0:
            raise ValidationError("damageCost must be a non-negative number")

    booking = _locked_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    now = now_ms()
    stage = resolve_stage(booking_snapshot(booking), now)
    if stage not in (Stage.ACTIVE, Stage.OVERDUE):
        raise InvalidTransitionError(f"Return inspection is not possible for a {stage.value} booking")

    sync_booking_stage(booking, now)
    booking.damage_detected = damage_detected
    booking.damage_cost = round_currency(damage_cost)
    booking.inspected_at = utcnow()
    booking.remaining_amount = round_currency(remaining_amount(
        booking.final_amount, booking.late_fee, booking.damage_cost, booking.advance_paid, booking.refund_amount,
    ))
    db.session.commit()

    log_event("BOOKING_RETURN_INSPECTION", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"damage_detected": damage_detected, "damage_cost": booking.damage_cost})
    return jsonify(message="Return inspection recorded", booking=booking_to_dict(booking, now)), 200


@admin_bp.put("/bookings/<int:booking_id>/reject")
@require_roles("ADMIN")
def reject_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip()[:255]
    if not reason:
        return jsonify(error="reason is required"), 400

    booking = _locked_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    stage = resolve_stage(booking_snapshot(booking), now_ms())
    if stage not in (Stage.PENDING_PAYMENT, Stage.SCHEDULED):
        raise InvalidTransitionError("Only bookings that have not started can be rejected")

    now = utcnow()
    # admin rejection refunds the advance (all of it unless an amount is given)
    refund = refund_booking(booking, data.get("refundAmount"))
    booking.booking_status = st.REJECTED
    booking.rental_stage = Stage.CANCELLED.value
    booking.rejection_reason = reason
    booking.cancelled_at = now
    expire_bargain(booking, now)
    db.session.commit()

    log_event("ADMIN_BOOKING_REJECT", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"reason": reason, "refund": refund})
    return jsonify(message="Booking rejected", refundAmount=refund, booking=booking_to_dict(booking, now_ms())), 200


@admin_bp.get("/bookings/<int:booking_id>/payments")
@require_roles("ADMIN")
def booking_payments(booking_id: int):
    if not db.session.get(Booking, booking_id):
        return jsonify(error="Booking not found"), 404
    rows = Payment.query.filter_by(booking_id=booking_id).order_by(Payment.created_at.asc(), Payment.id.asc()).all()
    return jsonify([payment_to_dict(p) for p in rows]), 200


@admin_bp.get("/audit-logs")
@require_roles("SUPER_ADMIN")
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = request.args.get("action")
    if action:
        q = q.filter_by(action=action)
    entity_id = request.args.get("entity_id")
    if entity_id:
        q = q.filter_by(entity_id=entity_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": r.id,
            "created_at": iso(r.timestamp),
            "user_id": r.user_id,
            "action": r.action,
            "entity": r.entity,
            "entity_id": r.entity_id,
            "ip": r.ip,
            "metadata": r.metadata_json,
        }
        for r in rows
    ]), 200
