import json

from flask import current_app

from rental.negotiation import Bargain


def load_bargain(row) -> Bargain:
    """Rebuild the negotiation record from a Booking or Offer row's bargain_* columns."""
    history = json.loads(row.bargain_history_json) if row.bargain_history_json else []
    return Bargain(
        status=row.bargain_status,
        user_attempts=row.bargain_user_attempts,
        offered_price=row.bargain_offered_price,
        admin_counter_price=row.bargain_counter_price,
        history=history,
        agreed_price=row.bargain_agreed_price,
        last_actor=row.bargain_last_actor,
        max_attempts=current_app.config.get("MAX_BARGAIN_ATTEMPTS", 3),
    )


def store_bargain(row, bargain: Bargain, now=None) -> None:
    row.bargain_status = bargain.status.value
    row.bargain_user_attempts = bargain.user_attempts
    row.bargain_offered_price = bargain.offered_price
    row.bargain_counter_price = bargain.admin_counter_price
    row.bargain_agreed_price = bargain.agreed_price
    row.bargain_last_actor = bargain.last_actor
    row.bargain_history_json = json.dumps(bargain.history)
    if now is not None:
        row.bargain_updated_at = now
