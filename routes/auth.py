from flask import Blueprint, jsonify, current_app, g

from security.session import revoke_session, token_from_request
from utils.audit import log_event
from utils.auth_context import login_required, current_actor

# Sessions are issued out of band (`flask issue-session EMAIL`); credential login lives elsewhere.
auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        full_name=g.user.full_name,
        roles=[r.name for r in g.user.roles],
        actor=current_actor(),
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(token_from_request())
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(current_app.config.get("AUTH_COOKIE_NAME", "rental_session"), path="/")
    return resp, 200
