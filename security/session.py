import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app, has_request_context

from models import db
from models.session import Session


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _client_fingerprint():
    # CLI-issued sessions have no request to read from
    if not has_request_context():
        return None, None
    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    return ip, (request.headers.get("User-Agent") or "")[:255] or None


def create_session(user_id: int) -> str:
    """
    Store a new session for `user_id` and return the raw cookie token.
    The database only ever sees its hash.
    """
    raw_token = secrets.token_urlsafe(32)
    ip, user_agent = _client_fingerprint()
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)

    db.session.add(Session(
        user_id=user_id,
        token_hash=hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
        ip=ip,
        user_agent=user_agent,
    ))
    db.session.commit()
    return raw_token


def token_from_request():
    return request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "rental_session"))


def lookup_session(raw_token: str):
    """The live Session for `raw_token`, touched as seen now, or None."""
    if not raw_token:
        return None
    sess = Session.query.filter_by(token_hash=hash_token(raw_token)).first()
    if sess is None:
        return None

    now = datetime.utcnow()
    reason = sess.expiry_reason(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 20 * 60))
    if reason:
        current_app.logger.debug("Session %s rejected: %s", sess.id, reason)
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def get_session_from_request():
    return lookup_session(token_from_request())


def revoke_session(raw_token: str) -> bool:
    sess = Session.query.filter_by(token_hash=hash_token(raw_token)).first() if raw_token else None
    if sess is None:
        return False
    sess.revoked = True
    db.session.commit()
    return True
