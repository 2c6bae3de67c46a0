from datetime import datetime, timedelta
from models.db import db

class Session(db.Model):
    """Server-side login for one cookie. Wall-clock times, independent of the rental clock."""
    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # only the SHA-256 of the cookie token is stored
    token_hash = db.Column(db.String(128), unique=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_seen_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True)
    expires_at = db.Column(db.DateTime, nullable=False)

    revoked = db.Column(db.Boolean, default=False, nullable=False)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    def expiry_reason(self, now, idle_seconds):
        """None while usable, otherwise why the session is dead."""
        if self.revoked:
            return "revoked"
        if self.expires_at <= now:
            return "expired"
        last_seen = self.last_seen_at or self.created_at
        if last_seen + timedelta(seconds=idle_seconds) <= now:
            return "idle"
        return None
