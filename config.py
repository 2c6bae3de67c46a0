import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _float_or_none(name):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return float(raw)


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as rental.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "rental.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "rental_session")

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False  # set True when using HTTPS

    # Rental rules
    DEFAULT_GRACE_PERIOD_HOURS = float(os.getenv("DEFAULT_GRACE_PERIOD_HOURS", "1"))
    MIN_RENTAL_HOURS = float(os.getenv("MIN_RENTAL_HOURS", "1"))
    LATE_RATE_MULTIPLIER = float(os.getenv("LATE_RATE_MULTIPLIER", "1.5"))
    # Late fee cap as a multiple of the final amount. Unset means no cap.
    LATE_FEE_CAP_MULTIPLE = _float_or_none("LATE_FEE_CAP_MULTIPLE")

    # Negotiation
    MAX_BARGAIN_ATTEMPTS = int(os.getenv("MAX_BARGAIN_ATTEMPTS", "3"))
    OFFER_TIMEOUT_HOURS = float(os.getenv("OFFER_TIMEOUT_HOURS", "48"))

    # Unpaid PENDING_PAYMENT bookings are cancelled after this many minutes
    PAYMENT_TIMEOUT_MINUTES = int(os.getenv("PAYMENT_TIMEOUT_MINUTES", "15"))
    ALLOWED_PAYMENT_METHODS = ("CARD", "UPI", "NETBANKING", "CASH")

    # Basic app settings
    DEBUG = False

    # Run the payment-timeout sweep and stage sync every minute in-process
    BACKGROUND_JOBS_ENABLED = os.getenv("BACKGROUND_JOBS_ENABLED", "false").lower() == "true"
    # Development convenience when no migration has been run
    CREATE_TABLES_ON_START = os.getenv("CREATE_TABLES_ON_START", "false").lower() == "true"
