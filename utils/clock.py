from flask import current_app

from rental.clock import default_clock, from_timestamp_ms


def server_clock():
    """The clock the app was created with (tests inject a FrozenClock)."""
    return current_app.config.get("RENTAL_CLOCK") or default_clock


def now_ms() -> float:
    return server_clock().now_ms()


def utcnow():
    return from_timestamp_ms(now_ms())
