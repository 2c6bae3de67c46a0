import re
from enum import Enum


class Stage(str, Enum):
    PENDING_PAYMENT = "PendingPayment"
    SCHEDULED = "Scheduled"
    ACTIVE = "Active"
    OVERDUE = "Overdue"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Forward order of a rental. Cancelled sits outside the sequence.
STAGE_ORDER = {
    Stage.PENDING_PAYMENT: 0,
    Stage.SCHEDULED: 1,
    Stage.ACTIVE: 2,
    Stage.OVERDUE: 3,
    Stage.COMPLETED: 4,
}


class BargainStatus(str, Enum):
    NONE = "NONE"
    USER_OFFERED = "USER_OFFERED"
    ADMIN_COUNTERED = "ADMIN_COUNTERED"
    LOCKED = "LOCKED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


TERMINAL_BARGAIN_STATUSES = {BargainStatus.ACCEPTED, BargainStatus.REJECTED, BargainStatus.EXPIRED}

# booking_status values
PENDING_PAYMENT = "PENDING_PAYMENT"
PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
COMPLETED = "COMPLETED"
REJECTED = "REJECTED"
CANCELLED_BY_USER = "CANCELLED_BY_USER"
CANCELLED = "CANCELLED"

# trip_status values
TRIP_UPCOMING = "upcoming"
TRIP_ACTIVE = "active"
TRIP_COMPLETED = "completed"

# payment_status values
UNPAID = "UNPAID"
ADVANCE_PAID = "ADVANCE_PAID"
FULLY_PAID = "FULLY_PAID"
REFUNDED = "REFUNDED"

REFUND_PROCESSED = "PROCESSED"

_SEPARATORS = re.compile(r"[\s_-]+")


def normalize_status_key(value) -> str:
    """'Fully Paid', 'fully_paid' and 'FULLY-PAID' all become 'FULLYPAID'."""
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    return _SEPARATORS.sub("", str(value).strip().upper())


def parse_stage(value):
    key = normalize_status_key(value)
    for stage in Stage:
        if normalize_status_key(stage.value) == key:
            return stage
    return None


def parse_bargain_status(value) -> BargainStatus:
    key = normalize_status_key(value)
    for status in BargainStatus:
        if normalize_status_key(status.value) == key:
            return status
    return BargainStatus.NONE


def is_advance_paid_status(status) -> bool:
    return normalize_status_key(status) in ("PAID", "ADVANCEPAID", "PARTIALLYPAID", "FULLYPAID")


def is_fully_paid_status(status) -> bool:
    return normalize_status_key(status) == "FULLYPAID"


def is_confirmed_booking_status(status) -> bool:
    return normalize_status_key(status) == "CONFIRMED"


def is_completed_booking_status(status) -> bool:
    return normalize_status_key(status) == "COMPLETED"


def is_pending_payment_booking_status(status) -> bool:
    return normalize_status_key(status) in ("PENDING", "PENDINGPAYMENT")


def is_cancelled_booking_status(status) -> bool:
    return normalize_status_key(status) in ("CANCELLED", "CANCELLEDBYUSER", "REJECTED")


def is_completed_trip_status(status) -> bool:
    return normalize_status_key(status) == "COMPLETED"
