from rental.clock import FrozenClock, SystemClock, default_clock
from rental.countdown import Countdown, CountdownReading, format_duration
from rental.deadline import grace_deadline_ms
from rental.errors import (
    InvalidTransitionError,
    RentalError,
    StaleStateError,
    TransientNetworkError,
    ValidationError,
)
from rental.negotiation import Bargain
from rental.settlement import LiveSettlement, calculate_live_settlement
from rental.snapshot import BookingSnapshot
from rental.stage import advance_stage, resolve_stage
from rental.status import BargainStatus, Stage
