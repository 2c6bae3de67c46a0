"""
Bounded price negotiation between a renter and an admin.

The same record backs the bargain embedded in a booking and the pre-booking
quote (offer). States:

    NONE -> USER_OFFERED <-> ADMIN_COUNTERED -> ACCEPTED | REJECTED
                 \\                /
                  +--> LOCKED <--+          (user rounds exhausted)

Any non-terminal state may also be moved to EXPIRED by the server's timeout
sweep. Every transition validates first and only then mutates, so a failed
call leaves the record untouched.
"""
import math
from typing import Optional

from rental.errors import InvalidTransitionError, ValidationError
from rental.status import TERMINAL_BARGAIN_STATUSES, BargainStatus, parse_bargain_status

USER = "user"
ADMIN = "admin"
ACTORS = (USER, ADMIN)

MAX_USER_ATTEMPTS = 3


def validate_price(price, field_name: str = "price") -> float:
    if price is None or isinstance(price, bool):
        raise ValidationError(f"{field_name} must be a positive number")
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a positive number")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{field_name} must be a positive number")
    return value


def _optional_price(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) and number > 0 else None


class Bargain:
    def __init__(
        self,
        status=BargainStatus.NONE,
        user_attempts: int = 0,
        offered_price: Optional[float] = None,
        admin_counter_price: Optional[float] = None,
        history=None,
        agreed_price: Optional[float] = None,
        last_actor: Optional[str] = None,
        max_attempts: int = MAX_USER_ATTEMPTS,
    ):
        self.status = parse_bargain_status(status)
        self.user_attempts = int(user_attempts or 0)
        self.offered_price = offered_price
        self.admin_counter_price = admin_counter_price
        self.history = list(history or [])
        self.agreed_price = agreed_price
        self.last_actor = last_actor
        self.max_attempts = max_attempts

    def __repr__(self):
        return f"<Bargain {self.status.value} attempts={self.user_attempts}>"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BARGAIN_STATUSES

    @property
    def attempts_left(self) -> int:
        return max(self.max_attempts - self.user_attempts, 0)

    @property
    def price_on_table(self) -> Optional[float]:
        """The latest proposal the other party could accept."""
        if self.status == BargainStatus.USER_OFFERED:
            return self.offered_price
        if self.status == BargainStatus.ADMIN_COUNTERED:
            return self.admin_counter_price
        if self.status == BargainStatus.LOCKED:
            if self.last_actor == ADMIN:
                return self.admin_counter_price
            return self.offered_price
        if self.status == BargainStatus.ACCEPTED:
            return self.agreed_price
        return None

    # ---------- transitions ----------

    def create_offer(self, price) -> "Bargain":
        if self.status != BargainStatus.NONE:
            raise InvalidTransitionError(f"An offer already exists ({self.status.value})")
        value = validate_price(price, "offeredPrice")

        self.status = BargainStatus.USER_OFFERED
        self.user_attempts = 1
        self.offered_price = value
        self.history.append(value)
        self.last_actor = USER
        return self

    def counter(self, price) -> "Bargain":
        """Admin counter to the renter's latest offer."""
        if self.status == BargainStatus.LOCKED:
            raise InvalidTransitionError("Bargaining is locked. Only accept or reject remain.")
        if self.status != BargainStatus.USER_OFFERED:
            raise InvalidTransitionError("No user offer to counter")
        value = validate_price(price, "counterPrice")

        self.admin_counter_price = value
        self.last_actor = ADMIN
        if self.user_attempts >= self.max_attempts:
            self.status = BargainStatus.LOCKED
        else:
            self.status = BargainStatus.ADMIN_COUNTERED
        return self

    def counter_back(self, price) -> "Bargain":
        """Renter answers an admin counter with a new price."""
        if self.user_attempts >= self.max_attempts or self.status == BargainStatus.LOCKED:
            raise ValidationError(
                f"Maximum of {self.max_attempts} user offers reached. "
                "You can only accept or reject the current price."
            )
        if self.status != BargainStatus.ADMIN_COUNTERED:
            raise InvalidTransitionError("You can counter only an admin counter offer")
        value = validate_price(price, "offeredPrice")

        self.user_attempts += 1
        self.offered_price = value
        self.history.append(value)
        self.last_actor = USER
        if self.user_attempts >= self.max_attempts:
            self.status = BargainStatus.LOCKED
        else:
            self.status = BargainStatus.USER_OFFERED
        return self

    def accept(self, actor: Optional[str] = None) -> float:
        """Close the negotiation at the price on the table and return it."""
        if self.status == BargainStatus.ACCEPTED:
            raise InvalidTransitionError("Offer already accepted")
        if self.is_terminal:
            raise InvalidTransitionError(f"Offer already {self.status.value.lower()}")

        if self.status == BargainStatus.USER_OFFERED:
            expected = ADMIN
        elif self.status == BargainStatus.ADMIN_COUNTERED:
            expected = USER
        elif self.status == BargainStatus.LOCKED:
            # Either side may close a locked round at the other side's last price.
            expected = actor or (ADMIN if self.last_actor == USER else USER)
        else:
            raise InvalidTransitionError("There is no offer to accept")

        if actor is not None and actor != expected:
            raise InvalidTransitionError("You cannot accept your own offer")

        price = self.offered_price if expected == ADMIN else self.admin_counter_price
        if price is None:
            raise InvalidTransitionError("There is no counter price to accept")

        self.status = BargainStatus.ACCEPTED
        self.agreed_price = price
        return price

    def reject(self) -> "Bargain":
        if self.is_terminal:
            raise InvalidTransitionError(f"Offer already {self.status.value.lower()}")
        self.status = BargainStatus.REJECTED
        return self

    def expire(self) -> bool:
        """Server-driven timeout. Returns False when the bargain had already closed."""
        if self.is_terminal:
            return False
        self.status = BargainStatus.EXPIRED
        return True

    def apply(self, action: str, actor: str, price=None):
        """
        Route an action name from the wire contract to a transition.

        `counter` from a renter opens the negotiation when nothing is on the
        table yet, otherwise it is a counter-back.
        """
        action = (action or "").strip().lower()
        if actor not in ACTORS:
            raise ValidationError(f"Unknown actor {actor!r}")

        if action == "accept":
            return self.accept(actor)
        if action == "reject":
            return self.reject()
        if action in ("counter", "offer"):
            if actor == ADMIN:
                return self.counter(price)
            if self.status == BargainStatus.NONE:
                return self.create_offer(price)
            return self.counter_back(price)
        raise ValidationError("action must be accept, reject, or counter")

    def allowed_actions(self, actor: str) -> set:
        if self.is_terminal:
            return set()
        actions = {"reject"}
        if actor == USER:
            if self.status == BargainStatus.NONE:
                actions.add("counter")
            if self.status == BargainStatus.ADMIN_COUNTERED and self.user_attempts < self.max_attempts:
                actions.add("counter")
        else:
            if self.status == BargainStatus.USER_OFFERED:
                actions.add("counter")
        if self.status != BargainStatus.NONE:
            probe = self.copy()
            try:
                probe.accept(actor)
                actions.add("accept")
            except ValidationError:
                pass
        return actions

    def apply_to(self, record, attribute: str = "final_amount") -> bool:
        """
        Write the agreed price onto `record` if this bargain is accepted and
        the value differs. Returns True when something was written.
        """
        if self.status != BargainStatus.ACCEPTED or self.agreed_price is None:
            return False
        if getattr(record, attribute, None) == self.agreed_price:
            return False
        setattr(record, attribute, self.agreed_price)
        return True

    # ---------- serialization ----------

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "user_attempts": self.user_attempts,
            "max_attempts": self.max_attempts,
            "offered_price": self.offered_price,
            "admin_counter_price": self.admin_counter_price,
            "history": list(self.history),
            "agreed_price": self.agreed_price,
            "last_actor": self.last_actor,
        }

    @classmethod
    def from_dict(cls, data) -> "Bargain":
        data = data or {}

        def pick(*keys):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        history = [p for p in (_optional_price(v) for v in (pick("history", "userOfferHistory") or [])) if p]
        try:
            attempts = int(pick("user_attempts", "userAttempts", "offerCount") or 0)
        except (TypeError, ValueError):
            attempts = len(history)
        last_actor = pick("last_actor", "lastActor")
        status = parse_bargain_status(pick("status"))
        if last_actor not in ACTORS:
            last_actor = ADMIN if status == BargainStatus.ADMIN_COUNTERED else (USER if history else None)

        return cls(
            status=status,
            user_attempts=max(attempts, 0),
            offered_price=_optional_price(pick("offered_price", "offeredPrice", "userPrice")),
            admin_counter_price=_optional_price(pick("admin_counter_price", "adminCounterPrice", "counterPrice")),
            history=history,
            agreed_price=_optional_price(pick("agreed_price", "agreedPrice")),
            last_actor=last_actor,
            max_attempts=int(pick("max_attempts", "maxAttempts") or MAX_USER_ATTEMPTS),
        )

    def copy(self) -> "Bargain":
        return Bargain.from_dict(self.to_dict())
