class RentalError(Exception):
    """Base class for lifecycle and negotiation failures."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(RentalError):
    """Bad price, exhausted round limit or missing date. Nothing was changed."""

    status_code = 422


class InvalidTransitionError(ValidationError):
    """The requested negotiation move is not legal from the current state."""

    status_code = 409


class StaleStateError(RentalError):
    """The server rejected a move because its state changed underneath us."""

    status_code = 409


class TransientNetworkError(RentalError):
    """The request never got an authoritative answer (timeout, 5xx, refused)."""

    status_code = 503
