"""
Client-side mirror of one booking card.

A LiveBookingView keeps the last server snapshot, ticks its own Countdown
and recomputes stage and settlement on every tick. Server responses are
applied through a generation counter: a response that belongs to an older
request, or that arrives after teardown, is dropped.
"""
import functools
import logging
import math
import threading

from rental.clock import default_clock
from rental.countdown import DOWN, UP, Countdown
from rental.errors import StaleStateError, TransientNetworkError
from rental.negotiation import USER
from rental.polling import SnapshotPoller
from rental.settlement import late_fee_cap_for, settlement_from_snapshot
from rental.stage import booking_deadline_ms, resolve_stage
from rental.status import Stage

logger = logging.getLogger(__name__)


def countdown_target(snapshot, stage: Stage, now_ms: float):
    """(target_ms, direction) the card's timer should show for `stage`, or None."""
    if stage == Stage.SCHEDULED and snapshot.pickup_ms is not None:
        return snapshot.pickup_ms, DOWN
    deadline = booking_deadline_ms(snapshot)
    if not math.isfinite(deadline):
        return None
    if stage == Stage.ACTIVE and now_ms < deadline:
        return deadline, DOWN
    if stage in (Stage.ACTIVE, Stage.OVERDUE):
        return deadline, UP
    return None


class LiveBookingView:
    def __init__(self, snapshot, client=None, clock=None, scheduler=None, actor=USER,
                 late_fee_cap_multiple=None, on_render=None):
        self.snapshot = snapshot
        self.client = client
        self.clock = clock or default_clock
        self.scheduler = scheduler
        self.actor = actor
        self.late_fee_cap_multiple = late_fee_cap_multiple
        self.on_render = on_render

        self.stage = None
        self.countdown = None
        self.error = None
        self.draft_price = None
        self.last_render = None
        self._generation = 0
        self._awaiting = None
        self._torn_down = False
        self._lock = threading.RLock()

    @property
    def booking_id(self):
        return self.snapshot.id

    @property
    def is_torn_down(self) -> bool:
        return self._torn_down

    # ---------- ticking ----------

    def start(self) -> dict:
        with self._lock:
            self._sync_countdown(self.clock.now_ms(), force=True)
            return self.render()

    def _sync_countdown(self, now_ms: float, force: bool = False) -> None:
        stage = resolve_stage(self.snapshot, now_ms)
        if stage == self.stage and not force:
            return
        self.stage = stage
        if self.countdown is not None:
            self.countdown.stop()
            self.countdown = None

        target = countdown_target(self.snapshot, stage, now_ms)
        if target is None:
            return
        target_ms, direction = target
        countdown = Countdown(target_ms, direction=direction, clock=self.clock)
        countdown.on_tick = functools.partial(self._on_tick, countdown)
        self.countdown = countdown
        countdown.start(self.scheduler)

    def _on_tick(self, countdown, reading) -> None:
        with self._lock:
            if self._torn_down or countdown is not self.countdown or countdown.is_cancelled:
                return
            # A finished countdown means pickup or the deadline was reached.
            self._sync_countdown(reading.now_ms, force=reading.is_complete)
            self.render(reading.now_ms)

    def render(self, now_ms: float = None) -> dict:
        with self._lock:
            if now_ms is None:
                now_ms = self.clock.now_ms()
            stage = resolve_stage(self.snapshot, now_ms)
            cap = late_fee_cap_for(self.snapshot.final_amount, self.late_fee_cap_multiple)
            settlement = settlement_from_snapshot(self.snapshot, stage, now_ms, late_fee_cap=cap)
            reading = self.countdown.reading() if self.countdown is not None else None

            view = {
                "booking_id": self.snapshot.id,
                "stage": stage.value,
                "countdown": reading.formatted if reading is not None else None,
                "counting_up": bool(self.countdown is not None and self.countdown.direction == UP),
                "settlement": settlement.for_display(),
                "bargain": self.snapshot.bargain.to_dict(),
                "allowed_actions": sorted(self.snapshot.bargain.allowed_actions(self.actor)),
                "draft_price": self.draft_price,
                "error": self.error,
            }
            self.last_render = view
            if self.on_render is not None:
                self.on_render(view)
            return view

    # ---------- server sync ----------

    def begin_request(self) -> int:
        with self._lock:
            self._generation += 1
            self._awaiting = self._generation
            return self._generation

    def end_request(self, generation: int) -> None:
        with self._lock:
            if self._awaiting == generation:
                self._awaiting = None

    def apply_snapshot(self, snapshot, generation: int = None) -> bool:
        """
        Replace the local replica with a server snapshot. Returns False if discarded.

        Without a generation (a board-wide poll) the snapshot is dropped while
        this view still waits for the answer to its own request.
        """
        with self._lock:
            if self._torn_down:
                return False
            if generation is None and self._awaiting is not None:
                return False
            if generation is not None and generation != self._generation:
                logger.debug("Dropping stale snapshot for booking %s", self.snapshot.id)
                return False
            self._awaiting = None
            if snapshot.id is not None and self.snapshot.id is not None and snapshot.id != self.snapshot.id:
                raise ValueError(f"Snapshot for booking {snapshot.id} applied to view {self.snapshot.id}")

            self.snapshot = snapshot
            self.error = None
            self.draft_price = None
            self._sync_countdown(self.clock.now_ms(), force=True)
            self.render()
            return True

    def refresh(self) -> bool:
        generation = self.begin_request()
        try:
            snapshot = self.client.get_booking(self.snapshot.id)
        except TransientNetworkError as exc:
            self.end_request(generation)
            with self._lock:
                if not self._torn_down:
                    self.error = exc.message
            logger.info("Keeping last snapshot of booking %s: %s", self.snapshot.id, exc.message)
            return False
        except Exception:
            self.end_request(generation)
            raise
        return self.apply_snapshot(snapshot, generation)

    def set_draft_price(self, price) -> None:
        with self._lock:
            self.draft_price = price

    def submit_bargain(self, action: str, price=None) -> bool:
        """
        Validate the move against a copy of the local bargain, then send it.
        The server's answer replaces the local state; a conflict forces a
        refetch and re-raises.
        """
        self.snapshot.bargain.copy().apply(action, self.actor, price)

        generation = self.begin_request()
        try:
            snapshot = self.client.bargain(self.snapshot.id, action, price)
        except StaleStateError:
            self.end_request(generation)
            self.refresh()
            raise
        except Exception:
            self.end_request(generation)
            raise
        return self.apply_snapshot(snapshot, generation)

    def teardown(self) -> None:
        with self._lock:
            self._torn_down = True
            self._generation += 1
            if self.countdown is not None:
                self.countdown.stop()
                self.countdown = None


class BookingBoard:
    """All booking cards of one screen, refreshed together by a SnapshotPoller."""

    def __init__(self, client, clock=None, scheduler=None, actor=USER, late_fee_cap_multiple=None,
                 poll_seconds=None):
        self.client = client
        self.clock = clock or default_clock
        self.scheduler = scheduler
        self.actor = actor
        self.late_fee_cap_multiple = late_fee_cap_multiple
        self.views = {}
        self.error = None
        self._lock = threading.Lock()
        self.poller = SnapshotPoller(
            fetch=client.list_bookings,
            on_result=self.apply_bookings,
            on_error=self._on_poll_error,
            interval_seconds=poll_seconds,
            scheduler=scheduler,
        )

    def start(self):
        self.poller.run()
        if self.scheduler is not None:
            self.poller.start()
        return self

    def apply_bookings(self, snapshots) -> None:
        with self._lock:
            self._apply_bookings(snapshots)

    def _apply_bookings(self, snapshots) -> None:
        self.error = None
        seen = set()
        for snapshot in snapshots:
            seen.add(snapshot.id)
            view = self.views.get(snapshot.id)
            if view is None:
                view = LiveBookingView(
                    snapshot,
                    client=self.client,
                    clock=self.clock,
                    scheduler=self.scheduler,
                    actor=self.actor,
                    late_fee_cap_multiple=self.late_fee_cap_multiple,
                )
                self.views[snapshot.id] = view
                view.start()
            else:
                view.apply_snapshot(snapshot)

        for booking_id in list(self.views):
            if booking_id not in seen:
                self.views.pop(booking_id).teardown()

    def _on_poll_error(self, exc) -> None:
        self.error = exc.message

    def render(self) -> list:
        with self._lock:
            views = list(self.views.values())
        return [view.render() for view in views]

    def teardown(self) -> None:
        self.poller.dispose()
        with self._lock:
            for view in self.views.values():
                view.teardown()
            self.views.clear()
