import math
import threading
import time
from datetime import datetime
from enum import Enum
from typing import Callable

from loguru import logger

from timeblock_pro.schema import ActiveBlockSnapshot, TimerSession
from timeblock_pro.store import ScheduleStore
from timeblock_pro.utils.events import EventBus, TimerCompleted
from timeblock_pro.utils.ticker import Ticker
from timeblock_pro.utils.time import format_countdown

TICK_SECONDS = 1.0


class TimerState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


def initial_seconds_for(
    snapshot: ActiveBlockSnapshot | None,
    duration_minutes: int | None = None,
    default_minutes: int = 25,
) -> int:
    """An explicit duration wins, then the time left in the block, then the default."""
    if duration_minutes:
        return duration_minutes * 60
    if snapshot is not None and snapshot.remaining_seconds > 0:
        return snapshot.remaining_seconds
    return default_minutes * 60


class CountdownTimer:
    """
    Focus countdown for a single session at a time.

    Remaining time is derived from the clock elapsed since the last resume,
    so a late or skipped tick never makes the countdown drift. The tick
    source only decides how often that value is refreshed.

    ``clock`` must be monotonic and in seconds. ``ticker_factory`` builds the
    tick source; pass None to drive ``tick()`` by hand.
    """

    def __init__(
        self,
        store: ScheduleStore,
        bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
        ticker_factory: Callable[..., Ticker] | None = Ticker,
        on_tick: Callable[["CountdownTimer"], None] | None = None,
    ):
        self.store = store
        self.bus = bus or store.bus
        self._clock = clock
        self._now = now
        self._ticker_factory = ticker_factory
        self._ticker: Ticker | None = None
        self._lock = threading.RLock()
        self.on_tick = on_tick

        self.state = TimerState.IDLE
        self.total_time = 0
        self.block_type_id: str | None = None
        self.session_id: str | None = None
        self._reset_counters()

    def _reset_counters(self):
        self._remaining_at_anchor = 0.0
        self._anchor = 0.0
        self._paused_at: float | None = None
        self._active_seconds = 0.0
        self._paused_seconds = 0.0

    # --- derived values ------------------------------------------------

    def _exact_remaining(self) -> float:
        if self.state == TimerState.RUNNING:
            return max(0.0, self._remaining_at_anchor - (self._clock() - self._anchor))
        return max(0.0, self._remaining_at_anchor)

    @property
    def remaining(self) -> int:
        """Whole seconds left, rounded up so the display reads 25:00 at start."""
        with self._lock:
            return math.ceil(self._exact_remaining())

    @property
    def is_active(self) -> bool:
        return self.state in (TimerState.RUNNING, TimerState.PAUSED)

    def progress(self) -> float:
        with self._lock:
            if self.total_time == 0:
                return 0.0
            return (self.total_time - self.remaining) / self.total_time * 100

    def format_time(self) -> str:
        return format_countdown(self.remaining)

    @property
    def active_seconds(self) -> float:
        with self._lock:
            if self.state == TimerState.RUNNING:
                return self._active_seconds + (self._clock() - self._anchor)
            return self._active_seconds

    @property
    def paused_seconds(self) -> float:
        with self._lock:
            if self.state == TimerState.PAUSED and self._paused_at is not None:
                return self._paused_seconds + (self._clock() - self._paused_at)
            return self._paused_seconds

    # --- tick source ---------------------------------------------------

    def _acquire_ticker(self):
        if self._ticker_factory is None or self._ticker is not None:
            return
        self._ticker = self._ticker_factory(self.tick, TICK_SECONDS, name="countdown")
        self._ticker.start()

    def _release_ticker(self):
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.stop()

    # --- session persistence -------------------------------------------

    def _update_session(self, **patch) -> TimerSession | None:
        if self.session_id is None:
            return None
        session = self.store.update_timer_session(self.session_id, **patch)
        if session is None:
            logger.warning(f"Timer session {self.session_id} not found; continuing locally.")
        return session

    def _session_durations(self) -> dict:
        return {
            "active_time_ms": int(self.active_seconds * 1000),
            "paused_time_ms": int(self.paused_seconds * 1000),
        }

    # --- transitions ---------------------------------------------------

    def start(self, initial_seconds: int, block_type_id: str) -> TimerSession:
        """Starts a new session, ending any session that is still active."""
        if initial_seconds <= 0:
            raise ValueError(f"Timer duration must be positive: {initial_seconds}")

        if self.is_active:
            logger.info("Starting a new timer while one is active; stopping the previous session.")
            self.stop()
        elif self.state == TimerState.COMPLETED:
            self.stop()

        with self._lock:
            session = self.store.create_timer_session(block_type_id, start_time=self._now())
            self._reset_counters()
            self.session_id = session.id
            self.block_type_id = block_type_id
            self.total_time = int(initial_seconds)
            self._remaining_at_anchor = float(initial_seconds)
            self._anchor = self._clock()
            self.state = TimerState.RUNNING
            logger.info(f"Timer started: {initial_seconds}s for block type {block_type_id}")

        self._acquire_ticker()
        return session

    def tick(self):
        """Refreshes the countdown; completes the session once it reaches zero."""
        completed = None
        with self._lock:
            if self.state != TimerState.RUNNING:
                return
            if self._exact_remaining() <= 0:
                completed = self._complete()
        if completed is not None:
            self._release_ticker()
            self.bus.publish(TimerCompleted(session=completed))
        if self.on_tick:
            self.on_tick(self)

    def _complete(self) -> TimerSession | None:
        self._active_seconds += self._clock() - self._anchor
        self._remaining_at_anchor = 0.0
        self.state = TimerState.COMPLETED
        logger.info("Timer completed.")
        session = self._update_session(completed=True, **self._session_durations())
        return session

    def pause(self):
        with self._lock:
            if self.state != TimerState.RUNNING:
                logger.debug(f"Ignoring pause while {self.state.value}.")
                return
            now = self._clock()
            self._remaining_at_anchor = max(0.0, self._remaining_at_anchor - (now - self._anchor))
            self._active_seconds += now - self._anchor
            self._paused_at = now
            self.state = TimerState.PAUSED
            self._update_session(**self._session_durations())
        self._release_ticker()

    def resume(self):
        with self._lock:
            if self.state != TimerState.PAUSED:
                logger.debug(f"Ignoring resume while {self.state.value}.")
                return
            now = self._clock()
            if self._paused_at is not None:
                self._paused_seconds += now - self._paused_at
            self._paused_at = None
            self._anchor = now
            self.state = TimerState.RUNNING
        self._acquire_ticker()

    def stop(self):
        """Ends the session early and returns to IDLE."""
        try:
            with self._lock:
                if self.state == TimerState.IDLE:
                    return
                patch = self._session_durations()
                if self.state != TimerState.COMPLETED:
                    patch["ended_early"] = True
                self._update_session(**patch)

                self.state = TimerState.IDLE
                self.total_time = 0
                self.session_id = None
                self.block_type_id = None
                self._reset_counters()
                logger.info("Timer stopped.")
        finally:
            self._release_ticker()

    def adjust(self, delta_minutes: int):
        """Adds or removes minutes, never below zero; widens the total if needed."""
        with self._lock:
            if not self.is_active:
                logger.debug(f"Ignoring adjust while {self.state.value}.")
                return
            current = self._exact_remaining()
            new_remaining = max(0.0, current + delta_minutes * 60)
            # Re-anchor so the adjustment applies to the value shown right now.
            self._remaining_at_anchor = new_remaining
            if self.state == TimerState.RUNNING:
                now = self._clock()
                self._active_seconds += now - self._anchor
                self._anchor = now
            self.total_time = max(self.total_time, math.ceil(new_remaining))

    def close(self):
        """Releases the tick source without touching the session."""
        self._release_ticker()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.stop()
