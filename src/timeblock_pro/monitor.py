import threading
import time
from datetime import datetime
from typing import Callable

from loguru import logger

from timeblock_pro.resolver import resolve
from timeblock_pro.schema import ActiveBlockSnapshot
from timeblock_pro.store import ScheduleStore
from timeblock_pro.utils.events import BlockEnded, BlockStarted, EventBus
from timeblock_pro.utils.ticker import Ticker, seconds_until_next_minute


class TransitionMonitor:
    """
    Watches which block is active and publishes one event per change.

    Two tick sources share the comparison state: a coarse poll every
    ``coarse_poll_seconds`` and a precise poll at the top of every minute.
    When both observe the same edge, the second sees no change. Polls are
    serialised, so an older clock reading can never be compared last.
    """

    def __init__(
        self,
        store: ScheduleStore,
        bus: EventBus | None = None,
        coarse_poll_seconds: float = 30.0,
        transition_gap_seconds: float = 0.5,
        now: Callable[[], datetime] = datetime.now,
        ticker_factory: Callable[..., Ticker] | None = Ticker,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.bus = bus or store.bus
        self.coarse_poll_seconds = coarse_poll_seconds
        self.transition_gap_seconds = transition_gap_seconds
        self._now = now
        self._ticker_factory = ticker_factory
        self._sleep = sleep
        self._tickers: list[Ticker] = []
        self._lock = threading.RLock()

        self.last_active_block_id: str | None = None
        self._last_snapshot: ActiveBlockSnapshot | None = None

    def compare(self, current: ActiveBlockSnapshot | None) -> list:
        """Diffs ``current`` against the previous observation and records it."""
        with self._lock:
            previous = self._last_snapshot
            previous_id = self.last_active_block_id
            current_id = current.id if current else None

            events = []
            if previous_id != current_id:
                if previous is not None:
                    events.append(BlockEnded(snapshot=previous))
                if current is not None:
                    events.append(BlockStarted(snapshot=current))

            self.last_active_block_id = current_id
            self._last_snapshot = current
        return events

    def poll(self, now: datetime | None = None) -> list:
        """Resolves the active block at ``now`` and publishes any transition."""
        # Clock read, resolve, compare and publish happen as one step per poll.
        with self._lock:
            if now is None:
                now = self._now()
            snapshot = resolve(now, self.store.get_time_blocks(), self.store.get_block_types())
            events = self.compare(snapshot)
            self._dispatch(events)
        return events

    def _dispatch(self, events: list):
        for i, event in enumerate(events):
            if i > 0 and self.transition_gap_seconds > 0:
                # Keeps the end and start chimes from overlapping.
                self._sleep(self.transition_gap_seconds)
            logger.info(
                f"{type(event).__name__}: {event.snapshot.block_type.name} "
                f"{event.snapshot.time_block.start_time}-{event.snapshot.time_block.end_time}"
            )
            self.bus.publish(event)

    def start(self):
        """Polls once, then starts the coarse and minute-aligned tick sources."""
        self.poll()
        if self._ticker_factory is None or self._tickers:
            return
        self._tickers = [
            self._ticker_factory(self.poll, self.coarse_poll_seconds, name="monitor-coarse"),
            self._ticker_factory(self.poll, seconds_until_next_minute, name="monitor-minute"),
        ]
        for ticker in self._tickers:
            ticker.start()
        logger.info("Transition monitor started.")

    def stop(self):
        tickers, self._tickers = self._tickers, []
        for ticker in tickers:
            ticker.stop()
        if tickers:
            logger.info("Transition monitor stopped.")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()
