import threading
from datetime import datetime

from timeblock_pro.schema import BlockType, TimeBlock, ActiveBlockSnapshot
from timeblock_pro.settings import Settings
from timeblock_pro.utils.events import BlockEnded, BlockStarted, DataChanged, EventBus, TimerCompleted
from timeblock_pro.utils.notifications import NotificationSink
from timeblock_pro.utils.ticker import Ticker


def snapshot():
    block = TimeBlock(block_type_id="s", day_of_week=1, start_time="09:00", end_time="13:30")
    return ActiveBlockSnapshot(
        time_block=block,
        block_type=BlockType(id="s", name="Study Time", color="#000"),
        remaining_minutes=10,
        remaining_seconds=600,
    )


class FakeConsole:
    def __init__(self):
        self.bells = 0

    def bell(self):
        self.bells += 1


def test_publish_reaches_matching_subscribers_only():
    bus = EventBus()
    started, changed = [], []
    bus.subscribe(BlockStarted, started.append)
    bus.subscribe(DataChanged, changed.append)

    bus.publish(BlockStarted(snapshot=snapshot()))
    assert len(started) == 1
    assert changed == []


def test_closed_subscription_stops_delivery():
    bus = EventBus()
    seen = []
    sub = bus.subscribe(DataChanged, seen.append)
    bus.publish(DataChanged())
    sub.close()
    sub.close()
    bus.publish(DataChanged())
    assert len(seen) == 1


def test_failing_handler_does_not_block_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(DataChanged, broken)
    bus.subscribe(DataChanged, seen.append)
    bus.publish(DataChanged())
    assert len(seen) == 1


def test_notification_sink_formats_templates():
    bus = EventBus()
    sent = []
    console = FakeConsole()
    sink = NotificationSink(
        bus,
        config=Settings(audio_notifications=True),
        console=console,
        notify=lambda summary, body: sent.append((summary, body)),
    )

    bus.publish(BlockStarted(snapshot=snapshot()))
    bus.publish(BlockEnded(snapshot=snapshot()))
    bus.publish(TimerCompleted(session=None))

    assert sent[0] == ("Study Time started", "Block runs until 1:30 PM.")
    assert sent[1] == ("Study Time ended", "Block finished at 1:30 PM.")
    assert sent[2][0] == "Focus session complete"
    assert console.bells == 3

    sink.close()
    bus.publish(BlockStarted(snapshot=snapshot()))
    assert len(sent) == 3


def test_notification_sink_silent_when_audio_off():
    bus = EventBus()
    console = FakeConsole()
    NotificationSink(
        bus,
        config=Settings(audio_notifications=False),
        console=console,
        notify=lambda summary, body: None,
    )
    bus.publish(BlockStarted(snapshot=snapshot(), at=datetime.now()))
    assert console.bells == 0


def test_ticker_calls_back_until_stopped():
    fired = threading.Event()
    calls = []

    def callback():
        calls.append(1)
        if len(calls) >= 3:
            fired.set()

    with Ticker(callback, 0.01, name="test") as ticker:
        assert fired.wait(timeout=2.0)
        assert ticker.running
    assert not ticker.running
