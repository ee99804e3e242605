from datetime import datetime

import pytest
from timeblock_pro.resolver import resolve_or_buffer
from timeblock_pro.schema import BlockType, TimeBlock
from timeblock_pro.timer import CountdownTimer, TimerState, initial_seconds_for
from timeblock_pro.utils.events import TimerCompleted


@pytest.fixture
def timer(store, clock):
    return CountdownTimer(store, clock=clock, ticker_factory=None)


def run_ticks(timer, clock, count):
    for _ in range(count):
        clock.advance(1)
        timer.tick()


def test_starts_running_with_full_time(timer):
    session = timer.start(1500, "study")
    assert timer.state == TimerState.RUNNING
    assert timer.remaining == 1500
    assert timer.format_time() == "25:00"
    assert timer.progress() == 0
    assert timer.store.get_timer_session(session.id).block_type_id == "study"


def test_rejects_non_positive_duration(timer):
    with pytest.raises(ValueError):
        timer.start(0, "study")
    assert timer.state == TimerState.IDLE


def test_counts_down_to_completion(timer, clock, store):
    completed = []
    store.bus.subscribe(TimerCompleted, completed.append)
    session = timer.start(1500, "study")

    run_ticks(timer, clock, 1499)
    assert timer.state == TimerState.RUNNING
    assert timer.remaining == 1

    run_ticks(timer, clock, 1)
    assert timer.state == TimerState.COMPLETED
    assert timer.remaining == 0
    assert timer.progress() == 100
    assert len(completed) == 1

    saved = store.get_timer_session(session.id)
    assert saved.completed and not saved.ended_early
    assert saved.active_time_ms == 1_500_000


def test_late_ticks_do_not_drift(timer, clock):
    timer.start(600, "study")
    clock.advance(125.4)
    timer.tick()
    assert timer.remaining == 475


def test_pause_freezes_countdown(timer, clock, store):
    session = timer.start(600, "study")
    run_ticks(timer, clock, 100)
    timer.pause()
    assert timer.state == TimerState.PAUSED

    clock.advance(300)
    timer.tick()
    assert timer.remaining == 500
    assert timer.paused_seconds == 300

    timer.resume()
    run_ticks(timer, clock, 50)
    assert timer.remaining == 450
    assert timer.active_seconds == 150

    timer.stop()
    saved = store.get_timer_session(session.id)
    assert saved.ended_early
    assert saved.paused_time_ms == 300_000
    assert saved.active_time_ms == 150_000


def test_pause_and_resume_are_ignored_in_wrong_state(timer):
    timer.pause()
    timer.resume()
    assert timer.state == TimerState.IDLE
    timer.start(60, "study")
    timer.resume()
    assert timer.state == TimerState.RUNNING


def test_stop_resets_to_idle(timer, clock):
    timer.start(600, "study")
    run_ticks(timer, clock, 10)
    timer.stop()
    assert timer.state == TimerState.IDLE
    assert timer.remaining == 0
    assert timer.session_id is None
    timer.stop()


def test_adjust_adds_and_clamps(timer, clock):
    timer.start(600, "study")
    run_ticks(timer, clock, 60)
    timer.adjust(5)
    assert timer.remaining == 840
    assert timer.total_time == 840

    timer.adjust(-30)
    assert timer.remaining == 0
    assert timer.total_time == 840
    timer.tick()
    assert timer.state == TimerState.COMPLETED


def test_adjust_while_paused(timer, clock):
    timer.start(600, "study")
    run_ticks(timer, clock, 100)
    timer.pause()
    timer.adjust(-2)
    assert timer.remaining == 380
    clock.advance(50)
    assert timer.remaining == 380


def test_adjust_is_noop_when_idle(timer):
    timer.adjust(5)
    assert timer.remaining == 0
    assert timer.state == TimerState.IDLE


def test_starting_again_ends_previous_session(timer, clock, store):
    first = timer.start(600, "study")
    run_ticks(timer, clock, 5)
    second = timer.start(300, "work")

    assert store.get_timer_session(first.id).ended_early
    assert timer.session_id == second.id
    assert timer.remaining == 300
    running = [s for s in store.get_timer_sessions() if not s.completed and not s.ended_early]
    assert [s.id for s in running] == [second.id]


def test_missing_session_does_not_break_timer(timer, clock, store):
    timer.start(10, "study")
    store.data.timer_sessions.clear()
    run_ticks(timer, clock, 10)
    assert timer.state == TimerState.COMPLETED


def test_on_tick_callback(store, clock):
    seen = []
    timer = CountdownTimer(store, clock=clock, ticker_factory=None, on_tick=lambda t: seen.append(t.remaining))
    timer.start(3, "study")
    run_ticks(timer, clock, 3)
    assert seen == [2, 1, 0]


def test_context_manager_stops(store, clock):
    with CountdownTimer(store, clock=clock, ticker_factory=None) as timer:
        timer.start(60, "study")
    assert timer.state == TimerState.IDLE


def test_initial_seconds_for():
    block = TimeBlock(block_type_id="s", day_of_week=1, start_time="09:00", end_time="10:00")
    study = BlockType(id="s", name="Study", color="#000")
    snap = resolve_or_buffer(datetime(2026, 10, 19, 9, 40), [block], [study])

    assert initial_seconds_for(snap) == 20 * 60
    assert initial_seconds_for(snap, duration_minutes=5) == 300
    assert initial_seconds_for(None) == 1500
    assert initial_seconds_for(None, default_minutes=50) == 3000
