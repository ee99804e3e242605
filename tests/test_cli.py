from types import SimpleNamespace

import pytest
from typer.testing import CliRunner
from timeblock_pro import cli
from timeblock_pro.timer import CountdownTimer

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(store, monkeypatch):
    monkeypatch.setattr(cli, "open_store", lambda: store)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    return store


def test_type_add_and_list(store):
    result = runner.invoke(cli.app, ["type", "add", "Reading", "--color", "#ff0000"])
    assert result.exit_code == 0
    assert store.find_block_type("reading") is not None

    result = runner.invoke(cli.app, ["type", "list"])
    assert result.exit_code == 0
    assert "Reading" in result.output


def test_type_add_duplicate_fails(store):
    result = runner.invoke(cli.app, ["type", "add", "study time"])
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_block_add_and_overlap_rejected(store):
    result = runner.invoke(cli.app, ["block", "add", "mon", "9am", "10am", "Study Time"])
    assert result.exit_code == 0
    assert len(store.get_time_blocks()) == 1

    result = runner.invoke(cli.app, ["block", "add", "monday", "9:30am", "10:30am", "1"])
    assert result.exit_code == 1
    assert "Overlaps" in result.output
    assert len(store.get_time_blocks()) == 1


def test_block_add_bad_time(store):
    result = runner.invoke(cli.app, ["block", "add", "mon", "noonish", "10am", "Study Time"])
    assert result.exit_code == 1
    assert store.get_time_blocks() == []


def test_block_edit_and_remove(store):
    runner.invoke(cli.app, ["block", "add", "tue", "08:00", "09:00", "Work Focus"])
    result = runner.invoke(cli.app, ["block", "edit", "1", "--end", "10:00"])
    assert result.exit_code == 0
    assert store.get_time_blocks()[0].end_time == "10:00"

    result = runner.invoke(cli.app, ["block", "remove", "1"])
    assert result.exit_code == 0
    assert store.get_time_blocks() == []

    result = runner.invoke(cli.app, ["block", "remove", "1"])
    assert result.exit_code == 1


def test_task_flow(store):
    runner.invoke(cli.app, ["task", "add", "Flashcards", "--type", "Study Time", "--priority"])
    runner.invoke(cli.app, ["task", "sub", "1", "Deck one"])
    result = runner.invoke(cli.app, ["task", "done", "1"])
    assert result.exit_code == 0

    task = store.get_tasks()[0]
    assert task.completed and task.priority
    assert [s.title for s in task.subtasks] == ["Deck one"]

    runner.invoke(cli.app, ["task", "archive", "1"])
    result = runner.invoke(cli.app, ["task", "purge", "--yes"])
    assert result.exit_code == 0
    assert store.get_tasks() == []


def test_task_bad_deadline(store):
    result = runner.invoke(cli.app, ["task", "add", "Report", "--deadline", "next week"])
    assert result.exit_code == 1
    assert store.get_tasks() == []


def test_export_then_import(store, tmp_path):
    runner.invoke(cli.app, ["task", "add", "Keep me"])
    out = tmp_path / "export.json"
    result = runner.invoke(cli.app, ["export", str(out)])
    assert result.exit_code == 0

    store.delete_task(store.get_tasks()[0].id)
    result = runner.invoke(cli.app, ["import", str(out), "--yes"])
    assert result.exit_code == 0
    assert [t.title for t in store.get_tasks()] == ["Keep me"]


def test_week_and_now_render(store):
    runner.invoke(cli.app, ["block", "add", "sun", "07:00", "08:00", "Morning Routine"])
    result = runner.invoke(cli.app, ["week"])
    assert result.exit_code == 0
    assert "Week of" in result.output

    result = runner.invoke(cli.app, ["now"])
    assert result.exit_code == 0


class QuietSink:
    def __init__(self, *args, **kwargs):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture
def focus_env(store, clock, monkeypatch):
    """Drives ``focus`` with a fake clock: each render sleep moves 30 seconds."""
    timers = []
    interrupts = set()
    calls = []

    def make_timer(store):
        timer = CountdownTimer(store, clock=clock, ticker_factory=None)
        timers.append(timer)
        return timer

    def sleep(seconds):
        calls.append(seconds)
        if len(calls) in interrupts:
            raise KeyboardInterrupt
        clock.advance(30)
        timers[-1].tick()

    monkeypatch.setattr(cli, "CountdownTimer", make_timer)
    monkeypatch.setattr(cli, "NotificationSink", QuietSink)
    monkeypatch.setattr(cli, "time", SimpleNamespace(sleep=sleep))
    return interrupts


def test_focus_runs_to_completion(store, focus_env):
    result = runner.invoke(cli.app, ["focus", "--minutes", "1", "--type", "Study Time"])
    assert result.exit_code == 0
    assert "Focus session complete" in result.output

    [session] = store.get_timer_sessions()
    assert session.block_type_id == store.find_block_type("Study Time").id
    assert session.completed and not session.ended_early
    assert session.active_time_ms == 60_000


def test_focus_interrupt_adjust_then_stop(store, focus_env):
    focus_env.add(1)
    result = runner.invoke(cli.app, ["focus", "-m", "1", "-t", "Study Time"], input="+5\ns\n")
    assert result.exit_code == 0
    assert "Paused at 1:00" in result.output
    assert "Now 6:00 remaining." in result.output
    assert "Focus session ended early." in result.output

    [session] = store.get_timer_sessions()
    assert session.ended_early and not session.completed


def test_focus_interrupt_then_resume(store, focus_env):
    focus_env.add(1)
    result = runner.invoke(cli.app, ["focus", "-m", "1", "-t", "Study Time"], input="huh\nr\n")
    assert result.exit_code == 0
    assert "Unknown choice." in result.output
    assert "Focus session complete" in result.output
    assert store.get_timer_sessions()[0].completed
