import os
import time
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.live import Live
from rich.table import Table

from timeblock_pro.daemon import run_daemon
from timeblock_pro.manager import ScheduleManager
from timeblock_pro.schema import BUFFER_BLOCK_TYPE, BlockType, Task, TimeBlock
from timeblock_pro.settings import load_settings
from timeblock_pro.store import ScheduleStore
from timeblock_pro.timer import CountdownTimer, TimerState, initial_seconds_for
from timeblock_pro.utils.center_message import display_completion, focus_view
from timeblock_pro.utils.logging import setup_logging
from timeblock_pro.utils.notifications import NotificationSink
from timeblock_pro.utils.state import read_state
from timeblock_pro.utils.time import (
    DAY_NAMES,
    DAYS,
    day_index,
    deadline_urgency,
    format_duration_seconds,
    format_week_range,
    has_deadline_on_date,
    parse_day,
    parse_user_time,
    time_slots,
    time_to_minutes,
    to_12_hour,
    week_dates,
    week_start,
)

app = typer.Typer(help="TimeBlock Pro - weekly time blocking from the terminal")
types_app = typer.Typer(help="Manage block types (categories)")
blocks_app = typer.Typer(help="Manage weekly time blocks")
tasks_app = typer.Typer(help="Manage tasks and subtasks")
app.add_typer(types_app, name="type")
app.add_typer(blocks_app, name="block")
app.add_typer(tasks_app, name="task")

console = Console()

URGENCY_STYLES = {
    "overdue": "bold red",
    "today": "yellow",
    "this-week": "cyan",
    "future": "white",
}


def is_monitor_running(state: dict | None) -> bool:
    """Checks the pid recorded in the monitor's state file."""
    pid = state.get("pid") if state else None
    if not pid:
        return False
    try:
        os.kill(pid, 0)  # Check if process exists
        return True
    except OSError:
        return False


def open_store() -> ScheduleStore:
    current_settings = load_settings()
    return ScheduleStore(current_settings.data_file, current_settings.backup_file)


def fail(message: str):
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def resolve_block_type(store: ScheduleStore, ref: str) -> BlockType:
    """Finds a block type by its list index (1-based) or by name."""
    types = store.get_block_types()
    if ref.isdigit():
        idx = int(ref)
        if 1 <= idx <= len(types):
            return types[idx - 1]
        fail(f"Block type index {idx} is out of range.")
    found = store.find_block_type(ref)
    if found is None:
        fail(f"No block type named '{ref}'.")
    return found


def type_name(store: ScheduleStore, block_type_id: str | None) -> str:
    if block_type_id is None:
        return "Universal"
    bt = store.get_block_type(block_type_id)
    return bt.name if bt else "?"


def block_by_index(manager: ScheduleManager, index: int) -> TimeBlock:
    blocks = manager.ordered_blocks()
    if index < 1 or index > len(blocks):
        fail(f"Index {index} is out of range.")
    return blocks[index - 1]


def ordered_tasks(store: ScheduleStore, archived: bool = False) -> list[Task]:
    return [t for t in store.get_tasks() if t.archived == archived]


def task_by_index(store: ScheduleStore, index: int, archived: bool = False) -> Task:
    tasks = ordered_tasks(store, archived=archived)
    if index < 1 or index > len(tasks):
        fail(f"Task index {index} is out of range.")
    return tasks[index - 1]


def parse_deadline(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        fail(f"Could not parse deadline '{value}'. Use 'YYYY-MM-DD HH:MM'.")


def span(block: TimeBlock) -> str:
    return f"{to_12_hour(block.start_time)} - {to_12_hour(block.end_time)}"


# --- block types -------------------------------------------------------


@types_app.command("add")
def type_add(
    name: str = typer.Argument(..., help="Name of the block type"),
    color: str = typer.Option("hsl(200, 70%, 50%)", "--color", "-c", help="Display colour"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Add a new block type."""
    setup_logging(verbose=verbose)
    store = open_store()
    try:
        bt = store.create_block_type(name, color)
    except ValueError as e:
        fail(str(e))
    console.print(f"[green]Added block type:[/green] {bt.name}")


@types_app.command("list")
def type_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List block types."""
    setup_logging(verbose=verbose)
    store = open_store()
    types = store.get_block_types()
    if not types:
        console.print("[yellow]No block types defined.[/yellow]")
        return

    blocks = store.get_time_blocks()
    tasks = store.get_tasks()
    table = Table(title="Block Types")
    table.add_column("#", justify="right", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Color", style="white")
    table.add_column("Blocks", justify="right", style="blue")
    table.add_column("Hours / week", justify="right", style="blue")
    table.add_column("Open tasks", justify="right", style="green")

    for i, bt in enumerate(types, 1):
        own = [b for b in blocks if b.block_type_id == bt.id]
        weekly_secs = sum((b.end_minutes - b.start_minutes) * 60 for b in own)
        open_tasks = [t for t in tasks if t.block_type_id == bt.id and not t.completed and not t.archived]
        table.add_row(
            str(i),
            bt.name,
            bt.color,
            str(len(own)),
            format_duration_seconds(weekly_secs),
            str(len(open_tasks)),
        )
    console.print(table)


@types_app.command("edit")
def type_edit(
    ref: str = typer.Argument(..., help="Index or name of the block type"),
    name: str | None = typer.Option(None, "--name", "-n", help="New name"),
    color: str | None = typer.Option(None, "--color", "-c", help="New colour"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Rename or recolour a block type."""
    setup_logging(verbose=verbose)
    store = open_store()
    bt = resolve_block_type(store, ref)
    patch = {k: v for k, v in {"name": name, "color": color}.items() if v is not None}
    if not patch:
        fail("Nothing to change. Pass --name and/or --color.")
    try:
        updated = store.update_block_type(bt.id, **patch)
    except ValueError as e:
        fail(str(e))
    console.print(f"[green]Updated block type:[/green] {updated.name} ({updated.color})")


@types_app.command("remove")
def type_remove(
    ref: str = typer.Argument(..., help="Index or name of the block type"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Remove a block type, its time blocks, and unassign its tasks."""
    setup_logging(verbose=verbose)
    store = open_store()
    bt = resolve_block_type(store, ref)
    n_blocks = len([b for b in store.get_time_blocks() if b.block_type_id == bt.id])
    if not yes:
        typer.confirm(
            f"Delete '{bt.name}' and its {n_blocks} time block(s)? Tasks will become universal.",
            abort=True,
        )
    store.delete_block_type(bt.id)
    console.print(f"[green]Removed block type:[/green] {bt.name}")


# --- time blocks -------------------------------------------------------


@blocks_app.command("add")
def block_add(
    day: str = typer.Argument(..., help="Day of week (e.g. mon, Monday, 1)"),
    start_time: str = typer.Argument(..., help="Start time (e.g. 9am, 09:00)"),
    end_time: str = typer.Argument(..., help="End time (e.g. 10:30am, 10:30)"),
    block_type: str = typer.Argument(..., help="Index or name of the block type"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Schedule a weekly time block."""
    setup_logging(verbose=verbose)
    store = open_store()
    manager = ScheduleManager(store)
    bt = resolve_block_type(store, block_type)

    try:
        result = manager.add_block(
            bt.id, parse_day(day), parse_user_time(start_time), parse_user_time(end_time)
        )
    except ValueError as e:
        fail(str(e))

    if not result.accepted:
        fail(f"{result.reason}. Time blocks on the same day cannot overlap.")
    console.print(
        f"[green]Scheduled {bt.name}:[/green] {DAY_NAMES[result.block.day_of_week]} "
        f"{span(result.block)}"
    )


@blocks_app.command("list")
def block_list(
    day: str | None = typer.Option(None, "--day", "-d", help="Only show one day"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List time blocks by day and start time."""
    setup_logging(verbose=verbose)
    store = open_store()
    manager = ScheduleManager(store)

    try:
        only_day = parse_day(day) if day is not None else None
    except ValueError as e:
        fail(str(e))

    rows = [
        (i, b) for i, b in enumerate(manager.ordered_blocks(), 1)
        if only_day is None or b.day_of_week == only_day
    ]
    if not rows:
        console.print("[yellow]No time blocks scheduled.[/yellow]")
        return

    table = Table(title="Weekly Time Blocks")
    table.add_column("#", justify="right", style="cyan", no_wrap=True)
    table.add_column("Day", style="magenta")
    table.add_column("Start", style="magenta")
    table.add_column("End", style="magenta")
    table.add_column("Duration", style="blue")
    table.add_column("Block Type", style="green")
    for i, b in rows:
        table.add_row(
            str(i),
            DAYS[b.day_of_week],
            to_12_hour(b.start_time),
            to_12_hour(b.end_time),
            format_duration_seconds((b.end_minutes - b.start_minutes) * 60),
            type_name(store, b.block_type_id),
        )
    console.print(table)


@blocks_app.command("edit")
def block_edit(
    index: int = typer.Argument(..., help="Index of the block (from `tbp block list`)"),
    day: str | None = typer.Option(None, "--day", "-d", help="New day of week"),
    start_time: str | None = typer.Option(None, "--start", "-s", help="New start time"),
    end_time: str | None = typer.Option(None, "--end", "-e", help="New end time"),
    block_type: str | None = typer.Option(None, "--type", "-t", help="New block type"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Move, resize or re-type a time block."""
    setup_logging(verbose=verbose)
    store = open_store()
    manager = ScheduleManager(store)
    target = block_by_index(manager, index)

    patch = {}
    try:
        if day is not None:
            patch["day_of_week"] = parse_day(day)
        if start_time is not None:
            patch["start_time"] = parse_user_time(start_time)
        if end_time is not None:
            patch["end_time"] = parse_user_time(end_time)
        if block_type is not None:
            patch["block_type_id"] = resolve_block_type(store, block_type).id
        if not patch:
            fail("Nothing to change.")
        result = manager.update_block(target.id, **patch)
    except ValueError as e:
        fail(str(e))

    if not result.accepted:
        fail(result.reason)
    console.print(
        f"[green]Updated block:[/green] {DAY_NAMES[result.block.day_of_week]} {span(result.block)}"
    )


@blocks_app.command("remove")
def block_remove(
    index: int = typer.Argument(..., help="Index of the block (from `tbp block list`)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Remove a time block."""
    setup_logging(verbose=verbose)
    store = open_store()
    manager = ScheduleManager(store)
    target = block_by_index(manager, index)
    manager.remove_block(target.id)
    console.print(f"[green]Removed block:[/green] {DAYS[target.day_of_week]} {span(target)}")


@app.command()
def week(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show the weekly calendar grid. Days with open deadlines are marked with '!'."""
    setup_logging(verbose=verbose)
    current_settings = load_settings()
    store = open_store()
    manager = ScheduleManager(store)
    grid = manager.week_grid()
    moment = datetime.now()
    start = week_start(moment, current_settings.week_start_day)
    dates = week_dates(start)
    today = day_index(moment)
    tasks = store.get_tasks()

    table = Table(title=f"Week of {format_week_range(start)}")
    table.add_column("Time", style="cyan", no_wrap=True)
    for d in dates:
        style = "bold green" if day_index(d) == today else "magenta"
        mark = " [red]![/red]" if has_deadline_on_date(tasks, d.date()) else ""
        table.add_column(f"{DAYS[day_index(d)]} {d.day}{mark}", style=style, no_wrap=True)

    labelled = set()
    for slot in time_slots(current_settings.time_range_start, current_settings.time_range_end):
        minute = time_to_minutes(slot)
        cells = []
        for d in dates:
            day_blocks = grid[day_index(d)]
            block = next((b for b in day_blocks if b.start_minutes <= minute < b.end_minutes), None)
            if block is None:
                cells.append("")
            elif block.id in labelled:
                cells.append("│")
            else:
                labelled.add(block.id)
                cells.append(type_name(store, block.block_type_id))
        table.add_row(to_12_hour(slot), *cells)
    console.print(table)


@app.command()
def now(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Show the active block, time left in it, and its tasks."""
    setup_logging(verbose=verbose)
    store = open_store()
    manager = ScheduleManager(store)
    snapshot = manager.context()

    if snapshot is None:
        console.print("[yellow]Nothing scheduled for the rest of today.[/yellow]")
        return

    label = "Buffer Time" if snapshot.is_buffer else snapshot.block_type.name
    console.print(f"[bold cyan]{label}[/bold cyan]  {span(snapshot.time_block)}")
    console.print(f"Remaining: [green]{format_duration_seconds(snapshot.remaining_seconds)}[/green]")

    tasks = manager.tasks_for(snapshot)
    heading = "Universal Tasks" if snapshot.is_buffer else "Associated Tasks"
    done = [t for t in tasks if t.completed]
    console.print(f"\n[bold]{heading}[/bold] ({len(done)}/{len(tasks)} completed)")
    if not tasks:
        console.print("[dim]No tasks here. Use this time for breaks, planning, or catching up.[/dim]")
    for t in tasks:
        mark = "[green]✔[/green]" if t.completed else "○"
        star = " [yellow]★[/yellow]" if t.priority else ""
        console.print(f"  {mark} {t.title}{star}")


# --- tasks -------------------------------------------------------------


@tasks_app.command("add")
def task_add(
    title: str = typer.Argument(..., help="Task title"),
    block_type: str | None = typer.Option(None, "--type", "-t", help="Block type (omit for universal)"),
    deadline: str | None = typer.Option(None, "--deadline", "-D", help="Deadline 'YYYY-MM-DD HH:MM'"),
    priority: bool = typer.Option(False, "--priority", "-p", help="Mark as priority"),
    description: str | None = typer.Option(None, "--desc", "-d", help="Optional description"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Add a task."""
    setup_logging(verbose=verbose)
    store = open_store()
    bt_id = resolve_block_type(store, block_type).id if block_type else None
    task = store.create_task(
        title,
        description=description,
        deadline=parse_deadline(deadline),
        priority=priority,
        block_type_id=bt_id,
    )
    console.print(f"[green]Added task:[/green] {task.title} ({type_name(store, task.block_type_id)})")


@tasks_app.command("list")
def task_list(
    archived: bool = typer.Option(False, "--archived", "-a", help="Show archived tasks"),
    block_type: str | None = typer.Option(None, "--type", "-t", help="Filter by block type"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List tasks."""
    setup_logging(verbose=verbose)
    store = open_store()
    bt_id = resolve_block_type(store, block_type).id if block_type else None
    rows = [
        (i, t) for i, t in enumerate(ordered_tasks(store, archived=archived), 1)
        if bt_id is None or t.block_type_id == bt_id
    ]
    if not rows:
        console.print("[yellow]No tasks found.[/yellow]")
        return

    table = Table(title="Archived Tasks" if archived else "Tasks")
    table.add_column("#", justify="right", style="cyan", no_wrap=True)
    table.add_column("Done", justify="center")
    table.add_column("Title", style="white")
    table.add_column("Block Type", style="magenta")
    table.add_column("Deadline")
    table.add_column("Subtasks", justify="right", style="blue")

    for i, t in rows:
        if t.deadline:
            urgency = deadline_urgency(t.deadline)
            deadline_text = f"[{URGENCY_STYLES[urgency]}]{t.deadline:%a %d %b %H:%M}[/]"
        else:
            deadline_text = ""
        subs = f"{sum(s.completed for s in t.subtasks)}/{len(t.subtasks)}" if t.subtasks else ""
        title = f"{t.title} [yellow]★[/yellow]" if t.priority else t.title
        table.add_row(
            str(i),
            "✔" if t.completed else "",
            title,
            type_name(store, t.block_type_id),
            deadline_text,
            subs,
        )
    console.print(table)


@tasks_app.command("done")
def task_done(
    index: int = typer.Argument(..., help="Index of the task (from `tbp task list`)"),
    undo: bool = typer.Option(False, "--undo", "-u", help="Mark as not done"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Mark a task as done (or not done)."""
    setup_logging(verbose=verbose)
    store = open_store()
    task = task_by_index(store, index)
    store.set_task_completed(task.id, completed=not undo)
    state = "reopened" if undo else "completed"
    console.print(f"[green]Task {state}:[/green] {task.title}")


@tasks_app.command("archive")
def task_archive(
    index: int = typer.Argument(..., help="Index of the task (from `tbp task list`)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Archive a task."""
    setup_logging(verbose=verbose)
    store = open_store()
    task = task_by_index(store, index)
    store.archive_task(task.id)
    console.print(f"[green]Archived:[/green] {task.title}")


@tasks_app.command("unarchive")
def task_unarchive(
    index: int = typer.Argument(..., help="Index of the task (from `tbp task list --archived`)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Restore an archived task."""
    setup_logging(verbose=verbose)
    store = open_store()
    task = task_by_index(store, index, archived=True)
    store.unarchive_task(task.id)
    console.print(f"[green]Restored:[/green] {task.title}")


@tasks_app.command("purge")
def task_purge(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Permanently delete all archived tasks."""
    setup_logging(verbose=verbose)
    store = open_store()
    if not yes:
        typer.confirm("Delete all archived tasks permanently?", abort=True)
    count = store.delete_archived_tasks()
    console.print(f"[green]Deleted {count} archived task(s).[/green]")


@tasks_app.command("sub")
def task_sub(
    index: int = typer.Argument(..., help="Index of the task (from `tbp task list`)"),
    title: str | None = typer.Argument(None, help="Subtask title to add"),
    toggle: int | None = typer.Option(None, "--toggle", "-t", help="Toggle subtask N"),
    remove: int | None = typer.Option(None, "--remove", "-r", help="Remove subtask N"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Add, toggle or remove subtasks, then show them."""
    setup_logging(verbose=verbose)
    store = open_store()
    task = task_by_index(store, index)

    for n in (toggle, remove):
        if n is not None and not 1 <= n <= len(task.subtasks):
            fail(f"Subtask index {n} is out of range.")
    if title:
        store.add_subtask(task.id, title)
    if toggle is not None:
        store.toggle_subtask(task.id, task.subtasks[toggle - 1].id)
    if remove is not None:
        store.remove_subtask(task.id, task.subtasks[remove - 1].id)

    task = store.get_task(task.id)
    console.print(f"[bold]{task.title}[/bold]")
    if not task.subtasks:
        console.print("[dim]No subtasks.[/dim]")
    for i, st in enumerate(task.subtasks, 1):
        mark = "[green]✔[/green]" if st.completed else "○"
        console.print(f"  {i}. {mark} {st.title}")


# --- focus timer -------------------------------------------------------


def _focus_prompt(timer: CountdownTimer) -> None:
    """Handles Ctrl+C during a focus session: pause, then ask what to do."""
    timer.pause()
    console.print(f"\n[yellow]Paused at {timer.format_time()}.[/yellow]")
    while timer.state == TimerState.PAUSED:
        choice = typer.prompt("[r]esume, [s]top, or +N/-N minutes", default="r").strip().lower()
        if choice in ("r", "resume"):
            timer.resume()
        elif choice in ("s", "stop"):
            timer.stop()
        else:
            try:
                timer.adjust(int(choice))
                console.print(f"Now {timer.format_time()} remaining.")
            except ValueError:
                console.print("[red]Unknown choice.[/red]")


@app.command()
def focus(
    minutes: int | None = typer.Option(None, "--minutes", "-m", help="Session length in minutes"),
    block_type: str | None = typer.Option(None, "--type", "-t", help="Block type to focus on"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run a focus timer for the active block. Press Ctrl+C to pause."""
    setup_logging(verbose=verbose)
    current_settings = load_settings()
    store = open_store()
    manager = ScheduleManager(store)
    snapshot = manager.context()

    if block_type:
        bt = resolve_block_type(store, block_type)
    elif snapshot is not None:
        bt = snapshot.block_type
    else:
        bt = BUFFER_BLOCK_TYPE

    seconds = initial_seconds_for(snapshot, minutes, current_settings.default_focus_minutes)
    task_titles = [t.title for t in manager.tasks_for(snapshot) if not t.completed][:5]
    sink = NotificationSink(store.bus, config=current_settings, console=console)
    timer = CountdownTimer(store)

    def render():
        status = f"{timer.state.value.title()}  ·  Ctrl+C to pause"
        return focus_view(bt, timer.format_time(), timer.progress(), status, task_titles)

    timer.start(seconds, bt.id)
    try:
        while timer.is_active:
            try:
                with Live(render(), console=console, refresh_per_second=4, screen=True) as live:
                    while timer.state == TimerState.RUNNING:
                        live.update(render())
                        time.sleep(0.25)
            except KeyboardInterrupt:
                _focus_prompt(timer)
    finally:
        completed = timer.state == TimerState.COMPLETED
        timer.stop()
        sink.close()

    if completed:
        display_completion(console)
    else:
        console.print("[yellow]Focus session ended early.[/yellow]")


# --- data --------------------------------------------------------------


@app.command(name="export")
def export_data(
    path: Path = typer.Argument(None, help="Output file (default: timeblock-pro-export-<date>.json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Export all data to a JSON file."""
    setup_logging(verbose=verbose)
    store = open_store()
    if path is None:
        path = Path(f"timeblock-pro-export-{datetime.now():%Y-%m-%d}.json")
    try:
        path.write_text(store.export_data())
    except OSError as e:
        fail(f"Failed to export data: {e}")
    console.print(f"[green]Data exported to[/green] {path}")


@app.command(name="import")
def import_data(
    path: Path = typer.Argument(..., help="JSON file produced by `tbp export`"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Replace all data with an export. The current data is backed up first."""
    setup_logging(verbose=verbose)
    try:
        payload = path.read_text()
    except OSError as e:
        fail(f"Could not read {path}: {e}")
    if not yes:
        typer.confirm("This replaces all current data. Continue?", abort=True)

    store = open_store()
    result = store.import_data(payload)
    if not result.success:
        fail(result.message)
    console.print(f"[green]{result.message}[/green]")
    for key, count in (result.stats or {}).items():
        console.print(f"  {key.replace('_', ' ')}: [cyan]{count}[/cyan]")


@app.command()
def restore(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Restore data from the last automatic backup."""
    setup_logging(verbose=verbose)
    current_settings = load_settings()
    store = ScheduleStore(
        current_settings.data_file, current_settings.backup_file, backup_on_load=False
    )
    if not store.restore_from_backup():
        fail("No usable backup available.")
    console.print("[green]Data restored from backup.[/green]")


# --- configuration & monitor ------------------------------------------


@app.command()
def config(
    audio: bool | None = typer.Option(None, "--audio/--no-audio", help="Chime on block transitions"),
    focus_minutes: int | None = typer.Option(None, "--focus-minutes", "-f", help="Default focus length"),
    poll_seconds: float | None = typer.Option(None, "--poll", help="Coarse poll interval in seconds"),
    week_start_day: str | None = typer.Option(None, "--week-start", help="First day of the week"),
    range_start: str | None = typer.Option(None, "--from", help="Calendar grid start time"),
    range_end: str | None = typer.Option(None, "--to", help="Calendar grid end time"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure notifications, timer defaults and the calendar grid."""
    setup_logging(verbose=verbose)
    current_settings = load_settings()

    try:
        if audio is not None:
            current_settings.audio_notifications = audio
        if focus_minutes is not None:
            if focus_minutes < 1:
                fail("Default focus length must be at least 1 minute.")
            current_settings.default_focus_minutes = focus_minutes
        if poll_seconds is not None:
            if poll_seconds <= 0:
                fail("Poll interval must be positive.")
            current_settings.coarse_poll_seconds = poll_seconds
        if week_start_day is not None:
            current_settings.week_start_day = parse_day(week_start_day)
        if range_start is not None:
            current_settings.time_range_start = parse_user_time(range_start)
        if range_end is not None:
            current_settings.time_range_end = parse_user_time(range_end)
    except ValueError as e:
        fail(str(e))

    if time_to_minutes(current_settings.time_range_end) <= time_to_minutes(current_settings.time_range_start):
        fail("Calendar grid end must be after its start.")

    current_settings.save()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Audio Notifications", "On" if current_settings.audio_notifications else "Off")
    table.add_row("Default Focus (m)", str(current_settings.default_focus_minutes))
    table.add_row("Poll Interval (s)", str(current_settings.coarse_poll_seconds))
    table.add_row("Week Starts On", DAY_NAMES[current_settings.week_start_day])
    table.add_row(
        "Calendar Range",
        f"{to_12_hour(current_settings.time_range_start)} - {to_12_hour(current_settings.time_range_end)}",
    )
    table.add_row("Data File", str(current_settings.data_file))
    console.print(table)
    console.print("[green]Configuration saved![/green]")


@app.command()
def monitor(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run the block transition monitor in the foreground."""
    setup_logging(verbose=verbose, component="monitor")
    run_daemon()


@app.command()
def status(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Check whether the monitor is running and what block it sees."""
    setup_logging(verbose=verbose)
    state = read_state()
    monitor_pid = state.get("pid") if is_monitor_running(state) else None

    console.print("[bold cyan]TimeBlock Pro - Monitor Status[/bold cyan]")
    status_text = (
        "[bold green]● Running[/bold green]" if monitor_pid else "[bold red]○ Stopped[/bold red]"
    )
    console.print(f"Monitor: {status_text}")
    if monitor_pid:
        console.print(f"Monitor PID: [magenta]{monitor_pid}[/magenta]")

    active = state.get("active_block") if state and monitor_pid else None
    if active:
        console.print(
            f"\n[bold yellow]ACTIVE BLOCK[/bold yellow] {active['block_type']} "
            f"({to_12_hour(active['start_time'])} - {to_12_hour(active['end_time'])}), "
            f"{active['remaining_minutes']}m left"
        )
    elif monitor_pid:
        console.print("\nNo block currently active.")
    else:
        console.print("\n[dim]To start the monitor, run: [bold]tbp monitor[/bold][/dim]")


@app.callback()
def main():
    """
    TimeBlock Pro - plan your week in time blocks and focus inside them.

    Use 'type add' to create categories, 'block add' to schedule them,
    'now' to see the active block and 'focus' to start a timer.
    """


if __name__ == "__main__":
    app()
