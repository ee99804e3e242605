import threading
from datetime import datetime

from loguru import logger
from rich.console import Console

from timeblock_pro.monitor import TransitionMonitor
from timeblock_pro.resolver import resolve
from timeblock_pro.settings import load_settings
from timeblock_pro.store import ScheduleStore
from timeblock_pro.utils.events import BlockEnded, BlockStarted
from timeblock_pro.utils.notifications import NotificationSink
from timeblock_pro.utils.state import cleanup_state, write_state
from timeblock_pro.utils.time import to_12_hour

console = Console()

STATE_REFRESH_SECONDS = 5


def _print_event(event):
    snap = event.snapshot
    span = f"{to_12_hour(snap.time_block.start_time)} - {to_12_hour(snap.time_block.end_time)}"
    if isinstance(event, BlockStarted):
        console.print(f"[bold green]▶ {snap.block_type.name}[/bold green] started ({span})")
    else:
        console.print(f"[bold yellow]■ {snap.block_type.name}[/bold yellow] ended ({span})")


def run_daemon(stop_event: threading.Event | None = None):
    """Runs the transition monitor in the foreground until interrupted."""
    current_settings = load_settings()
    store = ScheduleStore(current_settings.data_file, current_settings.backup_file)
    sink = NotificationSink(store.bus, config=current_settings, console=console)
    subscriptions = [
        store.bus.subscribe(BlockStarted, _print_event),
        store.bus.subscribe(BlockEnded, _print_event),
    ]
    monitor = TransitionMonitor(
        store,
        coarse_poll_seconds=current_settings.coarse_poll_seconds,
        transition_gap_seconds=current_settings.transition_gap_seconds,
    )
    stop_event = stop_event or threading.Event()

    console.print("[bold green]TimeBlock Pro monitor started...[/bold green]")
    console.print(f"Data file: [cyan]{store.data_file}[/cyan]")
    console.print("Watching for block transitions. Press Ctrl+C to stop.")

    try:
        monitor.start()
        while not stop_event.is_set():
            # Pick up edits made by other `tbp` invocations.
            if store.reload_if_changed():
                logger.info("Data file changed on disk; reloaded.")
            write_state(resolve_current(store))
            stop_event.wait(timeout=STATE_REFRESH_SECONDS)
    except KeyboardInterrupt:
        pass
    finally:
        console.print("\n[yellow]Stopping monitor...[/yellow]")
        monitor.stop()
        sink.close()
        for sub in subscriptions:
            sub.close()
        cleanup_state()


def resolve_current(store: ScheduleStore):
    return resolve(datetime.now(), store.get_time_blocks(), store.get_block_types())
