import json
import os
from datetime import datetime

from timeblock_pro.schema import ActiveBlockSnapshot
from timeblock_pro.settings import settings


_last_written_state: dict | None = None


def snapshot_info(snapshot: ActiveBlockSnapshot | None) -> dict | None:
    if snapshot is None:
        return None
    return {
        "block_id": snapshot.time_block.id,
        "block_type": snapshot.block_type.name,
        "start_time": snapshot.time_block.start_time,
        "end_time": snapshot.time_block.end_time,
        "remaining_minutes": snapshot.remaining_minutes,
    }


def write_state(active_block: ActiveBlockSnapshot | None = None):
    """Writes the monitor's current state to a file for the 'status' command."""
    global _last_written_state
    state = {
        "pid": os.getpid(),
        "active_block": snapshot_info(active_block),
    }

    if state == _last_written_state:
        return

    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        with open(settings.state_file, "w") as f:
            json.dump({**state, "last_update": datetime.now().isoformat()}, f, indent=4)
        _last_written_state = state
    except OSError:
        pass


def read_state() -> dict | None:
    if not settings.state_file.exists():
        return None
    try:
        with open(settings.state_file) as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError):
        return None


def cleanup_state():
    """Removes the state file when the monitor stops."""
    global _last_written_state
    _last_written_state = None
    if settings.state_file.exists():
        try:
            settings.state_file.unlink()
        except OSError:
            pass
