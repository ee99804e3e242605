import hashlib
import json
import os
import shutil
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from timeblock_pro.errors import DuplicateName
from timeblock_pro.overlap import find_conflicts
from timeblock_pro.schema import (
    AppData,
    BlockType,
    ImportResult,
    Subtask,
    Task,
    TimeBlock,
    TimerSession,
)
from timeblock_pro.settings import settings
from timeblock_pro.utils.events import DataChanged, EventBus

APP_VERSION = "1.0.0"
EXPORT_APP_NAME = "TimeBlock Pro"
_WRAPPER_KEYS = ("_metadata", "_export")


def default_block_types() -> list[BlockType]:
    return [
        BlockType(name="Study Time", color="hsl(142, 76%, 36%)"),
        BlockType(name="Work Focus", color="hsl(262, 83%, 58%)"),
        BlockType(name="Morning Routine", color="hsl(221, 83%, 53%)"),
    ]


def default_app_data() -> AppData:
    return AppData(block_types=default_block_types())


def checksum(data: AppData) -> str:
    payload = json.dumps(data.model_dump(mode="json"), sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def parse_app_data(raw: Any) -> AppData:
    """Validates a decoded JSON document, ignoring save/export wrappers."""
    if not isinstance(raw, dict):
        raise ValueError("Invalid data structure")
    body = {k: v for k, v in raw.items() if k not in _WRAPPER_KEYS}
    return AppData.model_validate(body)


def _patched(model: BaseModel, patch: dict) -> BaseModel:
    """Applies ``patch`` and re-runs validation, keeping id and created_at."""
    patch = {k: v for k, v in patch.items() if k not in ("id", "created_at")}
    return type(model).model_validate({**model.model_dump(), **patch})


def write_json_atomic(path: Path, document: dict):
    """Writes beside ``path`` then renames over it, so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        with open(tmp_path, "w") as f:
            json.dump(document, f, indent=4)
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class ScheduleStore:
    """
    Owns block types, time blocks, tasks and timer sessions, persisted as a
    single JSON document. Every successful mutation saves and publishes
    ``DataChanged`` on the bus.

    Single writes are not checked for overlaps; they go through
    ``ScheduleManager`` for that. Loads and imports drop clashing blocks
    in the integrity pass.
    """

    def __init__(
        self,
        data_file: Path | None = None,
        backup_file: Path | None = None,
        bus: EventBus | None = None,
        backup_on_load: bool = True,
    ):
        self.data_file = Path(data_file or settings.data_file)
        self.backup_file = Path(backup_file or self.data_file.with_name("backup.json"))
        self.bus = bus or EventBus()
        self._lock = threading.RLock()
        self.data = self._load()
        self._validate_integrity()
        if backup_on_load:
            self.create_backup()

    # --- persistence ---------------------------------------------------

    def _mtime(self) -> float | None:
        try:
            return self.data_file.stat().st_mtime
        except OSError:
            return None

    def _load(self) -> AppData:
        self._last_mtime = self._mtime()
        if self._last_mtime is None:
            logger.info("No data file found, using default app data.")
            return default_app_data()

        try:
            data = self._read_file()
            logger.info(f"Data loaded from {self.data_file}")
            return data
        except (json.JSONDecodeError, ValidationError, ValueError, OSError) as e:
            logger.error(f"Failed to load data: {e}")
            self._backup_corrupted()
            return default_app_data()

    def _read_file(self) -> AppData:
        with open(self.data_file) as f:
            return parse_app_data(json.load(f))

    def reload_if_changed(self) -> bool:
        """
        Re-reads the data file when another process has written it.

        An unreadable file keeps the in-memory data and is retried on the
        next call; only the initial load falls back to defaults.
        """
        with self._lock:
            mtime = self._mtime()
            if mtime is None or mtime == self._last_mtime:
                return False
            try:
                data = self._read_file()
            except (json.JSONDecodeError, ValidationError, ValueError, OSError) as e:
                logger.warning(f"Skipping reload of unreadable data file: {e}")
                return False
            self.data = data
            self._last_mtime = mtime
            self._validate_integrity()
        self.bus.publish(DataChanged())
        return True

    def _backup_corrupted(self):
        timestamp = datetime.now().strftime("%Y%m%dT%H%M%S")
        target = self.data_file.with_name(f"{self.data_file.stem}.corrupted-{timestamp}.json")
        try:
            shutil.copy2(self.data_file, target)
            logger.warning(f"Corrupted data backed up to: {target}")
        except OSError as e:
            logger.error(f"Could not back up corrupted data: {e}")

    def _validate_integrity(self):
        """Drops orphan or overlapping time blocks and unassigns orphan tasks."""
        with self._lock:
            known = {bt.id for bt in self.data.block_types}
            changed = False

            orphan_tasks = [t for t in self.data.tasks if t.block_type_id and t.block_type_id not in known]
            if orphan_tasks:
                logger.warning(f"Unassigning {len(orphan_tasks)} tasks with unknown block types.")
                for task in orphan_tasks:
                    task.block_type_id = None
                changed = True

            kept = [tb for tb in self.data.time_blocks if tb.block_type_id in known]
            if len(kept) != len(self.data.time_blocks):
                logger.warning(
                    f"Removing {len(self.data.time_blocks) - len(kept)} time blocks "
                    "with unknown block types."
                )
                self.data.time_blocks = kept
                changed = True

            # First block wins when imported or hand-edited data overlaps.
            non_overlapping = []
            for tb in self.data.time_blocks:
                clashes = find_conflicts(non_overlapping, tb)
                if clashes:
                    logger.warning(
                        f"Dropping time block {tb.start_time}-{tb.end_time} on day "
                        f"{tb.day_of_week}: overlaps {clashes[0].start_time}-{clashes[0].end_time}"
                    )
                    continue
                non_overlapping.append(tb)
            if len(non_overlapping) != len(self.data.time_blocks):
                self.data.time_blocks = non_overlapping
                changed = True

            if changed:
                self.save()

    def save(self, notify: bool = True):
        """Writes the document with a metadata header."""
        with self._lock:
            document = {
                **self.data.model_dump(mode="json"),
                "_metadata": {
                    "version": APP_VERSION,
                    "last_saved": datetime.now().isoformat(),
                    "checksum": checksum(self.data),
                },
            }
            try:
                write_json_atomic(self.data_file, document)
                self._last_mtime = self._mtime()
            except OSError as e:
                logger.error(f"Failed to save data: {e}")
                return
        if notify:
            self.bus.publish(DataChanged())

    def create_backup(self):
        with self._lock:
            backup = {
                "data": self.data.model_dump(mode="json"),
                "timestamp": datetime.now().isoformat(),
                "version": APP_VERSION,
            }
            try:
                write_json_atomic(self.backup_file, backup)
            except OSError as e:
                logger.error(f"Failed to create backup: {e}")

    def restore_from_backup(self) -> bool:
        if not self.backup_file.exists():
            logger.warning("No backup available.")
            return False
        try:
            with open(self.backup_file) as f:
                backup = json.load(f)
            restored = parse_app_data(backup.get("data"))
        except (json.JSONDecodeError, ValidationError, ValueError, OSError) as e:
            logger.error(f"Failed to restore from backup: {e}")
            return False

        with self._lock:
            self.data = restored
            self.save()
        logger.info("Data restored from backup.")
        return True

    def export_data(self) -> str:
        with self._lock:
            document = {
                **self.data.model_dump(mode="json"),
                "_export": {
                    "version": APP_VERSION,
                    "exported_at": datetime.now().isoformat(),
                    "app_name": EXPORT_APP_NAME,
                    "checksum": checksum(self.data),
                },
            }
        return json.dumps(document, indent=2)

    def import_data(self, json_string: str) -> ImportResult:
        """Replaces all data with an export; the previous state is backed up first."""
        try:
            imported = parse_app_data(json.loads(json_string))
        except json.JSONDecodeError:
            return ImportResult(success=False, message="Invalid data format. Please check the JSON file.")
        except (ValidationError, ValueError) as e:
            logger.error(f"Import validation failed: {e}")
            return ImportResult(success=False, message="Data validation failed. File may be corrupted.")

        self.create_backup()
        stats = {
            "block_types": len(imported.block_types),
            "time_blocks": len(imported.time_blocks),
            "tasks": len(imported.tasks),
            "timer_sessions": len(imported.timer_sessions),
        }
        with self._lock:
            self.data = imported
            self._validate_integrity()
            self.save()
        logger.info(f"Data imported successfully: {stats}")
        return ImportResult(success=True, message="Data imported successfully!", stats=stats)

    # --- block types ---------------------------------------------------

    def get_block_types(self) -> list[BlockType]:
        return list(self.data.block_types)

    def get_block_type(self, block_type_id: str) -> BlockType | None:
        return next((bt for bt in self.data.block_types if bt.id == block_type_id), None)

    def find_block_type(self, name: str) -> BlockType | None:
        key = name.strip().casefold()
        return next((bt for bt in self.data.block_types if bt.name.casefold() == key), None)

    def _check_unique_name(self, name: str, exclude_id: str | None = None):
        existing = self.find_block_type(name)
        if existing and existing.id != exclude_id:
            raise DuplicateName(f"A block type named '{existing.name}' already exists")

    def create_block_type(self, name: str, color: str) -> BlockType:
        with self._lock:
            block_type = BlockType(name=name, color=color)
            self._check_unique_name(block_type.name)
            self.data.block_types.append(block_type)
            self.save()
        return block_type

    def update_block_type(self, block_type_id: str, **patch) -> BlockType | None:
        with self._lock:
            for i, bt in enumerate(self.data.block_types):
                if bt.id == block_type_id:
                    updated = _patched(bt, patch)
                    self._check_unique_name(updated.name, exclude_id=bt.id)
                    self.data.block_types[i] = updated
                    self.save()
                    return updated
        return None

    def delete_block_type(self, block_type_id: str) -> bool:
        """Deletes a block type, its time blocks, and unassigns its tasks."""
        with self._lock:
            if self.get_block_type(block_type_id) is None:
                return False
            self.data.block_types = [bt for bt in self.data.block_types if bt.id != block_type_id]
            self.data.time_blocks = [
                tb for tb in self.data.time_blocks if tb.block_type_id != block_type_id
            ]
            for task in self.data.tasks:
                if task.block_type_id == block_type_id:
                    task.block_type_id = None
            self.save()
        return True

    # --- time blocks ---------------------------------------------------

    def get_time_blocks(self) -> list[TimeBlock]:
        return list(self.data.time_blocks)

    def get_time_block(self, block_id: str) -> TimeBlock | None:
        return next((tb for tb in self.data.time_blocks if tb.id == block_id), None)

    def create_time_block(
        self, block_type_id: str, day_of_week: int, start_time: str, end_time: str
    ) -> TimeBlock:
        block = TimeBlock(
            block_type_id=block_type_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
        )
        with self._lock:
            self.data.time_blocks.append(block)
            self.save()
        return block

    def update_time_block(self, block_id: str, **patch) -> TimeBlock | None:
        with self._lock:
            for i, tb in enumerate(self.data.time_blocks):
                if tb.id == block_id:
                    updated = _patched(tb, patch)
                    self.data.time_blocks[i] = updated
                    self.save()
                    return updated
        return None

    def delete_time_block(self, block_id: str) -> bool:
        with self._lock:
            before = len(self.data.time_blocks)
            self.data.time_blocks = [tb for tb in self.data.time_blocks if tb.id != block_id]
            if len(self.data.time_blocks) == before:
                return False
            self.save()
        return True

    # --- tasks ---------------------------------------------------------

    def get_tasks(self) -> list[Task]:
        return list(self.data.tasks)

    def get_task(self, task_id: str) -> Task | None:
        return next((t for t in self.data.tasks if t.id == task_id), None)

    def create_task(self, title: str, **fields) -> Task:
        task = Task(title=title, **fields)
        with self._lock:
            self.data.tasks.append(task)
            self.save()
        return task

    def update_task(self, task_id: str, **patch) -> Task | None:
        with self._lock:
            for i, task in enumerate(self.data.tasks):
                if task.id == task_id:
                    updated = _patched(task, patch)
                    self.data.tasks[i] = updated
                    self.save()
                    return updated
        return None

    def set_task_completed(self, task_id: str, completed: bool = True) -> Task | None:
        return self.update_task(
            task_id,
            completed=completed,
            completed_at=datetime.now() if completed else None,
        )

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            before = len(self.data.tasks)
            self.data.tasks = [t for t in self.data.tasks if t.id != task_id]
            if len(self.data.tasks) == before:
                return False
            self.save()
        return True

    def archive_task(self, task_id: str) -> bool:
        return self.update_task(task_id, archived=True, archived_at=datetime.now()) is not None

    def unarchive_task(self, task_id: str) -> bool:
        return self.update_task(task_id, archived=False, archived_at=None) is not None

    def get_archived_tasks(self) -> list[Task]:
        return [t for t in self.data.tasks if t.archived]

    def delete_archived_tasks(self) -> int:
        with self._lock:
            archived = len(self.get_archived_tasks())
            self.data.tasks = [t for t in self.data.tasks if not t.archived]
            self.save()
        return archived

    def add_subtask(self, task_id: str, title: str) -> Subtask | None:
        task = self.get_task(task_id)
        if task is None:
            return None
        subtask = Subtask(title=title)
        self.update_task(task_id, subtasks=[*task.subtasks, subtask])
        return subtask

    def toggle_subtask(self, task_id: str, subtask_id: str) -> Subtask | None:
        task = self.get_task(task_id)
        if task is None:
            return None
        toggled = None
        subtasks = []
        for st in task.subtasks:
            if st.id == subtask_id:
                st = st.model_copy(update={"completed": not st.completed})
                toggled = st
            subtasks.append(st)
        if toggled is not None:
            self.update_task(task_id, subtasks=subtasks)
        return toggled

    def remove_subtask(self, task_id: str, subtask_id: str) -> bool:
        task = self.get_task(task_id)
        if task is None:
            return False
        remaining = [st for st in task.subtasks if st.id != subtask_id]
        if len(remaining) == len(task.subtasks):
            return False
        self.update_task(task_id, subtasks=remaining)
        return True

    # --- timer sessions ------------------------------------------------

    def get_timer_sessions(self) -> list[TimerSession]:
        return list(self.data.timer_sessions)

    def get_timer_session(self, session_id: str) -> TimerSession | None:
        return next((s for s in self.data.timer_sessions if s.id == session_id), None)

    def create_timer_session(self, block_type_id: str, start_time: datetime | None = None) -> TimerSession:
        session = TimerSession(block_type_id=block_type_id, start_time=start_time or datetime.now())
        with self._lock:
            self.data.timer_sessions.append(session)
            self.save()
        return session

    def update_timer_session(self, session_id: str, **patch) -> TimerSession | None:
        with self._lock:
            for i, session in enumerate(self.data.timer_sessions):
                if session.id == session_id:
                    updated = _patched(session, patch)
                    self.data.timer_sessions[i] = updated
                    self.save()
                    return updated
        return None
