from datetime import datetime

from loguru import logger

from timeblock_pro.overlap import find_conflicts
from timeblock_pro.resolver import resolve, resolve_or_buffer
from timeblock_pro.schema import ActiveBlockSnapshot, ScheduleResult, Task, TimeBlock
from timeblock_pro.store import ScheduleStore
from timeblock_pro.utils.time import day_index


class ScheduleManager:
    """Gatekeeper for time-block writes plus the queries the CLI needs."""

    def __init__(self, store: ScheduleStore):
        self.store = store

    def _reject(self, candidate: TimeBlock, conflicts: list[TimeBlock]) -> ScheduleResult:
        clash = ", ".join(f"{b.start_time}-{b.end_time}" for b in conflicts)
        logger.info(
            f"Rejected block {candidate.start_time}-{candidate.end_time} "
            f"on day {candidate.day_of_week}: overlaps {clash}"
        )
        return ScheduleResult(
            accepted=False,
            conflicts=conflicts,
            reason=f"Overlaps existing block(s): {clash}",
        )

    def add_block(
        self, block_type_id: str, day_of_week: int, start_time: str, end_time: str
    ) -> ScheduleResult:
        """Creates a block unless it overlaps another block on the same day."""
        if self.store.get_block_type(block_type_id) is None:
            raise ValueError(f"Unknown block type: {block_type_id}")

        # Validates format and ordering before anything is written.
        candidate = TimeBlock(
            block_type_id=block_type_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
        )
        conflicts = find_conflicts(self.store.get_time_blocks(), candidate)
        if conflicts:
            return self._reject(candidate, conflicts)

        block = self.store.create_time_block(
            candidate.block_type_id,
            candidate.day_of_week,
            candidate.start_time,
            candidate.end_time,
        )
        logger.info(f"Added block {block.start_time}-{block.end_time} on day {block.day_of_week}")
        return ScheduleResult(accepted=True, block=block)

    def update_block(self, block_id: str, **patch) -> ScheduleResult:
        """Edits a block; the edited block is excluded from its own overlap check."""
        current = self.store.get_time_block(block_id)
        if current is None:
            return ScheduleResult(accepted=False, reason=f"No time block with id {block_id}")

        block_type_id = patch.get("block_type_id")
        if block_type_id is not None and self.store.get_block_type(block_type_id) is None:
            raise ValueError(f"Unknown block type: {block_type_id}")

        candidate = TimeBlock.model_validate({**current.model_dump(), **patch, "id": current.id})
        conflicts = find_conflicts(self.store.get_time_blocks(), candidate, exclude_id=block_id)
        if conflicts:
            return self._reject(candidate, conflicts)

        block = self.store.update_time_block(
            block_id,
            block_type_id=candidate.block_type_id,
            day_of_week=candidate.day_of_week,
            start_time=candidate.start_time,
            end_time=candidate.end_time,
        )
        return ScheduleResult(accepted=True, block=block)

    def remove_block(self, block_id: str) -> bool:
        return self.store.delete_time_block(block_id)

    def blocks_for_day(self, day_of_week: int) -> list[TimeBlock]:
        blocks = [b for b in self.store.get_time_blocks() if b.day_of_week == day_of_week]
        return sorted(blocks, key=lambda b: b.start_minutes)

    def week_grid(self) -> dict[int, list[TimeBlock]]:
        return {day: self.blocks_for_day(day) for day in range(7)}

    def ordered_blocks(self) -> list[TimeBlock]:
        """All blocks by day then start time; the CLI numbers blocks in this order."""
        return sorted(self.store.get_time_blocks(), key=lambda b: (b.day_of_week, b.start_minutes))

    def active(self, now: datetime | None = None) -> ActiveBlockSnapshot | None:
        return resolve(now or datetime.now(), self.store.get_time_blocks(), self.store.get_block_types())

    def context(self, now: datetime | None = None) -> ActiveBlockSnapshot | None:
        """The active block, or a buffer block covering the gap until the next one."""
        return resolve_or_buffer(
            now or datetime.now(), self.store.get_time_blocks(), self.store.get_block_types()
        )

    def tasks_for(self, snapshot: ActiveBlockSnapshot | None) -> list[Task]:
        """Open tasks for a block: universal tasks during buffer time, else the block type's."""
        tasks = [t for t in self.store.get_tasks() if not t.archived]
        if snapshot is None or snapshot.is_buffer:
            return [t for t in tasks if t.block_type_id is None]
        return [t for t in tasks if t.block_type_id == snapshot.block_type.id]

    def upcoming_deadlines(self, limit: int = 10) -> list[Task]:
        """Open tasks with a deadline, soonest (including overdue) first."""
        pending = [
            t for t in self.store.get_tasks()
            if t.deadline is not None and not t.completed and not t.archived
        ]
        return sorted(pending, key=lambda t: t.deadline)[:limit]

    def today_blocks(self, now: datetime | None = None) -> list[TimeBlock]:
        return self.blocks_for_day(day_index(now or datetime.now()))
