from typing import Iterable, Protocol

from timeblock_pro.schema import TimeBlock
from timeblock_pro.utils.time import time_to_minutes


class Slot(Protocol):
    day_of_week: int
    start_time: str
    end_time: str


def find_conflicts(
    existing_blocks: Iterable[TimeBlock],
    candidate: Slot,
    exclude_id: str | None = None,
) -> list[TimeBlock]:
    """
    Returns the blocks on the candidate's day whose half-open [start, end)
    interval intersects the candidate's. A block ending at 09:00 does not
    clash with one starting at 09:00.

    ``exclude_id`` skips the block being edited so it is not compared with
    its own pre-edit version.
    """
    cand_start = time_to_minutes(candidate.start_time)
    cand_end = time_to_minutes(candidate.end_time)

    conflicts = []
    for block in existing_blocks:
        if exclude_id is not None and block.id == exclude_id:
            continue
        if block.day_of_week != candidate.day_of_week:
            continue
        if cand_start < block.end_minutes and cand_end > block.start_minutes:
            conflicts.append(block)
    return conflicts


def is_overlapping(
    existing_blocks: Iterable[TimeBlock],
    candidate: Slot,
    exclude_id: str | None = None,
) -> bool:
    """True if the candidate slot clashes with any existing block."""
    return bool(find_conflicts(existing_blocks, candidate, exclude_id))
