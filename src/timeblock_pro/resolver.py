"""
Maps wall-clock time onto the weekly block grid.

``resolve`` finds the block containing ``now`` (start inclusive, end
exclusive). When nothing is scheduled, ``resolve_or_buffer`` fills the gap
with a transient buffer block that hosts the focus timer and universal tasks
until the next block starts.
"""

from datetime import datetime
from typing import Iterable

from loguru import logger

from timeblock_pro.schema import (
    BUFFER_BLOCK_TYPE,
    BUFFER_BLOCK_TYPE_ID,
    ActiveBlockSnapshot,
    BlockType,
    TimeBlock,
)
from timeblock_pro.utils.time import LAST_MINUTE, day_index, minutes_to_time


def _minute_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute


def _second_of_day(now: datetime) -> int:
    return now.hour * 3600 + now.minute * 60 + now.second


def remaining_minutes(block: TimeBlock, now: datetime) -> int:
    return max(0, block.end_minutes - _minute_of_day(now))


def remaining_seconds(block: TimeBlock, now: datetime) -> int:
    return max(0, block.end_minutes * 60 - _second_of_day(now))


def find_active_block(now: datetime, blocks: Iterable[TimeBlock]) -> TimeBlock | None:
    current_day = day_index(now)
    current = _minute_of_day(now)
    for block in blocks:
        if block.day_of_week == current_day and block.start_minutes <= current < block.end_minutes:
            return block
    return None


def resolve(
    now: datetime,
    blocks: Iterable[TimeBlock],
    block_types: Iterable[BlockType],
) -> ActiveBlockSnapshot | None:
    """Returns the active block joined with its type, or None."""
    block = find_active_block(now, blocks)
    if block is None:
        return None

    block_type = next((bt for bt in block_types if bt.id == block.block_type_id), None)
    if block_type is None:
        logger.debug(f"Block {block.id} references missing block type {block.block_type_id}")
        return None

    return ActiveBlockSnapshot(
        time_block=block,
        block_type=block_type,
        remaining_minutes=remaining_minutes(block, now),
        remaining_seconds=remaining_seconds(block, now),
    )


def next_block(now: datetime, blocks: Iterable[TimeBlock]) -> TimeBlock | None:
    """The earliest block later today that has not started yet."""
    current_day = day_index(now)
    current = _minute_of_day(now)
    upcoming = [
        b for b in blocks if b.day_of_week == current_day and b.start_minutes > current
    ]
    return min(upcoming, key=lambda b: b.start_minutes, default=None)


def buffer_block(now: datetime, blocks: Iterable[TimeBlock]) -> TimeBlock | None:
    """
    Synthesises the buffer block running from the current minute until the
    next block starts, or until 23:59 when nothing else is scheduled today.
    Returns None at 23:59 with nothing left, where the gap has no length.
    """
    current = _minute_of_day(now)
    upcoming = next_block(now, blocks)
    end = upcoming.start_minutes if upcoming else LAST_MINUTE
    if end <= current:
        return None
    return TimeBlock(
        id=f"{BUFFER_BLOCK_TYPE_ID}-{day_index(now)}-{minutes_to_time(current)}",
        block_type_id=BUFFER_BLOCK_TYPE_ID,
        day_of_week=day_index(now),
        start_time=minutes_to_time(current),
        end_time=minutes_to_time(end),
        created_at=now,
    )


def resolve_or_buffer(
    now: datetime,
    blocks: Iterable[TimeBlock],
    block_types: Iterable[BlockType],
) -> ActiveBlockSnapshot | None:
    """Like ``resolve`` but falls back to a buffer block for gaps."""
    blocks = list(blocks)
    snapshot = resolve(now, blocks, block_types)
    if snapshot is not None:
        return snapshot

    buffer = buffer_block(now, blocks)
    if buffer is None:
        return None
    return ActiveBlockSnapshot(
        time_block=buffer,
        block_type=BUFFER_BLOCK_TYPE,
        remaining_minutes=remaining_minutes(buffer, now),
        remaining_seconds=remaining_seconds(buffer, now),
    )
