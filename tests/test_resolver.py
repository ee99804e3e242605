from datetime import datetime

from timeblock_pro.resolver import (
    buffer_block,
    next_block,
    remaining_minutes,
    remaining_seconds,
    resolve,
    resolve_or_buffer,
)
from timeblock_pro.schema import BUFFER_BLOCK_TYPE_ID, BlockType, TimeBlock

# 2026-10-19 is a Monday (day 1).
MONDAY = datetime(2026, 10, 19)

STUDY = BlockType(id="study", name="Study Time", color="#00aa00")
BLOCKS = [
    TimeBlock(id="morning", block_type_id="study", day_of_week=1, start_time="09:00", end_time="10:00"),
    TimeBlock(id="evening", block_type_id="study", day_of_week=1, start_time="18:00", end_time="19:30"),
    TimeBlock(id="tuesday", block_type_id="study", day_of_week=2, start_time="09:00", end_time="10:00"),
]


def at(hour, minute, second=0):
    return MONDAY.replace(hour=hour, minute=minute, second=second)


def test_start_is_inclusive_end_is_exclusive():
    assert resolve(at(8, 59), BLOCKS, [STUDY]) is None
    assert resolve(at(9, 0), BLOCKS, [STUDY]).id == "morning"
    assert resolve(at(9, 59, 59), BLOCKS, [STUDY]).id == "morning"
    assert resolve(at(10, 0), BLOCKS, [STUDY]) is None


def test_resolve_only_matches_todays_blocks():
    tuesday = datetime(2026, 10, 20, 9, 30)
    assert resolve(tuesday, BLOCKS, [STUDY]).id == "tuesday"


def test_snapshot_carries_block_type_and_remaining():
    snap = resolve(at(9, 15, 30), BLOCKS, [STUDY])
    assert snap.block_type.name == "Study Time"
    assert snap.remaining_minutes == 45
    assert snap.remaining_seconds == 44 * 60 + 30
    assert not snap.is_buffer


def test_dangling_block_type_resolves_to_none():
    assert resolve(at(9, 30), BLOCKS, []) is None


def test_remaining_never_negative():
    assert remaining_minutes(BLOCKS[0], at(11, 0)) == 0
    assert remaining_seconds(BLOCKS[0], at(11, 0)) == 0


def test_next_block():
    assert next_block(at(10, 0), BLOCKS).id == "evening"
    assert next_block(at(18, 0), BLOCKS) is None


def test_buffer_runs_until_next_block():
    buffer = buffer_block(at(11, 20), BLOCKS)
    assert buffer.block_type_id == BUFFER_BLOCK_TYPE_ID
    assert buffer.is_buffer
    assert (buffer.start_time, buffer.end_time) == ("11:20", "18:00")
    assert buffer.id == "buffer-time-1-11:20"


def test_buffer_runs_until_end_of_day():
    buffer = buffer_block(at(20, 0), BLOCKS)
    assert (buffer.start_time, buffer.end_time) == ("20:00", "23:59")


def test_no_buffer_in_last_minute():
    assert buffer_block(at(23, 59), BLOCKS) is None
    assert resolve_or_buffer(at(23, 59), BLOCKS, [STUDY]) is None


def test_resolve_or_buffer_prefers_real_block():
    assert resolve_or_buffer(at(9, 30), BLOCKS, [STUDY]).id == "morning"
    snap = resolve_or_buffer(at(17, 0), BLOCKS, [STUDY])
    assert snap.is_buffer
    assert snap.block_type.name == "Buffer Time"
    assert snap.remaining_minutes == 60
