import pytest
from timeblock_pro.overlap import find_conflicts, is_overlapping
from timeblock_pro.schema import TimeBlock


def block(start, end, day=1, block_id=None):
    fields = {"block_type_id": "bt", "day_of_week": day, "start_time": start, "end_time": end}
    if block_id:
        fields["id"] = block_id
    return TimeBlock(**fields)


EXISTING = [block("09:00", "10:00", block_id="a"), block("13:00", "14:00", block_id="b")]


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ("10:00", "11:00", False),  # touches the end
        ("08:00", "09:00", False),  # touches the start
        ("09:30", "10:30", True),
        ("08:30", "09:15", True),
        ("09:15", "09:45", True),  # inside
        ("08:00", "15:00", True),  # covers both
        ("11:00", "12:00", False),
    ],
)
def test_is_overlapping(start, end, expected):
    assert is_overlapping(EXISTING, block(start, end)) is expected


def test_other_days_never_conflict():
    assert not is_overlapping(EXISTING, block("09:00", "10:00", day=2))


def test_find_conflicts_lists_every_clash():
    conflicts = find_conflicts(EXISTING, block("09:30", "13:30"))
    assert [c.id for c in conflicts] == ["a", "b"]


def test_exclude_id_skips_edited_block():
    moved = block("09:30", "10:30", block_id="a")
    assert not is_overlapping(EXISTING, moved, exclude_id="a")
    assert is_overlapping(EXISTING, moved)
