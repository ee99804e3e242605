import pytest
from datetime import datetime, timedelta
from timeblock_pro.errors import FormatError, RangeError
from timeblock_pro.utils.time import (
    day_index,
    deadline_urgency,
    format_countdown,
    format_duration_seconds,
    format_week_range,
    minutes_to_time,
    parse_day,
    parse_user_time,
    time_slots,
    time_to_minutes,
    to_12_hour,
    to_24_hour,
    week_start,
)


def test_time_to_minutes():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("09:30") == 570
    assert time_to_minutes("9:30") == 570
    assert time_to_minutes("23:59") == 1439


@pytest.mark.parametrize("bad", ["24:00", "12:60", "noon", "1230", "", "12:5"])
def test_time_to_minutes_rejects_bad_input(bad):
    with pytest.raises(FormatError):
        time_to_minutes(bad)


def test_minutes_to_time_pads_and_checks_range():
    assert minutes_to_time(0) == "00:00"
    assert minutes_to_time(545) == "09:05"
    with pytest.raises(RangeError):
        minutes_to_time(1440)
    with pytest.raises(RangeError):
        minutes_to_time(-1)


def test_minutes_round_trip_covers_whole_day():
    for m in range(0, 1440):
        assert time_to_minutes(minutes_to_time(m)) == m


def test_to_12_hour():
    assert to_12_hour("00:00") == "12:00 AM"
    assert to_12_hour("09:05") == "9:05 AM"
    assert to_12_hour("12:00") == "12:00 PM"
    assert to_12_hour("13:05") == "1:05 PM"


def test_12_hour_round_trip_covers_whole_day():
    for m in range(0, 1440):
        hhmm = minutes_to_time(m)
        assert to_24_hour(to_12_hour(hhmm)) == hhmm


def test_to_24_hour():
    assert to_24_hour("1:05 PM") == "13:05"
    assert to_24_hour("12:00 AM") == "00:00"
    assert to_24_hour("12:30pm") == "12:30"
    assert to_24_hour("13:05") == "13:05"
    with pytest.raises(FormatError):
        to_24_hour("13:05 PM")
    with pytest.raises(FormatError):
        to_24_hour("0:30 am")


def test_parse_user_time():
    assert parse_user_time("8pm") == "20:00"
    assert parse_user_time("8:30pm") == "20:30"
    assert parse_user_time("20:00") == "20:00"
    assert parse_user_time("08:00") == "08:00"

    with pytest.raises(ValueError):
        parse_user_time("invalid")


def test_day_index_sunday_is_zero():
    assert day_index(datetime(2026, 10, 18)) == 0  # Sunday
    assert day_index(datetime(2026, 10, 19)) == 1
    assert day_index(datetime(2026, 10, 24)) == 6


@pytest.mark.parametrize(
    "value, expected",
    [("mon", 1), ("Monday", 1), ("sun", 0), ("SAT", 6), ("3", 3), (4, 4)],
)
def test_parse_day(value, expected):
    assert parse_day(value) == expected


def test_parse_day_rejects_unknown():
    with pytest.raises(FormatError):
        parse_day("xyz")
    with pytest.raises(RangeError):
        parse_day(7)


def test_week_start_and_range():
    wednesday = datetime(2026, 10, 21, 15, 30)
    start = week_start(wednesday)
    assert start == datetime(2026, 10, 18)
    assert week_start(wednesday, week_start_day=1) == datetime(2026, 10, 19)
    assert format_week_range(start) == "Oct 18-24, 2026"
    assert format_week_range(datetime(2026, 10, 25)) == "Oct 25-31, 2026"


def test_format_week_range_spanning_months():
    assert format_week_range(datetime(2026, 10, 29)) == "Oct 29 - Nov 4, 2026"


def test_time_slots():
    slots = time_slots("07:00", "08:00")
    assert slots == ["07:00", "07:30", "08:00"]
    with pytest.raises(RangeError):
        time_slots(step_minutes=0)


def test_deadline_urgency():
    now = datetime(2026, 10, 19, 12, 0)
    assert deadline_urgency(now - timedelta(minutes=1), now) == "overdue"
    assert deadline_urgency(now + timedelta(hours=3), now) == "today"
    assert deadline_urgency(now + timedelta(days=3), now) == "this-week"
    assert deadline_urgency(now + timedelta(days=30), now) == "future"


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0m"), (30, "<1m"), (45 * 60, "45m"), (150 * 60, "2h 30m")],
)
def test_format_duration_seconds(seconds, expected):
    assert format_duration_seconds(seconds) == expected


def test_format_countdown():
    assert format_countdown(1500) == "25:00"
    assert format_countdown(65) == "1:05"
    assert format_countdown(3845) == "1:04:05"
    assert format_countdown(-3) == "0:00"
