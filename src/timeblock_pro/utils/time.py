import re
from datetime import date, datetime, timedelta
from typing import Iterable

from timeblock_pro.errors import FormatError, RangeError

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE = MINUTES_PER_DAY - 1

DAYS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
DAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

_TIME_24_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_TIME_DISPLAY_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*([ap]m)?$", re.IGNORECASE)
_TIME_HOUR_ONLY_RE = re.compile(r"^(\d{1,2})\s*([ap]m)$", re.IGNORECASE)


def time_to_minutes(time_str: str) -> int:
    """Converts a 24-hour 'HH:MM' string to minutes since midnight."""
    match = _TIME_24_RE.match(time_str.strip()) if isinstance(time_str, str) else None
    if not match:
        raise FormatError(f"Time must be in HH:MM format: {time_str!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if not 0 <= hours <= 23:
        raise FormatError(f"Hours must be 0-23: {time_str!r}")
    if not 0 <= minutes <= 59:
        raise FormatError(f"Minutes must be 0-59: {time_str!r}")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Converts minutes since midnight back to a zero-padded 'HH:MM' string."""
    if not 0 <= minutes <= LAST_MINUTE:
        raise RangeError(f"Minutes must be within 0-{LAST_MINUTE}: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_12_hour(time_str: str) -> str:
    """Formats '13:05' as '1:05 PM'."""
    total = time_to_minutes(time_str)
    hours, minutes = divmod(total, 60)
    period = "PM" if hours >= 12 else "AM"
    display_hours = hours - 12 if hours > 12 else 12 if hours == 0 else hours
    return f"{display_hours}:{minutes:02d} {period}"


def to_24_hour(display: str) -> str:
    """
    Parses a display time such as '1:05 PM', '1:05pm' or '13:05' into 'HH:MM'.

    A 12-hour value (with an am/pm suffix) needs an hour between 1 and 12,
    a bare 24-hour value an hour between 0 and 23. Minutes are always two digits.
    """
    match = _TIME_DISPLAY_RE.match(display.strip()) if isinstance(display, str) else None
    if not match:
        raise FormatError(f"Could not parse time: {display!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    suffix = match.group(3)
    if minutes > 59:
        raise FormatError(f"Minutes must be 0-59: {display!r}")

    if suffix:
        if not 1 <= hours <= 12:
            raise FormatError(f"12-hour times need an hour between 1 and 12: {display!r}")
        hours %= 12
        if suffix.lower() == "pm":
            hours += 12
    elif hours > 23:
        raise FormatError(f"Hours must be 0-23: {display!r}")

    return minutes_to_time(hours * 60 + minutes)


def parse_user_time(time_str: str) -> str:
    """Parses lenient input like '8pm', '8:30pm', '20:00' into 'HH:MM'."""
    cleaned = time_str.strip()
    match = _TIME_HOUR_ONLY_RE.match(cleaned)
    if match:
        return to_24_hour(f"{match.group(1)}:00{match.group(2)}")
    return to_24_hour(cleaned)


def day_index(moment: datetime | date) -> int:
    """Day of week with Sunday as 0."""
    return (moment.weekday() + 1) % 7


def parse_day(value: str | int) -> int:
    """Accepts 0-6, 'mon', 'Monday' and similar and returns the day index."""
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise RangeError(f"Day of week must be within 0-6: {value}")

    text = value.strip().lower()
    if text.isdigit():
        return parse_day(int(text))
    if len(text) >= 3:
        for i, name in enumerate(DAY_NAMES):
            if name.lower().startswith(text):
                return i
    raise FormatError(f"Unknown day of week: {value!r}")


def week_start(now: datetime | None = None, week_start_day: int = 0) -> datetime:
    """Midnight of the first day of the week containing ``now``."""
    if now is None:
        now = datetime.now()
    offset = (day_index(now) - week_start_day) % 7
    start = now - timedelta(days=offset)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def week_dates(start: datetime) -> list[datetime]:
    return [start + timedelta(days=i) for i in range(7)]


def format_week_range(start: datetime) -> str:
    """'Oct 18-24, 2026' or 'Oct 29 - Nov 4, 2026' when the week spans two months."""
    end = start + timedelta(days=6)
    start_month = start.strftime("%b")
    end_month = end.strftime("%b")
    if start_month == end_month:
        return f"{start_month} {start.day}-{end.day}, {start.year}"
    return f"{start_month} {start.day} - {end_month} {end.day}, {start.year}"


def time_slots(start: str = "07:00", end: str = "23:00", step_minutes: int = 30) -> list[str]:
    """Calendar row labels from ``start`` to ``end`` inclusive."""
    if step_minutes <= 0:
        raise RangeError(f"Slot step must be positive: {step_minutes}")
    first, last = time_to_minutes(start), time_to_minutes(end)
    return [minutes_to_time(m) for m in range(first, last + 1, step_minutes)]


def deadline_urgency(deadline: datetime, now: datetime | None = None) -> str:
    """Buckets a deadline into 'overdue', 'today', 'this-week' or 'future'."""
    if now is None:
        now = datetime.now()
    if deadline < now:
        return "overdue"
    if deadline.date() == now.date():
        return "today"
    if deadline <= now + timedelta(days=7):
        return "this-week"
    return "future"


def has_deadline_on_date(tasks: Iterable, day: date) -> bool:
    """True if any open task has its deadline on ``day``."""
    return any(
        task.deadline is not None and not task.completed and task.deadline.date() == day
        for task in tasks
    )


def format_duration_seconds(seconds: int) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 30m' or '45m').
    """
    minutes = seconds // 60
    if minutes == 0 and seconds > 0:
        return "<1m"
    elif minutes < 60:
        return f"{minutes}m"
    else:
        hours = minutes // 60
        remaining_minutes = minutes % 60
        return f"{hours}h {remaining_minutes}m"


def format_countdown(seconds: int) -> str:
    """'4:05' below an hour, '1:04:05' above."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
