"""
Tool: Reminder Window Matcher
Purpose: Decide whether a subscription's local times of day are due right now

Usage:
    from reminders.mobile.queue.scheduler import is_due

    is_due(now, ["08:00", "21:30"], tolerance_minutes=2, tz=ZoneInfo("Europe/Kyiv"))

Matching rules:
    - Entries are "H:MM" or "HH:MM" in the reference zone
    - Malformed entries are skipped, never fatal
    - Each entry is tried on the previous, current and next local day so a
      window straddling midnight still matches
    - Due when |now - candidate| <= tolerance, measured in real elapsed time
"""

import re
from collections.abc import Iterable
from datetime import datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo


_TIME_OF_DAY = re.compile(r"([0-9]{1,2}):([0-9]{2})")


def parse_time_of_day(value: Any) -> time | None:
    """
    Parse a schedule entry.

    Returns:
        The local time, or None when the entry is not a valid "H:MM" string
    """
    if not isinstance(value, str):
        return None

    match = _TIME_OF_DAY.fullmatch(value)
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def candidate_times(at: time, now: datetime, tz: ZoneInfo) -> list[datetime]:
    """The nominal time on the day before, the day of, and the day after ``now``."""
    local_now = now.astimezone(tz)
    base = local_now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    return [base + timedelta(days=offset) for offset in (-1, 0, 1)]


def is_due(
    now: datetime,
    schedule: Iterable[Any] | None,
    tolerance_minutes: float,
    tz: ZoneInfo,
) -> bool:
    """
    Check if any entry of ``schedule`` falls within the window around ``now``.

    Args:
        now: Current instant (must be timezone-aware)
        schedule: Time-of-day strings; None or empty means never due
        tolerance_minutes: Allowed distance in minutes, inclusive
        tz: Reference zone the times are expressed in

    Returns:
        True if at least one valid entry matches
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    tolerance = timedelta(minutes=tolerance_minutes)
    now_utc = now.astimezone(timezone.utc)

    for entry in schedule or ():
        at = parse_time_of_day(entry)
        if at is None:
            continue

        for candidate in candidate_times(at, now, tz):
            # Same-tzinfo subtraction ignores DST offsets, so compare in UTC
            if abs(now_utc - candidate.astimezone(timezone.utc)) <= tolerance:
                return True

    return False
