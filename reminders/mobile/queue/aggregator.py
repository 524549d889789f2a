"""
Tool: Token Aggregator
Purpose: Collect the deduplicated push tokens of every subscription due now

Usage:
    from reminders.mobile.queue.aggregator import aggregate

    result = aggregate(now, records, window_minutes=2, tz=ZoneInfo("Europe/Kyiv"))
    result.tokens   # ("tok_a", "tok_b", ...)
    result.origin   # {"tok_a": <record ref>, ...}

A token listed by several due records is sent once; the first record that
lists it owns its reconciliation.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from reminders.mobile.models import RecordRef, SubscriptionRecord
from reminders.mobile.queue.scheduler import is_due


@dataclass(frozen=True)
class AggregationResult:
    """Deduplicated dispatch set for one run."""

    tokens: tuple[str, ...] = ()
    origin: dict[str, RecordRef] = field(default_factory=dict)
    records_scanned: int = 0
    records_due: int = 0


def aggregate(
    now: datetime,
    records: Iterable[tuple[RecordRef, SubscriptionRecord]],
    window_minutes: float,
    tz: ZoneInfo,
) -> AggregationResult:
    """
    Build the dispatch set from records whose schedule is due.

    Args:
        now: Current instant (timezone-aware)
        records: (ref, record) pairs, already filtered to enabled at query time
        window_minutes: Window tolerance passed to the matcher
        tz: Reference zone for schedules

    Returns:
        AggregationResult with tokens in first-seen order and their origin refs
    """
    tokens: list[str] = []
    origin: dict[str, RecordRef] = {}
    scanned = 0
    due = 0

    for ref, record in records:
        scanned += 1

        if not record.enabled or not record.schedule:
            continue
        if not is_due(now, record.schedule, window_minutes, tz):
            continue

        due += 1
        for target in record.targets:
            token = target.token
            if not isinstance(token, str) or not token:
                continue
            if token in origin:
                continue
            origin[token] = ref
            tokens.append(token)

    return AggregationResult(
        tokens=tuple(tokens),
        origin=origin,
        records_scanned=scanned,
        records_due=due,
    )
