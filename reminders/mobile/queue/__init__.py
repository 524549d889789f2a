"""Reminder selection and dispatch components."""

from reminders.mobile.queue.scheduler import (
    is_due,
    parse_time_of_day,
    candidate_times,
)
from reminders.mobile.queue.aggregator import (
    AggregationResult,
    aggregate,
)
from reminders.mobile.queue.batcher import (
    BatchDispatcher,
    partition,
)

__all__ = [
    "is_due",
    "parse_time_of_day",
    "candidate_times",
    "AggregationResult",
    "aggregate",
    "BatchDispatcher",
    "partition",
]
