"""
Tool: Push Reminder Models
Purpose: Data structures for subscription records, delivery outcomes and run reports

Usage:
    from reminders.mobile.models import (
        SubscriptionRecord,
        DeliveryTarget,
        DeliveryResult,
        TargetOutcome,
        FailureKind,
        RunReport,
    )
"""

from collections.abc import Hashable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# Opaque handle for a stored record (a Firestore DocumentReference in production)
RecordRef = Hashable

# Field names as stored in the datastore
FIELD_ENABLED = "enabled"
FIELD_SCHEDULE = "when"
FIELD_TARGETS = "tokens"
FIELD_TOKEN = "token"
FIELD_LAST_ACTIVE = "lastActiveAt"


class FailureKind(str, Enum):
    """Classification of a per-token delivery failure."""

    PERMANENT = "permanent"  # Token will never resolve again, remove it
    TRANSIENT = "transient"  # Known retryable condition, leave for next run
    UNKNOWN = "unknown"      # Unclassified, treated like transient


@dataclass
class DeliveryTarget:
    """
    A device registered against a subscription.

    Unknown keys on the stored entry are kept in ``extra`` so a record can be
    rewritten without dropping them.
    """

    token: str
    last_active_at: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the stored entry shape."""
        data = dict(self.extra)
        data[FIELD_TOKEN] = self.token
        if self.last_active_at is not None:
            data[FIELD_LAST_ACTIVE] = self.last_active_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliveryTarget":
        """Create from a stored entry."""
        extra = {
            key: value
            for key, value in data.items()
            if key not in (FIELD_TOKEN, FIELD_LAST_ACTIVE)
        }
        return cls(
            token=data.get(FIELD_TOKEN) or "",
            last_active_at=data.get(FIELD_LAST_ACTIVE),
            extra=extra,
        )


@dataclass
class SubscriptionRecord:
    """
    Notification subscription: when to notify and which devices.

    Malformed ``when`` or ``tokens`` fields load as empty lists; malformed
    token entries are dropped from ``targets`` (they stay in the datastore).
    """

    ref: RecordRef
    enabled: bool = False
    schedule: list[Any] = field(default_factory=list)
    targets: list[DeliveryTarget] = field(default_factory=list)

    @classmethod
    def from_dict(cls, ref: RecordRef, data: dict[str, Any] | None) -> "SubscriptionRecord":
        """Create from a stored document body."""
        data = data or {}

        schedule = data.get(FIELD_SCHEDULE)
        if not isinstance(schedule, list):
            schedule = []

        entries = data.get(FIELD_TARGETS)
        if not isinstance(entries, list):
            entries = []

        return cls(
            ref=ref,
            enabled=data.get(FIELD_ENABLED) is True,
            schedule=list(schedule),
            targets=[DeliveryTarget.from_dict(e) for e in entries if isinstance(e, dict)],
        )


# =============================================================================
# Minimal-diff target list edits
# =============================================================================


def _entry_token(entry: Any) -> Any:
    return entry.get(FIELD_TOKEN) if isinstance(entry, dict) else None


def remove_token_entry(entries: Any, token: str) -> list[Any] | None:
    """
    Drop every entry whose token equals ``token``.

    Returns:
        The new entry list, or None when nothing was removed (no write needed)
    """
    if not isinstance(entries, list):
        return None

    filtered = [e for e in entries if _entry_token(e) != token]
    if len(filtered) == len(entries):
        return None
    return filtered


def mark_token_entry_active(entries: Any, token: str, now: datetime) -> list[Any] | None:
    """
    Stamp ``lastActiveAt`` on the entry matching ``token``.

    All other keys of that entry, and all other entries, are left as they are.

    Returns:
        The new entry list, or None when the stored field is not a list
    """
    if not isinstance(entries, list):
        return None

    stamp = format_timestamp(now)
    return [
        {**e, FIELD_LAST_ACTIVE: stamp} if _entry_token(e) == token else e
        for e in entries
    ]


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 in UTC with milliseconds and a Z suffix, e.g. ``2024-03-12T06:01:00.000Z``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# Delivery outcomes
# =============================================================================


@dataclass
class TargetOutcome:
    """Delivery outcome for one token in a batch."""

    success: bool
    message_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return asdict(self)


@dataclass
class DeliveryResult:
    """
    Result of one multicast send.

    ``outcomes`` is ordered like the batch that was sent.
    """

    outcomes: list[TargetOutcome] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)


@dataclass
class BatchOutcome:
    """What happened to one batch during dispatch."""

    index: int
    tokens: tuple[str, ...]
    result: DeliveryResult | None = None
    error: str | None = None  # Transport-level failure, whole batch

    @property
    def sent(self) -> bool:
        return self.result is not None


# =============================================================================
# Run reporting
# =============================================================================


class ReconciliationAction(str, Enum):
    """Write issued against a subscription record."""

    REMOVE = "remove"
    MARK_ACTIVE = "mark_active"


@dataclass
class ReconciliationRecord:
    """Outcome of one reconciliation write."""

    action: ReconciliationAction
    token: str
    ref: RecordRef
    applied: bool = False  # False for no-ops (record gone, token already absent)
    error: str | None = None


@dataclass
class RunReport:
    """
    Summary of one job run.

    Counters are filled in as the run progresses; ``reconciliations`` holds
    every write outcome once the handler has been drained.
    """

    now: datetime
    records_scanned: int = 0
    records_due: int = 0
    tokens: int = 0
    batches: int = 0
    batches_failed: int = 0
    delivered: int = 0
    failed: int = 0
    permanent_failures: int = 0
    reconciliations: list[ReconciliationRecord] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return self._count(ReconciliationAction.REMOVE)

    @property
    def marked_active(self) -> int:
        return self._count(ReconciliationAction.MARK_ACTIVE)

    @property
    def reconciliation_errors(self) -> int:
        return sum(1 for r in self.reconciliations if r.error is not None)

    def _count(self, action: ReconciliationAction) -> int:
        return sum(
            1 for r in self.reconciliations
            if r.action == action and r.applied and r.error is None
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat summary for logging."""
        return {
            "now": self.now.isoformat(),
            "records_scanned": self.records_scanned,
            "records_due": self.records_due,
            "tokens": self.tokens,
            "batches": self.batches,
            "batches_failed": self.batches_failed,
            "delivered": self.delivered,
            "failed": self.failed,
            "permanent_failures": self.permanent_failures,
            "removed": self.removed,
            "marked_active": self.marked_active,
            "reconciliation_errors": self.reconciliation_errors,
        }
