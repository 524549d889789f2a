"""
Tool: Delivery Reconciliation
Purpose: Turn per-token delivery outcomes into subscription record updates

Usage:
    from reminders.mobile.push.delivery import ReconciliationHandler, classify_failure

    handler = ReconciliationHandler(store, now=now)
    handler.reconcile(batch, result, origin)   # spawns writes, returns at once
    records = await handler.drain()            # wait for every spawned write

Reconciliation Rules:
    - Permanent failure (token unregistered/invalid): remove the token
    - Transient or unknown failure: log only, the next run retries naturally
    - Success: stamp lastActiveAt on the token's entry
    - Writes are independent tasks; a failed write is logged, never raised
"""

import asyncio
import re
from collections.abc import Awaitable, Mapping, Sequence
from datetime import datetime

from reminders.logging_config import get_logger
from reminders.mobile.models import (
    DeliveryResult,
    FailureKind,
    ReconciliationAction,
    ReconciliationRecord,
    RecordRef,
)
from reminders.mobile.push.subscription_store import SubscriptionStore

logger = get_logger(__name__)


# =============================================================================
# Failure classification
# =============================================================================

PERMANENT_ERROR_CODES = frozenset({
    "messaging/registration-token-not-registered",
    "messaging/invalid-registration-token",
    "messaging/invalid-argument",
    "registration-token-not-registered",
    "invalid-registration-token",
    "invalid-argument",
})

PERMANENT_ERROR_MESSAGE = re.compile(r"not-registered|unregistered|gone", re.IGNORECASE)

TRANSIENT_ERROR_CODES = frozenset({
    "messaging/server-unavailable",
    "messaging/internal-error",
    "messaging/message-rate-exceeded",
    "messaging/device-message-rate-exceeded",
    "messaging/topics-message-rate-exceeded",
    "messaging/deadline-exceeded",
    "messaging/unknown-error",
    "server-unavailable",
    "internal-error",
    "message-rate-exceeded",
    "device-message-rate-exceeded",
    "topics-message-rate-exceeded",
    "deadline-exceeded",
    "unknown-error",
})


def classify_failure(code: str | None, message: str | None = None) -> FailureKind:
    """
    Classify a per-token delivery failure.

    Args:
        code: Error code reported for the token (exact match)
        message: Error message (searched case-insensitively)

    Returns:
        FailureKind.PERMANENT, TRANSIENT or UNKNOWN
    """
    if code and code in PERMANENT_ERROR_CODES:
        return FailureKind.PERMANENT
    if message and PERMANENT_ERROR_MESSAGE.search(message):
        return FailureKind.PERMANENT
    if code and code in TRANSIENT_ERROR_CODES:
        return FailureKind.TRANSIENT
    return FailureKind.UNKNOWN


# =============================================================================
# Reconciliation
# =============================================================================


class ReconciliationHandler:
    """
    Issues record updates for one run's delivery outcomes.

    Writes are spawned as tasks and not awaited individually, so dispatch of
    the next batch is never held up by datastore latency. drain() collects
    every outcome once dispatch is over.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        now: datetime,
        clean_invalid: bool = True,
    ):
        """
        Initialize the handler.

        Args:
            store: Datastore used for the transactional writes
            now: Run timestamp stamped as lastActiveAt
            clean_invalid: Remove tokens with permanent failures
        """
        self._store = store
        self._now = now
        self._clean_invalid = clean_invalid
        self._tasks: set[asyncio.Task] = set()
        self._records: list[ReconciliationRecord] = []

        self._permanent_failures = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def permanent_failures(self) -> int:
        return self._permanent_failures

    @property
    def records(self) -> list[ReconciliationRecord]:
        return list(self._records)

    def reconcile(
        self,
        batch: Sequence[str],
        result: DeliveryResult,
        origin: Mapping[str, RecordRef],
    ) -> None:
        """
        Spawn the writes for one batch. Must be called from a running loop.

        Args:
            batch: Tokens in the order they were sent
            result: Delivery outcomes, same order as batch
            origin: Token -> record it was collected from
        """
        if len(result.outcomes) != len(batch):
            logger.warning(
                "result_size_mismatch",
                batch_size=len(batch),
                outcomes=len(result.outcomes),
            )

        for token, outcome in zip(batch, result.outcomes):
            ref = origin.get(token)
            if ref is None:
                logger.warning("token_without_origin", token=token)
                continue

            if outcome.success:
                self._spawn(
                    ReconciliationAction.MARK_ACTIVE,
                    token,
                    ref,
                    self._store.mark_active(ref, token, self._now),
                )
                continue

            kind = classify_failure(outcome.error_code, outcome.error_message)
            logger.info(
                "token_failed",
                token=token,
                code=outcome.error_code or outcome.error_message,
                kind=kind.value,
            )

            if kind != FailureKind.PERMANENT:
                continue

            self._permanent_failures += 1
            if self._clean_invalid:
                self._spawn(
                    ReconciliationAction.REMOVE,
                    token,
                    ref,
                    self._store.remove_target(ref, token),
                )

    async def drain(self) -> list[ReconciliationRecord]:
        """
        Wait for every spawned write to finish.

        Returns:
            All reconciliation records collected so far
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return self.records

    def _spawn(
        self,
        action: ReconciliationAction,
        token: str,
        ref: RecordRef,
        write: Awaitable[bool],
    ) -> None:
        task = asyncio.create_task(self._run_write(action, token, ref, write))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_write(
        self,
        action: ReconciliationAction,
        token: str,
        ref: RecordRef,
        write: Awaitable[bool],
    ) -> None:
        record = ReconciliationRecord(action=action, token=token, ref=ref)
        try:
            record.applied = bool(await write)
        except Exception as e:
            record.error = str(e) or type(e).__name__
            logger.warning(
                "reconciliation_failed",
                action=action.value,
                token=token,
                error=record.error,
                exc_info=True,
            )
        else:
            if action == ReconciliationAction.REMOVE:
                logger.info("token_removed", token=token, applied=record.applied)
            else:
                logger.debug("token_marked_active", token=token, applied=record.applied)
        self._records.append(record)
