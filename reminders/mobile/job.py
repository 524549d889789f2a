"""
Tool: Push Reminder Job
Purpose: One complete run: match, aggregate, dispatch, reconcile

Usage:
    from reminders.mobile.job import ReminderJob, bootstrap

    config = load_config()
    job = bootstrap(config)
    report = asyncio.run(job.run())

Failure policy:
    Only a failure to start (bad config, no credentials, cannot query the
    datastore) escapes run(). Batch send failures, per-token failures and
    reconciliation write failures are logged and counted in the report.
"""

import json
import os
from collections.abc import Callable
from datetime import datetime, timezone

import firebase_admin
import structlog
from firebase_admin import credentials, firestore

from reminders.logging_config import get_logger
from reminders.mobile.config import ReminderConfig
from reminders.mobile.errors import ConfigurationError
from reminders.mobile.models import RunReport
from reminders.mobile.push.delivery import ReconciliationHandler
from reminders.mobile.push.fcm import FcmTransport, PushTransport
from reminders.mobile.push.subscription_store import (
    FirestoreSubscriptionStore,
    SubscriptionStore,
)
from reminders.mobile.queue.aggregator import aggregate
from reminders.mobile.queue.batcher import BatchDispatcher

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReminderJob:
    """
    Scheduled reminder run with explicit collaborators.

    Store, transport and config are injected; nothing is read from module
    state, so a run can be driven entirely by fakes in tests.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        transport: PushTransport,
        config: ReminderConfig | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._transport = transport
        self._config = config or ReminderConfig()
        self._clock = clock

    @property
    def config(self) -> ReminderConfig:
        return self._config

    def close(self) -> None:
        """Release the transport once no more runs will use it."""
        self._transport.close()

    async def run(self, now: datetime | None = None) -> RunReport:
        """
        Execute one run.

        Args:
            now: Override the run instant (timezone-aware); defaults to the clock

        Returns:
            RunReport with counters and every reconciliation outcome

        Raises:
            DatastoreError: if enabled subscriptions cannot be fetched
        """
        schedule = self._config.schedule
        now = (now or self._clock()).astimezone(schedule.zone)

        with structlog.contextvars.bound_contextvars(
            run_at=now.isoformat(), timezone=schedule.timezone
        ):
            return await self._run(now)

    async def _run(self, now: datetime) -> RunReport:
        schedule = self._config.schedule
        tz = schedule.zone
        report = RunReport(now=now)

        logger.info("run_started")

        records = await self._store.fetch_enabled()
        if not records:
            logger.info("no_enabled_records")
            return report

        aggregation = aggregate(
            now,
            ((record.ref, record) for record in records),
            schedule.window_minutes,
            tz,
        )
        report.records_scanned = aggregation.records_scanned
        report.records_due = aggregation.records_due
        report.tokens = len(aggregation.tokens)

        if not aggregation.tokens:
            logger.info("no_tokens_due", records=aggregation.records_scanned)
            return report

        logger.info(
            "tokens_collected",
            tokens=len(aggregation.tokens),
            records_due=aggregation.records_due,
        )

        handler = ReconciliationHandler(
            self._store,
            now=now,
            clean_invalid=self._config.delivery.clean_invalid,
        )
        dispatcher = BatchDispatcher(self._config.delivery.batch_size)
        payload = self._config.message.to_payload()

        async def send(batch: list[str]):
            return await self._transport.send_multicast(batch, payload)

        def on_result(index, batch, result):
            handler.reconcile(batch, result, aggregation.origin)

        try:
            outcomes = await dispatcher.dispatch(aggregation.tokens, send, on_result=on_result)
        finally:
            report.reconciliations = await handler.drain()

        report.batches = len(outcomes)
        report.batches_failed = sum(1 for o in outcomes if not o.sent)
        report.delivered = sum(o.result.success_count for o in outcomes if o.sent)
        report.failed = sum(o.result.failure_count for o in outcomes if o.sent)
        report.permanent_failures = handler.permanent_failures

        logger.info("run_finished", **report.to_dict())
        return report


# =============================================================================
# Bootstrap
# =============================================================================


def load_service_account(env_var: str) -> dict:
    """
    Read the service account JSON from an environment variable.

    Raises:
        ConfigurationError: if the variable is unset or not a JSON object
    """
    raw = os.environ.get(env_var)
    if not raw:
        raise ConfigurationError(f"{env_var} is not set")

    try:
        info = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{env_var} is not valid JSON: {e}") from e

    if not isinstance(info, dict):
        raise ConfigurationError(f"{env_var} must hold a JSON object")
    return info


def bootstrap(config: ReminderConfig) -> ReminderJob:
    """
    Initialize Firebase and build a job wired to Firestore and FCM.

    Raises:
        ConfigurationError: if credentials are missing or rejected
    """
    info = load_service_account(config.firebase.service_account_env)

    try:
        app = firebase_admin.initialize_app(credentials.Certificate(info))
        client = firestore.client(app)
    except ValueError as e:
        raise ConfigurationError(f"Cannot initialize Firebase: {e}") from e

    store = FirestoreSubscriptionStore(client, collection=config.datastore.collection)
    transport = FcmTransport(app=app)
    return ReminderJob(store, transport, config=config)
