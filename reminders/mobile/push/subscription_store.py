"""
Tool: Subscription Store
Purpose: Read due-able subscription records and apply transactional token edits

Usage:
    from reminders.mobile.push.subscription_store import FirestoreSubscriptionStore

    store = FirestoreSubscriptionStore(firestore.client(), collection="notifications")
    records = await store.fetch_enabled()
    await store.remove_target(record.ref, "dead-token")
    await store.mark_active(record.ref, "live-token", now)

Both writes are read-modify-write transactions against a single document:
the transaction re-reads the current token list, so two concurrent edits on
the same document never overwrite each other.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime

from firebase_admin import firestore

from reminders.mobile.errors import DatastoreError
from reminders.mobile.models import (
    FIELD_ENABLED,
    FIELD_TARGETS,
    RecordRef,
    SubscriptionRecord,
    mark_token_entry_active,
    remove_token_entry,
)


class SubscriptionStore(ABC):
    """
    Datastore boundary for subscription records.

    Lifecycle:
        1. fetch_enabled() - once per run, before dispatch
        2. remove_target() / mark_active() - concurrently, during dispatch
    """

    @abstractmethod
    async def fetch_enabled(self) -> list[SubscriptionRecord]:
        """
        Fetch every record with enabled == true.

        Raises:
            DatastoreError: if the query cannot be run at all
        """
        pass

    @abstractmethod
    async def remove_target(self, ref: RecordRef, token: str) -> bool:
        """
        Remove the entry for ``token`` from the record's targets.

        Returns:
            True if the record was rewritten, False if the record is gone or
            the token was already absent
        """
        pass

    @abstractmethod
    async def mark_active(self, ref: RecordRef, token: str, now: datetime) -> bool:
        """
        Stamp ``now`` as the last active time of ``token``.

        Returns:
            True if the record was rewritten, False if the record is gone
        """
        pass


class FirestoreSubscriptionStore(SubscriptionStore):
    """
    Subscription records stored as documents in a Firestore collection.

    The Firestore client is synchronous; every call runs in a worker thread
    so reconciliation writes overlap with each other and with dispatch.
    """

    def __init__(self, client: firestore.Client, collection: str = "notifications"):
        self._client = client
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    async def fetch_enabled(self) -> list[SubscriptionRecord]:
        try:
            return await asyncio.to_thread(self._fetch_enabled_sync)
        except Exception as e:
            raise DatastoreError(
                f"Cannot query enabled subscriptions in '{self._collection}': {e}"
            ) from e

    def _fetch_enabled_sync(self) -> list[SubscriptionRecord]:
        query = self._client.collection(self._collection).where(
            filter=firestore.FieldFilter(FIELD_ENABLED, "==", True)
        )
        return [
            SubscriptionRecord.from_dict(snapshot.reference, snapshot.to_dict())
            for snapshot in query.stream()
        ]

    async def remove_target(self, ref: RecordRef, token: str) -> bool:
        return await asyncio.to_thread(self._remove_target_sync, ref, token)

    def _remove_target_sync(self, ref: RecordRef, token: str) -> bool:
        @firestore.transactional
        def _apply(transaction, doc_ref) -> bool:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return False

            data = snapshot.to_dict() or {}
            filtered = remove_token_entry(data.get(FIELD_TARGETS), token)
            if filtered is None:
                return False

            transaction.update(doc_ref, {FIELD_TARGETS: filtered})
            return True

        return _apply(self._client.transaction(), ref)

    async def mark_active(self, ref: RecordRef, token: str, now: datetime) -> bool:
        return await asyncio.to_thread(self._mark_active_sync, ref, token, now)

    def _mark_active_sync(self, ref: RecordRef, token: str, now: datetime) -> bool:
        @firestore.transactional
        def _apply(transaction, doc_ref) -> bool:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return False

            data = snapshot.to_dict() or {}
            updated = mark_token_entry_active(data.get(FIELD_TARGETS), token, now)
            if updated is None:
                return False

            transaction.update(doc_ref, {FIELD_TARGETS: updated})
            return True

        return _apply(self._client.transaction(), ref)
