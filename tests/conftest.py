"""Shared test fixtures for push reminder tests.

This module provides common fixtures used across all test modules:
- In-memory subscription store and push transport fakes
- Standard reference zone, run instant and config
- Subscription document builders

Usage:
    async def test_something(store, transport, config):
        job = ReminderJob(store, transport, config=config)
        ...
"""

import asyncio
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from reminders.mobile.config import ReminderConfig
from reminders.mobile.models import (
    FIELD_TARGETS,
    DeliveryResult,
    SubscriptionRecord,
    TargetOutcome,
    mark_token_entry_active,
    remove_token_entry,
)
from reminders.mobile.push.fcm import PushTransport
from reminders.mobile.push.subscription_store import SubscriptionStore


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"

KYIV = ZoneInfo("Europe/Kyiv")


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────


class FakeSubscriptionStore(SubscriptionStore):
    """In-memory documents keyed by ref, edited with the same list helpers as Firestore."""

    def __init__(self, documents: dict[str, dict] | None = None):
        self.documents: dict[str, dict] = documents or {}
        self.fail_fetch: Exception | None = None
        self.fail_writes: dict[tuple[str, str], Exception] = {}
        self.writes: list[tuple[str, str, str]] = []

    async def fetch_enabled(self) -> list[SubscriptionRecord]:
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return [
            SubscriptionRecord.from_dict(ref, data)
            for ref, data in self.documents.items()
            if data.get("enabled") is True
        ]

    async def remove_target(self, ref, token) -> bool:
        await asyncio.sleep(0)
        self._maybe_fail("remove", token)
        data = self.documents.get(ref)
        if data is None:
            return False
        filtered = remove_token_entry(data.get(FIELD_TARGETS), token)
        if filtered is None:
            return False
        data[FIELD_TARGETS] = filtered
        self.writes.append(("remove", ref, token))
        return True

    async def mark_active(self, ref, token, now) -> bool:
        await asyncio.sleep(0)
        self._maybe_fail("mark_active", token)
        data = self.documents.get(ref)
        if data is None:
            return False
        updated = mark_token_entry_active(data.get(FIELD_TARGETS), token, now)
        if updated is None:
            return False
        data[FIELD_TARGETS] = updated
        self.writes.append(("mark_active", ref, token))
        return True

    def _maybe_fail(self, action: str, token: str) -> None:
        exc = self.fail_writes.get((action, token))
        if exc is not None:
            raise exc


class FakePushTransport(PushTransport):
    """Records every send; outcomes come from a per-token lookup (success by default)."""

    def __init__(self, outcomes: dict[str, TargetOutcome] | None = None):
        self.outcomes: dict[str, TargetOutcome] = outcomes or {}
        self.calls: list[tuple[list[str], dict]] = []
        self.fail_calls: dict[int, Exception] = {}

    async def send_multicast(self, tokens, payload) -> DeliveryResult:
        call_index = len(self.calls)
        self.calls.append((list(tokens), dict(payload)))
        if call_index in self.fail_calls:
            raise self.fail_calls[call_index]
        return DeliveryResult(
            outcomes=[self.outcomes.get(t, TargetOutcome(success=True, message_id=f"m-{t}")) for t in tokens]
        )

    @property
    def sent_tokens(self) -> list[str]:
        return [t for tokens, _ in self.calls for t in tokens]


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def kyiv() -> ZoneInfo:
    """Reference zone used by the default config."""
    return KYIV


@pytest.fixture
def morning(kyiv: ZoneInfo) -> datetime:
    """08:01 local time on an ordinary weekday."""
    return datetime(2024, 3, 12, 8, 1, tzinfo=kyiv)


@pytest.fixture
def config() -> ReminderConfig:
    """Default config with a small batch size so tests exercise batching."""
    return ReminderConfig(delivery={"batch_size": 2})


@pytest.fixture
def store() -> FakeSubscriptionStore:
    return FakeSubscriptionStore()


@pytest.fixture
def transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture
def make_document() -> Callable[..., dict]:
    """Build a stored subscription document.

    Returns:
        Factory taking (when, tokens, enabled=True)
    """
    def _make(when: list, tokens: list, enabled: bool = True) -> dict:
        return {
            "enabled": enabled,
            "when": list(when),
            "tokens": [t if isinstance(t, dict) else {"token": t} for t in tokens],
            "title": "Evening reading",
        }

    return _make


@pytest.fixture
def unregistered() -> TargetOutcome:
    """Outcome FCM reports for a token whose app was uninstalled."""
    return TargetOutcome(
        success=False,
        error_code="messaging/registration-token-not-registered",
        error_message="Requested entity was not found.",
    )
