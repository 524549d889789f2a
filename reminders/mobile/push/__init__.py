"""Push delivery components: FCM transport, subscription store, reconciliation."""

from reminders.mobile.push.fcm import (
    FcmTransport,
    PushTransport,
    error_code_for,
)
from reminders.mobile.push.subscription_store import (
    FirestoreSubscriptionStore,
    SubscriptionStore,
)
from reminders.mobile.push.delivery import (
    PERMANENT_ERROR_CODES,
    ReconciliationHandler,
    classify_failure,
)

__all__ = [
    "FcmTransport",
    "PushTransport",
    "error_code_for",
    "FirestoreSubscriptionStore",
    "SubscriptionStore",
    "PERMANENT_ERROR_CODES",
    "ReconciliationHandler",
    "classify_failure",
]
