"""Mobile Push Reminders — scheduled FCM reminders with token reconciliation

Philosophy:
    A reminder that fires at the wrong time, or twice, is worse than one that
    never fires. Each run sends at most one push per device token, only for
    subscriptions whose local time-of-day falls inside the current window.

Design Principles:
    1. Window Matching — Times are local to one reference zone; midnight wraps
    2. Deduplication — One send per token per run, first origin record wins
    3. Bounded Batches — Multicast sends never exceed the transport limit
    4. Self-Healing — Dead tokens are pruned, live ones stamped as active
    5. Availability First — Nothing below the top level aborts a run

Components:
    queue/: Window matching, token aggregation and batch dispatch
    push/: FCM transport, Firestore subscription store, reconciliation
    job.py: One complete run, wired from config

Datastore: Firestore collection ``notifications`` (configurable)
    - enabled: bool
    - when: ["HH:MM", ...]
    - tokens: [{"token": str, "lastActiveAt": str | None, ...}, ...]
"""

from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
CONFIG_PATH = ARGS_DIR / "reminders.yaml"


__all__ = [
    "PROJECT_ROOT",
    "ARGS_DIR",
    "CONFIG_PATH",
]
