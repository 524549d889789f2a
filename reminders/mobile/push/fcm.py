"""
FCM Push Transport - Firebase Cloud Messaging multicast delivery

Sends one data message per device token, up to 500 in one ``send_each``
call, and reports a per-token outcome in the order the tokens were given.

The Admin SDK raises typed exceptions per token; they are translated to the
canonical ``messaging/...`` error codes so classification does not depend on
SDK class names.
"""

import asyncio
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from firebase_admin import App, exceptions, messaging

from reminders.mobile.models import DeliveryResult, TargetOutcome


# =============================================================================
# Constants
# =============================================================================

CODE_PREFIX = "messaging/"

# Most specific first: the SDK error classes subclass the generic platform errors
_EXCEPTION_CODES: tuple[tuple[type[Exception], str], ...] = (
    (messaging.UnregisteredError, "messaging/registration-token-not-registered"),
    (messaging.SenderIdMismatchError, "messaging/mismatched-credential"),
    (messaging.QuotaExceededError, "messaging/message-rate-exceeded"),
    (messaging.ThirdPartyAuthError, "messaging/third-party-auth-error"),
    (exceptions.InvalidArgumentError, "messaging/invalid-argument"),
    (exceptions.UnavailableError, "messaging/server-unavailable"),
    (exceptions.InternalError, "messaging/internal-error"),
)


def error_code_for(exc: BaseException | None) -> str | None:
    """
    Canonical error code for a per-token send exception.

    Known SDK classes map to fixed codes; other Firebase errors derive one
    from their platform code (``DEADLINE_EXCEEDED`` -> ``messaging/deadline-exceeded``).
    """
    if exc is None:
        return None

    for exc_type, code in _EXCEPTION_CODES:
        if isinstance(exc, exc_type):
            return code

    platform_code = getattr(exc, "code", None)
    if isinstance(platform_code, str) and platform_code:
        return CODE_PREFIX + platform_code.lower().replace("_", "-")
    return None


# =============================================================================
# Transport
# =============================================================================


class PushTransport(ABC):
    """Delivery boundary: one multicast call per batch."""

    @abstractmethod
    async def send_multicast(self, tokens: list[str], payload: dict[str, str]) -> DeliveryResult:
        """
        Send ``payload`` to every token.

        Returns:
            DeliveryResult with one outcome per token, same order

        Raises:
            Exception: if the call as a whole fails (network, auth, ...)
        """
        pass

    def close(self) -> None:
        """Release transport resources. Safe to call more than once."""
        pass


class FcmTransport(PushTransport):
    """
    Firebase Cloud Messaging via the Admin SDK.

    The SDK call is blocking. It runs on a dedicated send thread rather than
    the loop's default executor, which the datastore writes of earlier
    batches may be saturating; a send never queues behind those writes.
    """

    def __init__(self, app: App | None = None, dry_run: bool = False):
        self._app = app
        self._dry_run = dry_run
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fcm-send")

    async def send_multicast(self, tokens: list[str], payload: dict[str, str]) -> DeliveryResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, self._send_sync, list(tokens), dict(payload)
        )

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _send_sync(self, tokens: list[str], payload: dict[str, str]) -> DeliveryResult:
        if not tokens:
            return DeliveryResult(outcomes=[])

        data = {key: str(value) for key, value in payload.items()}
        messages = [messaging.Message(token=token, data=data) for token in tokens]
        response = messaging.send_each(messages, dry_run=self._dry_run, app=self._app)
        return DeliveryResult(outcomes=[_to_outcome(r) for r in response.responses])


def _to_outcome(response: Any) -> TargetOutcome:
    if response.success:
        return TargetOutcome(success=True, message_id=response.message_id)

    exc = response.exception
    return TargetOutcome(
        success=False,
        error_code=error_code_for(exc),
        error_message=str(exc) if exc is not None else None,
    )
