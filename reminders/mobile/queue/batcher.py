"""
Tool: Batch Dispatcher
Purpose: Send the dispatch set in bounded multicast batches

Usage:
    from reminders.mobile.queue.batcher import BatchDispatcher, partition

    dispatcher = BatchDispatcher(batch_size=500)
    outcomes = await dispatcher.dispatch(tokens, send, on_result=reconcile)

Delivery Rules:
    - Batches are consecutive, order preserving and never exceed batch_size
    - Each batch is sent exactly once; no retry, no backoff
    - Sends are sequential; a failed send is logged and the next batch goes out
    - on_result runs as soon as a batch completes, before the next send
"""

from collections.abc import Awaitable, Callable, Iterator, Sequence

import structlog

from reminders.logging_config import get_logger
from reminders.mobile.models import BatchOutcome, DeliveryResult

logger = get_logger(__name__)

SendFn = Callable[[list[str]], Awaitable[DeliveryResult]]
ResultCallback = Callable[[int, list[str], DeliveryResult], None]


def _check_batch_size(batch_size: int) -> None:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")


def partition(targets: Sequence[str], batch_size: int) -> Iterator[list[str]]:
    """
    Split ``targets`` into consecutive batches of at most ``batch_size``.

    Raises:
        ValueError: if batch_size is not a positive integer
    """
    _check_batch_size(batch_size)

    for start in range(0, len(targets), batch_size):
        yield list(targets[start:start + batch_size])


class BatchDispatcher:
    """
    Sends tokens batch by batch through an async send callable.
    """

    def __init__(self, batch_size: int):
        """
        Initialize the dispatcher.

        Args:
            batch_size: Max tokens per send call
        """
        _check_batch_size(batch_size)
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def dispatch(
        self,
        targets: Sequence[str],
        send: SendFn,
        on_result: ResultCallback | None = None,
    ) -> list[BatchOutcome]:
        """
        Send every batch once, in order.

        Args:
            targets: Deduplicated tokens
            send: Async callable performing one multicast send
            on_result: Called with (index, batch, result) for each completed batch

        Returns:
            One BatchOutcome per batch, in order
        """
        outcomes: list[BatchOutcome] = []

        for index, batch in enumerate(partition(targets, self._batch_size)):
            with structlog.contextvars.bound_contextvars(batch=index + 1):
                outcomes.append(await self._dispatch_one(index, batch, send, on_result))

        return outcomes

    async def _dispatch_one(
        self,
        index: int,
        batch: list[str],
        send: SendFn,
        on_result: ResultCallback | None,
    ) -> BatchOutcome:
        try:
            result = await send(batch)
        except Exception as e:
            logger.error("batch_send_failed", size=len(batch), error=str(e), exc_info=True)
            return BatchOutcome(index=index, tokens=tuple(batch), error=str(e))

        logger.info(
            "batch_sent",
            success=result.success_count,
            failures=result.failure_count,
        )

        # Tasks spawned here inherit the bound batch number
        if on_result is not None:
            try:
                on_result(index, batch, result)
            except Exception as e:
                logger.error("batch_result_handler_failed", error=str(e), exc_info=True)

        return BatchOutcome(index=index, tokens=tuple(batch), result=result)
