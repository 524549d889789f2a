"""Tests for reminders/mobile/queue/batcher.py"""

import asyncio

import pytest

from reminders.mobile.models import DeliveryResult, TargetOutcome
from reminders.mobile.queue.batcher import BatchDispatcher, partition


def ok(batch):
    return DeliveryResult(outcomes=[TargetOutcome(success=True) for _ in batch])


class TestPartition:
    @pytest.mark.parametrize(
        "count,size,sizes",
        [
            (0, 3, []),
            (1, 3, [1]),
            (3, 3, [3]),
            (7, 3, [3, 3, 1]),
            (9, 3, [3, 3, 3]),
            (5, 1, [1, 1, 1, 1, 1]),
            (4, 500, [4]),
        ],
    )
    def test_batch_sizes(self, count, size, sizes):
        targets = [f"t{i}" for i in range(count)]

        batches = list(partition(targets, size))

        assert [len(b) for b in batches] == sizes

    def test_covers_all_targets_in_order(self):
        targets = [f"t{i}" for i in range(11)]

        batches = list(partition(targets, 4))

        assert [t for b in batches for t in b] == targets

    @pytest.mark.parametrize("size", [0, -1, 1.5, None, True])
    def test_invalid_batch_size(self, size):
        with pytest.raises(ValueError):
            list(partition(["a"], size))


class TestBatchDispatcher:
    def test_rejects_invalid_batch_size(self):
        with pytest.raises(ValueError):
            BatchDispatcher(0)

    @pytest.mark.asyncio
    async def test_sends_each_batch_once_in_order(self):
        sent = []

        async def send(batch):
            sent.append(batch)
            return ok(batch)

        outcomes = await BatchDispatcher(2).dispatch(["a", "b", "c", "d", "e"], send)

        assert sent == [["a", "b"], ["c", "d"], ["e"]]
        assert [o.index for o in outcomes] == [0, 1, 2]
        assert all(o.sent for o in outcomes)

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_abort_dispatch(self):
        sent = []

        async def send(batch):
            sent.append(batch)
            if batch == ["c", "d"]:
                raise ConnectionError("fcm unreachable")
            return ok(batch)

        outcomes = await BatchDispatcher(2).dispatch(["a", "b", "c", "d", "e"], send)

        assert len(sent) == 3
        assert outcomes[1].sent is False
        assert outcomes[1].error == "fcm unreachable"
        assert outcomes[1].tokens == ("c", "d")
        assert outcomes[2].sent is True

    @pytest.mark.asyncio
    async def test_on_result_called_only_for_completed_batches(self):
        seen = []

        async def send(batch):
            if batch == ["a"]:
                raise RuntimeError("boom")
            return ok(batch)

        await BatchDispatcher(1).dispatch(
            ["a", "b"], send, on_result=lambda i, b, r: seen.append((i, b, r.success_count))
        )

        assert seen == [(1, ["b"], 1)]

    @pytest.mark.asyncio
    async def test_on_result_runs_before_next_send(self):
        events = []

        async def send(batch):
            events.append(("send", batch[0]))
            return ok(batch)

        await BatchDispatcher(1).dispatch(
            ["a", "b"], send, on_result=lambda i, b, r: events.append(("result", b[0]))
        )

        assert events == [("send", "a"), ("result", "a"), ("send", "b"), ("result", "b")]

    @pytest.mark.asyncio
    async def test_sends_are_sequential(self):
        in_flight = 0
        max_in_flight = 0

        async def send(batch):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return ok(batch)

        await BatchDispatcher(1).dispatch(["a", "b", "c"], send)

        assert max_in_flight == 1

    @pytest.mark.asyncio
    async def test_failing_result_handler_does_not_stop_dispatch(self):
        sent = []

        async def send(batch):
            sent.append(batch)
            return ok(batch)

        def explode(index, batch, result):
            raise RuntimeError("handler bug")

        outcomes = await BatchDispatcher(1).dispatch(["a", "b"], send, on_result=explode)

        assert sent == [["a"], ["b"]]
        assert all(o.sent for o in outcomes)

    @pytest.mark.asyncio
    async def test_empty_targets_sends_nothing(self):
        async def send(batch):
            raise AssertionError("should not be called")

        assert await BatchDispatcher(3).dispatch([], send) == []
