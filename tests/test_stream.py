from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from spamwatch.models.chain import Block
from spamwatch.services.activity import ActivityTracker
from spamwatch.services.alerts import RecentAlerts
from spamwatch.services.cache import TTLCache
from spamwatch.services.methods import MethodClassifier, MethodTable
from spamwatch.services.processor import BlockProcessor
from spamwatch.services.stream import ConsumerState, StreamConsumer
from spamwatch.services.tokens import TokenClassifier

SWAP = "0x7ff36ab5"


@pytest.fixture
def processor(fake_chain):
    return BlockProcessor(
        MethodClassifier(MethodTable({SWAP: "swap"})),
        ActivityTracker(block_range=20, min_consecutive_blocks=0),
        TokenClassifier(fake_chain, ignored_addresses=[], cache=TTLCache(ttl_seconds=0)),
        sinks=[RecentAlerts(limit=10)],
    )


def _consumer(
    fake_chain, processor, max_retries=3, retry_delay_ms=100, block_fetch_retries=2
):
    return StreamConsumer(
        fake_chain,
        processor,
        max_retries=max_retries,
        retry_delay_ms=retry_delay_ms,
        block_fetch_retries=block_fetch_retries,
        block_fetch_delay_ms=50,
    )


class TestReconnect:
    def test_gives_up_after_max_retries(self, fake_chain, processor):
        consumer = _consumer(fake_chain, processor)
        with patch.object(StreamConsumer, "_backoff", new_callable=AsyncMock) as backoff:
            asyncio.run(consumer.run())

        assert consumer.state == ConsumerState.EXHAUSTED
        assert fake_chain.subscribe_calls == 4
        assert consumer.retry_count == 3
        assert [c.args[0] for c in backoff.call_args_list] == [0.1, 0.2, 0.3]

    def test_zero_retries_means_single_attempt(self, fake_chain, processor):
        consumer = _consumer(fake_chain, processor, max_retries=0)
        with patch.object(StreamConsumer, "_backoff", new_callable=AsyncMock) as backoff:
            asyncio.run(consumer.run())
        assert fake_chain.subscribe_calls == 1
        assert backoff.call_count == 0
        assert consumer.state == ConsumerState.EXHAUSTED

    def test_delivered_block_resets_retry_counter(self, fake_chain, processor):
        fake_chain.script = ["fail", "fail", ("blocks", 1), "fail", "fail", "fail"]
        consumer = _consumer(fake_chain, processor)
        with patch.object(StreamConsumer, "_backoff", new_callable=AsyncMock) as backoff:
            asyncio.run(consumer.run())

        assert fake_chain.subscribe_calls == 6
        assert [c.args[0] for c in backoff.call_args_list] == [0.1, 0.2, 0.1, 0.2, 0.3]
        assert consumer.state == ConsumerState.EXHAUSTED
        assert consumer.blocks_processed == 1
        assert consumer.last_block == 100

    def test_dropped_subscription_is_released(self, fake_chain, processor):
        fake_chain.script = [("blocks", 2)]
        consumer = _consumer(fake_chain, processor, max_retries=0)
        asyncio.run(consumer.run())
        assert fake_chain.subscriptions[0].unsubscribed is True
        assert consumer.blocks_processed == 2

    def test_failed_block_fetch_is_skipped(self, fake_chain, processor):
        fake_chain.script = [("blocks", 3)]
        fake_chain.failing_blocks = {101}
        consumer = _consumer(fake_chain, processor, max_retries=0)
        asyncio.run(consumer.run())
        assert consumer.blocks_processed == 2
        assert consumer.last_block == 102

    def test_real_backoff_sleeps_linearly(self, fake_chain, processor):
        consumer = _consumer(fake_chain, processor, max_retries=2, retry_delay_ms=1)
        asyncio.run(consumer.run())
        assert consumer.state == ConsumerState.EXHAUSTED
        assert fake_chain.subscribe_calls == 3


class TestBlockDelivery:
    def test_blocks_reach_processor(self, fake_chain, processor, make_transaction):
        tx = make_transaction(input=SWAP)
        fake_chain.blocks = {
            100: Block(number=100, transactions=[tx]),
            101: Block(number=101, transactions=[tx]),
        }
        fake_chain.script = [("blocks", 2)]
        consumer = _consumer(fake_chain, processor, max_retries=0)
        asyncio.run(consumer.run())
        counter = processor.tracker.get(tx.from_address).method_counts[SWAP]
        assert counter.count == 2
        assert counter.first_block == 100

    def test_block_served_late_is_processed(self, fake_chain, processor):
        fake_chain.script = [("blocks", 1)]
        fake_chain.missing_blocks = {100: 2}
        consumer = _consumer(fake_chain, processor, max_retries=0)
        with patch.object(StreamConsumer, "_backoff", new_callable=AsyncMock) as backoff:
            asyncio.run(consumer.run())

        assert fake_chain.block_fetches == [100, 100, 100]
        assert [c.args[0] for c in backoff.call_args_list] == [0.05, 0.05]
        assert consumer.blocks_processed == 1
        assert consumer.last_block == 100

    def test_block_never_served_is_skipped(self, fake_chain, processor):
        fake_chain.script = [("blocks", 2)]
        fake_chain.missing_blocks = {100: 10}
        consumer = _consumer(fake_chain, processor, max_retries=0)
        with patch.object(StreamConsumer, "_backoff", new_callable=AsyncMock):
            asyncio.run(consumer.run())

        assert fake_chain.block_fetches == [100, 100, 100, 101]
        assert consumer.blocks_processed == 1
        assert consumer.last_block == 101

    def test_rpc_error_is_not_retried(self, fake_chain, processor):
        fake_chain.script = [("blocks", 1)]
        fake_chain.failing_blocks = {100}
        consumer = _consumer(fake_chain, processor, max_retries=0)
        asyncio.run(consumer.run())
        assert fake_chain.block_fetches == [100]
        assert consumer.blocks_processed == 0


class TestStop:
    def test_stop_unsubscribes(self, fake_chain, processor):
        fake_chain.script = ["hold"]
        consumer = _consumer(fake_chain, processor)

        async def _run_then_stop():
            task = asyncio.create_task(consumer.run())
            for _ in range(100):
                if consumer.state == ConsumerState.SUBSCRIBED:
                    break
                await asyncio.sleep(0)
            await consumer.stop()
            await task

        asyncio.run(_run_then_stop())
        assert consumer.state == ConsumerState.STOPPED
        assert fake_chain.subscriptions[0].unsubscribed is True
        assert fake_chain.subscribe_calls == 1

    def test_stop_during_backoff(self, fake_chain, processor):
        consumer = _consumer(fake_chain, processor, retry_delay_ms=60_000)

        async def _run_then_stop():
            task = asyncio.create_task(consumer.run())
            for _ in range(100):
                if consumer.state == ConsumerState.BACKOFF:
                    break
                await asyncio.sleep(0)
            await consumer.stop()
            await asyncio.wait_for(task, timeout=5)

        asyncio.run(_run_then_stop())
        assert consumer.state == ConsumerState.STOPPED
        assert fake_chain.subscribe_calls == 1

    def test_cancelling_run_unsubscribes(self, fake_chain, processor):
        fake_chain.script = ["hold"]
        consumer = _consumer(fake_chain, processor)

        async def _run_then_cancel():
            task = asyncio.create_task(consumer.run())
            for _ in range(100):
                if consumer.state == ConsumerState.SUBSCRIBED:
                    break
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(_run_then_cancel())
        assert fake_chain.subscriptions[0].unsubscribed is True
