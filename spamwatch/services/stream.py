from __future__ import annotations

import asyncio
import logging
from enum import Enum

from spamwatch.config import settings
from spamwatch.models.chain import Block, BlockHeader
from spamwatch.services.chain import BlockNotAvailable, ChainClient, Subscription
from spamwatch.services.processor import BlockProcessor

logger = logging.getLogger("stream")


class ConsumerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    BACKOFF = "backoff"
    EXHAUSTED = "exhausted"
    STOPPED = "stopped"


class StreamConsumer:
    """Feeds new blocks into a BlockProcessor and reconnects on failure.

    Reconnects back off linearly (retry_delay_ms * attempt). The attempt
    counter resets on every delivered block; after max_retries consecutive
    failures the consumer gives up and stays EXHAUSTED.

    A block the node announced but cannot serve yet is fetched again up to
    block_fetch_retries times, block_fetch_delay_ms apart, then skipped.
    """

    def __init__(
        self,
        client: ChainClient,
        processor: BlockProcessor,
        max_retries: int | None = None,
        retry_delay_ms: int | None = None,
        block_fetch_retries: int | None = None,
        block_fetch_delay_ms: int | None = None,
    ):
        self._client = client
        self._processor = processor
        self._max_retries = max_retries if max_retries is not None else settings.max_retries
        self._retry_delay_ms = (
            retry_delay_ms if retry_delay_ms is not None else settings.retry_delay_ms
        )
        self._block_fetch_retries = (
            block_fetch_retries
            if block_fetch_retries is not None
            else settings.block_fetch_retries
        )
        self._block_fetch_delay_ms = (
            block_fetch_delay_ms
            if block_fetch_delay_ms is not None
            else settings.block_fetch_delay_ms
        )
        self.state = ConsumerState.DISCONNECTED
        self.retry_count = 0
        self.last_block: int | None = None
        self.blocks_processed = 0
        self._subscription: Subscription | None = None
        self._stopping = False
        self._wakeup = asyncio.Event()
        self._stop_event = asyncio.Event()

    @property
    def processor(self) -> BlockProcessor:
        return self._processor

    async def run(self) -> None:
        logger.info("Monitoring transactions to detect spam...")

        while not self._stopping:
            await self._connect_and_wait()
            if self._stopping:
                break

            if self.retry_count >= self._max_retries:
                self.state = ConsumerState.EXHAUSTED
                logger.error(
                    f"Giving up after {self.retry_count} reconnect attempts; "
                    "restart required"
                )
                return

            self.retry_count += 1
            self.state = ConsumerState.BACKOFF
            delay_ms = self._retry_delay_ms * self.retry_count
            logger.info(
                f"Reconnecting in {delay_ms}ms "
                f"(attempt {self.retry_count}/{self._max_retries})"
            )
            await self._backoff(delay_ms / 1000)

        self.state = ConsumerState.STOPPED
        logger.info("Stopped monitoring")

    async def stop(self) -> None:
        self._stopping = True
        self._stop_event.set()
        self._wakeup.set()

    async def _connect_and_wait(self) -> None:
        self.state = ConsumerState.CONNECTING
        self._wakeup = asyncio.Event()
        try:
            self._subscription = await self._client.subscribe_new_blocks(
                self._on_block, self._on_error
            )
        except Exception as e:
            logger.warning(f"Connection error: {e}")
            return

        self.state = ConsumerState.SUBSCRIBED
        try:
            await self._wakeup.wait()
        finally:
            await self._release()

    async def _release(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            await subscription.unsubscribe()
        except Exception as e:
            logger.warning(f"Error while unsubscribing: {e}")

    async def _backoff(self, delay_seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay_seconds)
        except asyncio.TimeoutError:
            pass

    async def _on_block(self, header: BlockHeader) -> None:
        block = await self._fetch_block(header.number)
        if block is None:
            return

        await self._processor.process_block(block, header.number)
        self.retry_count = 0
        self.last_block = header.number
        self.blocks_processed += 1

    async def _fetch_block(self, number: int) -> Block | None:
        attempt = 0
        while True:
            try:
                return await self._client.get_block_with_transactions(number)
            except BlockNotAvailable as e:
                if attempt >= self._block_fetch_retries or self._stopping:
                    logger.warning(f"Skipping block {number}: {e}")
                    return None
                attempt += 1
                logger.debug(
                    f"Block {number} not served yet, retry "
                    f"{attempt}/{self._block_fetch_retries}"
                )
                await self._backoff(self._block_fetch_delay_ms / 1000)
            except Exception as e:
                logger.warning(f"Error fetching block {number}: {e}")
                return None

    async def _on_error(self, error: Exception) -> None:
        logger.warning(f"Block stream error: {error}")
        self._wakeup.set()
