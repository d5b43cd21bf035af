from __future__ import annotations

import asyncio
import logging

from spamwatch.models.alert import SpamAlert
from spamwatch.models.chain import Block, Transaction
from spamwatch.services.activity import ActivityTracker
from spamwatch.services.alerts import AlertSink
from spamwatch.services.methods import MethodClassifier
from spamwatch.services.tokens import TokenClassifier
from spamwatch.utils.units import wei_to_gwei

logger = logging.getLogger("processor")


class BlockProcessor:
    """Runs one block through classification, tracking and token probing.

    Blocks are processed one at a time. A failing transaction is logged and
    skipped; a failure outside the transaction loop drops the rest of that
    block only.
    """

    def __init__(
        self,
        classifier: MethodClassifier,
        tracker: ActivityTracker,
        tokens: TokenClassifier,
        sinks: list[AlertSink] | None = None,
    ):
        self._classifier = classifier
        self._tracker = tracker
        self._tokens = tokens
        self._sinks = list(sinks or [])
        self._lock = asyncio.Lock()

    @property
    def tracker(self) -> ActivityTracker:
        return self._tracker

    async def process_block(self, block: Block, block_number: int) -> list[SpamAlert]:
        alerts: list[SpamAlert] = []
        async with self._lock:
            logger.info(
                f"Block #{block_number}: {len(block.transactions)} transactions"
            )
            try:
                self._tracker.evict_stale(block_number)
                for tx in block.transactions:
                    try:
                        alert = await self.process_transaction(tx, block_number)
                    except Exception as e:
                        logger.warning(f"Error processing transaction {tx.hash}: {e}")
                        continue
                    if alert is not None:
                        alerts.append(alert)
            except Exception as e:
                logger.error(f"Error processing block {block_number}: {e}")
        return alerts

    async def process_transaction(
        self, tx: Transaction, block_number: int
    ) -> SpamAlert | None:
        selector = self._classifier.classify(tx.input)
        if selector is None:
            return None

        sender = tx.from_address.lower()
        method_name = self._classifier.method_name(selector)
        counter = self._tracker.record(sender, selector, block_number)

        if counter.count > 1:
            logger.info(
                f"Method repetition: {sender} {method_name} ({selector}) "
                f"count=#{counter.count}"
            )

        if not self._tracker.is_spam(counter, block_number):
            return None

        tokens = await self._tokens.analyze_tokens(tx.input)
        alert = SpamAlert(
            from_address=sender,
            to_address=tx.to,
            tx_hash=tx.hash,
            selector=selector,
            method_name=method_name,
            occurrence_count=counter.count,
            block_span=block_number - counter.first_block,
            first_block=counter.first_block,
            current_block=block_number,
            fee_gwei=wei_to_gwei(tx.max_fee_per_gas),
            priority_fee_gwei=wei_to_gwei(tx.max_priority_fee_per_gas),
            tokens=tokens,
        )
        for sink in self._sinks:
            sink.emit(alert)
        return alert
