from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from spamwatch.config import settings

logger = logging.getLogger("activity")


@dataclass
class MethodCounter:
    count: int
    first_block: int


@dataclass
class AddressActivity:
    last_seen_block: int
    method_counts: dict[str, MethodCounter] = field(default_factory=dict)


def is_spam(
    count: int,
    first_block: int,
    current_block: int,
    block_range: int,
    min_consecutive_blocks: int,
) -> bool:
    """Repeated method calls from one sender, spread over the window.

    Span is checked with <= block_range while eviction uses a strict <, so a
    pair can still alert at exactly block_range blocks.
    """
    block_span = current_block - first_block
    return (
        count > 1
        and block_span <= block_range
        and block_span >= min_consecutive_blocks
    )


class ActivityTracker:
    """Sliding-window record of which methods each sender keeps calling."""

    def __init__(
        self,
        block_range: int | None = None,
        min_consecutive_blocks: int | None = None,
    ):
        self._store: dict[str, AddressActivity] = {}
        self.block_range = (
            block_range if block_range is not None else settings.block_range
        )
        self.min_consecutive_blocks = (
            min_consecutive_blocks
            if min_consecutive_blocks is not None
            else settings.min_consecutive_blocks
        )

    def evict_stale(self, current_block: int) -> int:
        cutoff = current_block - self.block_range
        stale = [
            address
            for address, activity in self._store.items()
            if activity.last_seen_block < cutoff
        ]
        for address in stale:
            del self._store[address]
        if stale:
            logger.debug(f"Evicted {len(stale)} addresses below block {cutoff}")
        return len(stale)

    def record(self, address: str, selector: str, current_block: int) -> MethodCounter:
        address = address.lower()
        activity = self._store.get(address)
        if activity is None:
            activity = AddressActivity(last_seen_block=current_block)
            self._store[address] = activity

        counter = activity.method_counts.get(selector)
        if counter is None:
            counter = MethodCounter(count=1, first_block=current_block)
            activity.method_counts[selector] = counter
        else:
            counter.count += 1

        activity.last_seen_block = current_block
        return replace(counter)

    def is_spam(self, counter: MethodCounter, current_block: int) -> bool:
        return is_spam(
            counter.count,
            counter.first_block,
            current_block,
            self.block_range,
            self.min_consecutive_blocks,
        )

    def get(self, address: str) -> AddressActivity | None:
        return self._store.get(address.lower())

    def clear(self) -> None:
        self._store.clear()

    @property
    def size(self) -> int:
        return len(self._store)
