from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from spamwatch.models.chain import Block, BlockHeader

BlockCallback = Callable[[BlockHeader], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


class BlockNotAvailable(RuntimeError):
    """The node announced a block it cannot serve yet."""


class Subscription(ABC):
    @abstractmethod
    async def unsubscribe(self) -> None:
        ...


class ChainClient(ABC):
    """What the monitor needs from a node.

    subscribe_new_blocks must await on_block for one header before delivering
    the next, and report a dropped stream through on_error exactly once.
    """

    @abstractmethod
    async def subscribe_new_blocks(
        self, on_block: BlockCallback, on_error: ErrorCallback
    ) -> Subscription:
        ...

    @abstractmethod
    async def get_block_with_transactions(self, block_number: int) -> Block:
        ...

    @abstractmethod
    async def get_bytecode(self, address: str) -> str | None:
        ...

    @abstractmethod
    async def call(self, to: str, data: str) -> str:
        ...

    async def aclose(self) -> None:
        return None
