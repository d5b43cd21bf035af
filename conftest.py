from __future__ import annotations

import pytest

from spamwatch.models.chain import Block, BlockHeader, Transaction
from spamwatch.services.chain import BlockNotAvailable, ChainClient, Subscription

ROUTER = "0x4752ba5dbc23f44d87826276bf6fd6b1c372ad24"
SENDER = "0x1111111111111111111111111111111111111111"


class FakeSubscription(Subscription):
    def __init__(self):
        self.unsubscribed = False

    async def unsubscribe(self) -> None:
        self.unsubscribed = True


class FakeChainClient(ChainClient):
    """In-memory node.

    `script` drives subscribe_new_blocks, one entry per attempt:
      "fail"        -> raise ConnectionError
      ("blocks", n) -> deliver n headers, then report a dropped stream
      "hold"        -> stay subscribed until unsubscribed
    """

    def __init__(self):
        self.bytecode: dict[str, str] = {}
        self.supply: dict[str, str] = {}
        self.failing: set[str] = set()
        self.failing_blocks: set[int] = set()
        self.missing_blocks: dict[int, int] = {}
        self.block_fetches: list[int] = []
        self.blocks: dict[int, Block] = {}
        self.script: list = []
        self.subscribe_calls = 0
        self.subscriptions: list[FakeSubscription] = []
        self.code_calls: list[str] = []
        self.eth_calls: list[tuple[str, str]] = []
        self._next_block = 100

    async def subscribe_new_blocks(self, on_block, on_error) -> Subscription:
        self.subscribe_calls += 1
        step = self.script.pop(0) if self.script else "fail"
        if step == "fail":
            raise ConnectionError("connection refused")

        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        if step == "hold":
            return subscription

        _, count = step
        for _ in range(count):
            await on_block(BlockHeader(number=self._next_block))
            self._next_block += 1
        await on_error(ConnectionError("socket closed"))
        return subscription

    async def get_block_with_transactions(self, block_number: int) -> Block:
        self.block_fetches.append(block_number)
        if self.missing_blocks.get(block_number, 0) > 0:
            self.missing_blocks[block_number] -= 1
            raise BlockNotAvailable(f"Block {block_number} not available")
        if block_number in self.failing_blocks:
            raise RuntimeError(f"RPC error: block {block_number}")
        return self.blocks.get(block_number, Block(number=block_number))

    async def get_bytecode(self, address: str) -> str | None:
        self.code_calls.append(address)
        if address in self.failing:
            raise RuntimeError("RPC error: timeout")
        return self.bytecode.get(address, "0x")

    async def call(self, to: str, data: str) -> str:
        self.eth_calls.append((to, data))
        if to in self.supply:
            return self.supply[to]
        raise RuntimeError("execution reverted")


@pytest.fixture
def fake_chain():
    return FakeChainClient()


@pytest.fixture
def make_transaction():
    """Factory fixture for creating Transaction instances."""

    def _make(
        input: str = "0x7ff36ab5",
        from_address: str = SENDER,
        to: str | None = ROUTER,
        hash: str | None = None,
        max_fee_per_gas: int | None = 2_000_000_000,
        max_priority_fee_per_gas: int | None = 1_000_000_000,
    ) -> Transaction:
        return Transaction(
            hash=hash or "0x" + "ab" * 32,
            from_address=from_address,
            to=to,
            input=input,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas,
        )

    return _make
