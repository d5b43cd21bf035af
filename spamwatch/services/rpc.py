from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
import websockets

from spamwatch.config import settings
from spamwatch.models.chain import Block, BlockHeader
from spamwatch.services.chain import (
    BlockCallback,
    BlockNotAvailable,
    ChainClient,
    ErrorCallback,
    Subscription,
)

logger = logging.getLogger("rpc")


class NewHeadsSubscription(Subscription):
    def __init__(self, ws, subscription_id: str, reader: asyncio.Task):
        self._ws = ws
        self.subscription_id = subscription_id
        self._reader = reader
        self._closed = False

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._reader.cancel()
        try:
            await self._reader
        except asyncio.CancelledError:
            pass
        try:
            await self._ws.send(
                json.dumps(
                    {
                        "jsonrpc": "2.0",
                        "id": 1,
                        "method": "eth_unsubscribe",
                        "params": [self.subscription_id],
                    }
                )
            )
        except Exception as e:
            logger.debug(f"eth_unsubscribe failed for {self.subscription_id}: {e}")
        await self._ws.close()
        logger.info(f"Unsubscribed from newHeads ({self.subscription_id})")


class EvmRpcClient(ChainClient):
    """JSON-RPC over HTTP for reads, eth_subscribe over WebSocket for heads."""

    def __init__(
        self,
        http_url: str | None = None,
        ws_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = http_url or settings.http_rpc_url
        self._ws_url = ws_url or settings.ws_rpc_url
        self._timeout = timeout if timeout is not None else settings.rpc_timeout_seconds
        self._transport = transport
        self._id = 0
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            )
        return self._client

    def _next_id(self) -> int:
        self._id += 1
        return self._id

    async def _call(self, method: str, params: list | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": self._next_id(),
        }
        client = self._get_client()
        resp = await client.post(self._url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error: {data['error']}")
        return data.get("result")

    async def get_block_with_transactions(self, block_number: int) -> Block:
        result = await self._call("eth_getBlockByNumber", [hex(block_number), True])
        if not result:
            raise BlockNotAvailable(f"Block {block_number} not available")
        return Block.model_validate(result)

    async def get_bytecode(self, address: str) -> str | None:
        """Contract code at address; '0x' or None for EOAs."""
        return await self._call("eth_getCode", [address, "latest"])

    async def call(self, to: str, data: str) -> str:
        result = await self._call("eth_call", [{"to": to, "data": data}, "latest"])
        return result or "0x"

    async def subscribe_new_blocks(
        self, on_block: BlockCallback, on_error: ErrorCallback
    ) -> Subscription:
        ws = await websockets.connect(self._ws_url)
        try:
            await ws.send(
                json.dumps(
                    {
                        "jsonrpc": "2.0",
                        "id": self._next_id(),
                        "method": "eth_subscribe",
                        "params": ["newHeads"],
                    }
                )
            )
            reply = json.loads(await ws.recv())
            if "error" in reply:
                raise RuntimeError(f"eth_subscribe error: {reply['error']}")
            subscription_id = reply["result"]
        except Exception:
            await ws.close()
            raise

        logger.info(f"Subscribed to newHeads at {self._ws_url} ({subscription_id})")
        reader = asyncio.create_task(
            self._read_heads(ws, subscription_id, on_block, on_error)
        )
        return NewHeadsSubscription(ws, subscription_id, reader)

    async def _read_heads(
        self,
        ws,
        subscription_id: str,
        on_block: BlockCallback,
        on_error: ErrorCallback,
    ) -> None:
        try:
            async for message in ws:
                data = json.loads(message)
                params = data.get("params") or {}
                if (
                    data.get("method") != "eth_subscription"
                    or params.get("subscription") != subscription_id
                ):
                    continue
                await on_block(BlockHeader.model_validate(params["result"]))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await on_error(e)
            return
        await on_error(ConnectionError("newHeads stream closed by server"))

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
