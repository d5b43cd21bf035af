import asyncio
import contextlib
import logging
import time

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from spamwatch.config import settings
from spamwatch.routes.monitor import router as monitor_router
from spamwatch.services.activity import ActivityTracker
from spamwatch.services.alerts import LoggingAlertSink, recent_alerts
from spamwatch.services.methods import MethodClassifier, MethodTable
from spamwatch.services.processor import BlockProcessor
from spamwatch.services.rpc import EvmRpcClient
from spamwatch.services.stream import ConsumerState, StreamConsumer
from spamwatch.services.tokens import TokenClassifier

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(name)-20s | %(levelname)-7s | %(message)s",
)
logger = logging.getLogger("app")

SHUTDOWN_TIMEOUT_SECONDS = 10


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} → {response.status_code} "
            f"({duration_ms:.1f}ms)"
        )
        return response


app = FastAPI(
    title="Method Spam Monitor",
    description=(
        "Watches new blocks for senders that keep calling the same contract "
        "method and reports the ERC20 tokens they touch."
    ),
    version="0.1.0",
)

app.add_middleware(RequestTimingMiddleware)

app.include_router(monitor_router)


def build_consumer(client: EvmRpcClient, methods: MethodTable) -> StreamConsumer:
    tracker = ActivityTracker(settings.block_range, settings.min_consecutive_blocks)
    processor = BlockProcessor(
        MethodClassifier(methods),
        tracker,
        TokenClassifier(client, settings.ignored_erc20),
        sinks=[LoggingAlertSink(), recent_alerts],
    )
    return StreamConsumer(
        client,
        processor,
        max_retries=settings.max_retries,
        retry_delay_ms=settings.retry_delay_ms,
        block_fetch_retries=settings.block_fetch_retries,
        block_fetch_delay_ms=settings.block_fetch_delay_ms,
    )


@app.on_event("startup")
async def startup():
    logger.info("Loading method table...")
    methods = MethodTable.load(settings.methods_file or None)
    app.state.methods = methods

    if not settings.monitor_autostart:
        logger.info("Monitor autostart disabled")
        return

    client = EvmRpcClient()
    consumer = build_consumer(client, methods)
    app.state.client = client
    app.state.consumer = consumer
    app.state.consumer_task = asyncio.create_task(consumer.run())
    logger.info(
        f"Ready — window={settings.block_range} blocks, "
        f"min span={settings.min_consecutive_blocks}, {methods.count} methods"
    )


@app.on_event("shutdown")
async def shutdown():
    consumer = getattr(app.state, "consumer", None)
    task = getattr(app.state, "consumer_task", None)
    if consumer is not None:
        logger.info("Stopping monitoring...")
        await consumer.stop()
    if task is not None:
        try:
            await asyncio.wait_for(task, timeout=SHUTDOWN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Monitor did not stop in time, cancelling")
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    client = getattr(app.state, "client", None)
    if client is not None:
        await client.aclose()
    if consumer is not None:
        consumer.processor.tracker.clear()
    app.state.consumer = None


@app.get("/health")
async def health():
    methods = getattr(app.state, "methods", None)
    consumer = getattr(app.state, "consumer", None)
    body = {
        "status": "ok",
        "methods_loaded": methods.count if methods is not None else 0,
        "alerts_buffered": recent_alerts.count,
        "monitor": None,
    }
    if consumer is not None:
        body["monitor"] = {
            "state": consumer.state.value,
            "retry_count": consumer.retry_count,
            "last_block": consumer.last_block,
            "blocks_processed": consumer.blocks_processed,
            "tracked_addresses": consumer.processor.tracker.size,
        }
        if consumer.state == ConsumerState.EXHAUSTED:
            body["status"] = "degraded"
    return body
