from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from spamwatch.models.alert import ActivityResponse
from spamwatch.services.alerts import recent_alerts
from spamwatch.utils.address import normalize_address, validate_evm_address
from spamwatch.utils.errors import error_response

logger = logging.getLogger("routes.monitor")

router = APIRouter(prefix="/v1")

MAX_ALERTS_PER_PAGE = 500


@router.get("/alerts")
async def list_alerts(limit: int = 50):
    """Most recent spam alerts, newest first."""
    limit = max(1, min(MAX_ALERTS_PER_PAGE, limit))
    alerts = recent_alerts.latest(limit)
    return {
        "count": len(alerts),
        "alerts": [a.model_dump() for a in alerts],
    }


@router.get("/activity/{address}")
async def address_activity(address: str, request: Request):
    address = address.strip()
    if not validate_evm_address(address):
        return error_response(400, f"Invalid address: '{address}'")

    consumer = getattr(request.app.state, "consumer", None)
    if consumer is None:
        return error_response(503, "Monitor is not running")

    address = normalize_address(address)
    activity = consumer.processor.tracker.get(address)
    if activity is None:
        return error_response(
            404,
            f"No activity tracked for '{address}' in the current window",
            detail={"block_range": consumer.processor.tracker.block_range},
        )

    return ActivityResponse(
        address=address,
        last_seen_block=activity.last_seen_block,
        methods={
            selector: {"count": c.count, "first_block": c.first_block}
            for selector, c in activity.method_counts.items()
        },
    )
