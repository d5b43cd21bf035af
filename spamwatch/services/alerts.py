from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque

from spamwatch.config import settings
from spamwatch.models.alert import SpamAlert

logger = logging.getLogger("alerts")


class AlertSink(ABC):
    @abstractmethod
    def emit(self, alert: SpamAlert) -> None:
        ...


class LoggingAlertSink(AlertSink):
    def emit(self, alert: SpamAlert) -> None:
        lines = [
            "SPAM ALERT",
            f"  From: {alert.from_address}",
            f"  Router: {alert.to_address}",
            f"  Hash: {alert.tx_hash}",
            f"  Method: {alert.method_name} ({alert.selector})",
            f"  Occurrences: {alert.occurrence_count}",
            f"  Block span: {alert.block_span} "
            f"({alert.first_block} → {alert.current_block})",
            f"  Gas: {alert.fee_gwei} gwei",
            f"  Priority: {alert.priority_fee_gwei} gwei",
        ]
        if alert.tokens:
            lines.append("  ERC20 tokens involved:")
            lines.extend(f"    • {token.address}" for token in alert.tokens)
        logger.warning("\n".join(lines))


class RecentAlerts(AlertSink):
    """Bounded in-memory history, newest last."""

    def __init__(self, limit: int | None = None):
        self._alerts: deque[SpamAlert] = deque(
            maxlen=limit if limit is not None else settings.recent_alerts_limit
        )

    def emit(self, alert: SpamAlert) -> None:
        self._alerts.append(alert)

    def latest(self, limit: int | None = None) -> list[SpamAlert]:
        alerts = list(reversed(self._alerts))
        return alerts[:limit] if limit is not None else alerts

    def clear(self) -> None:
        self._alerts.clear()

    @property
    def count(self) -> int:
        return len(self._alerts)


recent_alerts = RecentAlerts()
