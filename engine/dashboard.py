"""仪表盘推送（旁路、尽力而为）。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol, Sequence

from shared.models.models import ClosedTrade, PerformanceStats
from shared.utils.logging import setup_logger


@dataclass(frozen=True)
class DashboardUpdate:
    ts: datetime
    current_price: float
    initial_capital: float
    equity: float
    stats: PerformanceStats
    trades: Sequence[ClosedTrade] = field(default_factory=tuple)


class DashboardSink(Protocol):
    def push(self, update: DashboardUpdate) -> None:
        ...


class LoggingDashboardSink:
    """把更新写到日志（debug 级别），用于没有外部仪表盘时的占位。"""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or setup_logger("dashboard")

    def push(self, update: DashboardUpdate) -> None:
        self.logger.debug(
            "dashboard ts=%s price=%.2f equity=%.2f trades=%s win_rate=%.2f%%",
            update.ts.isoformat(),
            update.current_price,
            update.equity,
            update.stats.total_trades,
            update.stats.win_rate,
        )


def safe_push(sink: Optional[DashboardSink], update: DashboardUpdate, logger: logging.Logger) -> None:
    """推送失败只记录 debug 日志，不重试、不向上抛出。"""
    if sink is None:
        return
    try:
        sink.push(update)
    except Exception as exc:
        logger.debug("Dashboard push failed: %s", exc)
