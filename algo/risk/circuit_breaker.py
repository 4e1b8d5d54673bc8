"""熔断器（Circuit Breaker）：Active / Halted 两状态。

恢复判断只依赖传入的时间戳（回测里是 K 线时间），不读墙钟，保证回测可复现。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Union

from shared.utils.logging import setup_logger


@dataclass(frozen=True)
class Active:
    pass


@dataclass(frozen=True)
class Halted:
    reason: str
    since: datetime


BreakerState = Union[Active, Halted]


def recovery_due(now: datetime, since: datetime, recovery_minutes: float) -> bool:
    """熔断是否已满足自动恢复条件；recovery_minutes 为 0 表示只能手动恢复。"""
    if recovery_minutes <= 0:
        return False
    return now - since >= timedelta(minutes=recovery_minutes)


class CircuitBreaker:
    """熔断状态机。

    - trip：Active -> Halted，记录原因与时间；
    - maybe_recover：Halted 且恢复窗口已过 -> Active；
    - resume：手动恢复。
    """

    def __init__(self, recovery_minutes: float = 0.0, logger: logging.Logger | None = None):
        self.recovery_minutes = recovery_minutes
        self.state: BreakerState = Active()
        self.last_trigger_reason = ""
        self.logger = logger or setup_logger("circuit_breaker")

    @property
    def is_halted(self) -> bool:
        return isinstance(self.state, Halted)

    @property
    def halt_reason(self) -> str:
        return self.state.reason if isinstance(self.state, Halted) else ""

    def trip(self, reason: str, now: datetime) -> None:
        self.state = Halted(reason=reason, since=now)
        self.last_trigger_reason = reason
        recovery = (
            f" (auto-recovery in {self.recovery_minutes:g} minutes)"
            if self.recovery_minutes > 0
            else " (no auto-recovery)"
        )
        self.logger.error("TRADING HALTED: %s%s", reason, recovery)

    def maybe_recover(self, now: datetime) -> bool:
        """惰性检查自动恢复；发生恢复时返回 True。"""
        state = self.state
        if not isinstance(state, Halted):
            return False
        if not recovery_due(now, state.since, self.recovery_minutes):
            return False
        self.logger.info("Auto-recovery: trading resumed after %g minutes", self.recovery_minutes)
        self.state = Active()
        return True

    def resume(self) -> None:
        if self.is_halted:
            self.logger.info("Trading resumed")
        self.state = Active()
