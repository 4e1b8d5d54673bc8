"""风险管理：熔断、仓位大小、止损止盈。"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from algo.risk.circuit_breaker import CircuitBreaker
from shared.config.schema import RiskConfig
from shared.models.models import Decision, PerformanceStats, PortfolioState, Position, RiskCheck, Side
from shared.utils.logging import setup_logger

SHARPE_WARNING_MIN_TRADES = 20
DEFAULT_CASH_FRACTION = 0.1


class RiskManager:
    """风险管理器。

    Parameters
    ----------
    cfg:
        风控参数（比例均为 0~1 的小数）。
    logger:
        日志器；缺省为 `risk`。

    Notes
    -----
    熔断触发按优先级：连续亏损 > 当前回撤（日亏损代理） > 最大回撤。
    某个触发条件在自动恢复后不会因为同一数值立即再次熔断：只有指标继续恶化
    （或先回到阈值以下再重新越过）才会重新触发。
    """

    def __init__(self, cfg: RiskConfig | None = None, logger: logging.Logger | None = None):
        self.cfg = cfg or RiskConfig()
        self.logger = logger or setup_logger("risk")
        self.breaker = CircuitBreaker(
            recovery_minutes=self.cfg.circuit_breaker_recovery_minutes,
            logger=self.logger,
        )
        # 触发名 -> 熔断时的指标值
        self._acknowledged: dict[str, float] = {}

    # ------------------------------------------------------------------
    # 交易许可
    # ------------------------------------------------------------------
    def check_trade_allowed(
        self,
        decision: Decision,
        portfolio: PortfolioState,
        stats: PerformanceStats,
        position: Optional[Position],
        now: datetime,
    ) -> RiskCheck:
        """检查一笔决策是否允许执行。

        被拒绝是正常结果（allowed=False + reason），不抛异常。
        """
        self.breaker.maybe_recover(now)
        if self.breaker.is_halted:
            return RiskCheck(allowed=False, reason=f"Trading halted: {self.breaker.halt_reason}")

        for trigger in (self._check_consecutive_losses, self._check_daily_loss, self._check_max_drawdown):
            reason = trigger(stats)
            if reason is not None:
                self.breaker.trip(reason, now)
                return RiskCheck(allowed=False, reason=reason)

        self._warn_sharpe(stats)

        adjusted: float | None = None
        quantity = decision.quantity
        if decision.action == "BUY":
            if quantity and quantity > self.cfg.max_position_size:
                adjusted = self.cfg.max_position_size
                self.logger.warning(
                    "Position size adjusted from %.1f%% to %.1f%%", quantity * 100, adjusted * 100
                )
                quantity = adjusted

            required = portfolio.total_equity * (quantity if quantity else DEFAULT_CASH_FRACTION)
            if portfolio.cash < required:
                return RiskCheck(
                    allowed=False,
                    reason=f"Insufficient cash: Required ${required:.2f}, Available: ${portfolio.cash:.2f}",
                )
            if position is not None:
                return RiskCheck(
                    allowed=False,
                    reason="Position already open. Close current position before opening new one.",
                )

        if decision.action == "SELL" and position is None:
            return RiskCheck(allowed=False, reason="No open position to sell.")

        self.logger.debug(
            "Trade allowed: %s (confidence=%.2f, quantity=%s)", decision.action, decision.confidence, quantity
        )
        return RiskCheck(allowed=True, adjusted_quantity=adjusted)

    def _arm(self, name: str, value: float, breached: bool) -> bool:
        """阈值越界且相对上次熔断时继续恶化时返回 True。"""
        if not breached:
            self._acknowledged.pop(name, None)
            return False
        last = self._acknowledged.get(name)
        if last is not None and value <= last:
            return False
        self._acknowledged[name] = value
        return True

    def _check_consecutive_losses(self, stats: PerformanceStats) -> str | None:
        limit = self.cfg.max_consecutive_losses
        if self._arm("consecutive_losses", stats.consecutive_losses, stats.consecutive_losses >= limit):
            self.logger.warning("Risk event CIRCUIT_BREAKER_TRIGGERED consecutive_losses=%s", stats.consecutive_losses)
            return f"Circuit Breaker: {stats.consecutive_losses} consecutive losses (max: {limit})"
        return None

    def _check_daily_loss(self, stats: PerformanceStats) -> str | None:
        # 当前回撤作为日亏损的代理指标
        loss = abs(stats.current_drawdown)
        limit = self.cfg.daily_loss_limit
        if self._arm("daily_loss", loss, loss >= limit):
            self.logger.warning("Risk event DAILY_LOSS_LIMIT_REACHED loss=%.4f", loss)
            return f"Daily loss limit reached: {loss * 100:.2f}% (max: {limit * 100:.2f}%)"
        return None

    def _check_max_drawdown(self, stats: PerformanceStats) -> str | None:
        limit = self.cfg.max_drawdown
        if self._arm("max_drawdown", stats.max_drawdown, stats.max_drawdown >= limit):
            self.logger.warning("Risk event MAX_DRAWDOWN_EXCEEDED max_drawdown=%.4f", stats.max_drawdown)
            return f"Max drawdown exceeded: {stats.max_drawdown * 100:.2f}% (max: {limit * 100:.2f}%)"
        return None

    def _warn_sharpe(self, stats: PerformanceStats) -> None:
        if stats.total_trades >= SHARPE_WARNING_MIN_TRADES and stats.sharpe_ratio < self.cfg.min_sharpe_ratio:
            self.logger.warning(
                "Sharpe ratio below target: %.2f (target: %s)", stats.sharpe_ratio, self.cfg.min_sharpe_ratio
            )

    # ------------------------------------------------------------------
    # 仓位与价位
    # ------------------------------------------------------------------
    def calculate_position_size(self, decision: Decision, portfolio: PortfolioState, price: float) -> float:
        """按单笔风险、仓位上限与建议比例三者取最小，返回基础资产数量。"""
        if price <= 0:
            raise ValueError("price must be > 0")
        max_risk_amount = portfolio.total_equity * self.cfg.max_risk_per_trade
        if decision.stop_loss:
            stop_distance = abs(price - decision.stop_loss)
        else:
            stop_distance = price * self.cfg.stop_loss_pct

        size = max_risk_amount / stop_distance if stop_distance > 0 else float("inf")
        max_quantity = portfolio.total_equity * self.cfg.max_position_size / price
        size = min(size, max_quantity)
        if decision.quantity:
            size = min(size, portfolio.cash * decision.quantity / price)

        self.logger.debug(
            "position size=%.6f risk_amount=%.2f stop_distance=%.4f max_quantity=%.6f",
            size,
            max_risk_amount,
            stop_distance,
            max_quantity,
        )
        return size

    def calculate_stop_loss(self, entry_price: float, side: Side = "long", suggested: float | None = None) -> float:
        """建议止损距离在 [0.5, 2] 倍配置比例内时采用，否则用配置比例。"""
        pct = self.cfg.stop_loss_pct
        if suggested:
            distance = abs(entry_price - suggested) / entry_price
            if pct * 0.5 <= distance <= pct * 2:
                return suggested
        return entry_price * (1 - pct) if side == "long" else entry_price * (1 + pct)

    def calculate_take_profit(self, entry_price: float, side: Side = "long", suggested: float | None = None) -> float:
        """建议止盈距离在 [0.5, 3] 倍配置比例内时采用，否则用配置比例。"""
        pct = self.cfg.take_profit_pct
        if suggested:
            distance = abs(suggested - entry_price) / entry_price
            if pct * 0.5 <= distance <= pct * 3:
                return suggested
        return entry_price * (1 + pct) if side == "long" else entry_price * (1 - pct)

    # ------------------------------------------------------------------
    # 熔断管理与参数
    # ------------------------------------------------------------------
    def halt(self, reason: str, now: datetime) -> None:
        self.breaker.trip(reason, now)

    def resume(self) -> None:
        self.breaker.resume()

    @property
    def is_halted(self) -> bool:
        return self.breaker.is_halted

    @property
    def halt_reason(self) -> str:
        return self.breaker.halt_reason

    def update_parameters(self, **params: Any) -> RiskConfig:
        """更新风控参数（逐项校验，任一非法则整体不生效）。"""
        updated = self.cfg.model_copy()
        for key, value in params.items():
            setattr(updated, key, value)
        self.cfg = updated
        self.breaker.recovery_minutes = updated.circuit_breaker_recovery_minutes
        self.logger.info("Risk parameters updated: %s", params)
        return self.parameters()

    def parameters(self) -> RiskConfig:
        return self.cfg.model_copy()
