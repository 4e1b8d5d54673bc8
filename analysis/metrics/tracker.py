"""PerformanceTracker：记录平仓交易与权益曲线，维护绩效统计。"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from analysis.metrics.metrics import average, drawdown, profit_factor, risk_reward, sharpe_ratio, win_rate
from shared.models.models import ClosedTrade, EquityPoint, PerformanceStats
from shared.utils.json_sanitize import sanitize_for_json
from shared.utils.logging import setup_logger

SECONDS_PER_DAY = 86400.0


class PerformanceTracker:
    """绩效跟踪器。

    Parameters
    ----------
    initial_capital:
        初始资金，总盈亏百分比与回撤峰值的基准。
    start_ts:
        权益曲线第一个点（初始资金）的时间戳；缺省取当前 UTC 时间。
        引擎传入第一根 K 线之前的时间，保证曲线按时间递增。
    logger:
        日志器；缺省为 `performance`。

    Notes
    -----
    - 回撤按“历史峰值权益”计算，current/max drawdown 为比例；
    - 同一时间戳重复记录权益时覆盖最后一个点，而不是追加；
    - 曲线在构造与 reset 时以 (start_ts, initial_capital) 为第一个点；
    - `trading_days` 以该起点为基准。
    """

    def __init__(
        self,
        initial_capital: float,
        start_ts: datetime | None = None,
        logger: logging.Logger | None = None,
    ):
        if initial_capital <= 0:
            raise ValueError("initial_capital must be > 0")
        self.logger = logger or setup_logger("performance")
        self.start_ts = start_ts or datetime.now(timezone.utc)
        self.reset(initial_capital)

    def reset(self, initial_capital: float | None = None, start_ts: datetime | None = None) -> None:
        """清空交易与统计，曲线重新从 (start_ts, initial_capital) 开始。"""
        if initial_capital is not None:
            self.initial_capital = float(initial_capital)
        if start_ts is not None:
            self.start_ts = start_ts
        self.peak_equity = self.initial_capital
        self._trades: list[ClosedTrade] = []
        self._equity: list[EquityPoint] = [EquityPoint(ts=self.start_ts, equity=self.initial_capital)]
        self._stats = PerformanceStats()
        self._last_update: datetime = self.start_ts
        self.logger.info("Performance tracker reset with capital %.2f", self.initial_capital)

    # ------------------------------------------------------------------
    def add_trade(self, trade: ClosedTrade, equity: float) -> PerformanceStats:
        """登记一笔平仓交易。equity 为平仓入账后的总权益。"""
        self._trades.append(trade)
        s = self._stats
        if trade.is_win:
            wins, losses = s.consecutive_wins + 1, 0
        else:
            wins, losses = 0, s.consecutive_losses + 1
        self._stats = replace(
            s,
            consecutive_wins=wins,
            consecutive_losses=losses,
            max_consecutive_wins=max(s.max_consecutive_wins, wins),
            max_consecutive_losses=max(s.max_consecutive_losses, losses),
        )
        self.record_equity(trade.exit_time, equity)
        self._recalculate()
        self.logger.info(
            "Trade recorded: %s | P&L: %.2f | equity=%.2f",
            "WIN" if trade.is_win else "LOSS",
            trade.pnl,
            equity,
        )
        return self._stats

    def record_equity(self, ts: datetime, equity: float) -> None:
        """追加权益点并更新回撤。"""
        point = EquityPoint(ts=ts, equity=float(equity))
        if self._equity and self._equity[-1].ts == ts:
            self._equity[-1] = point
        else:
            self._equity.append(point)
        self._last_update = ts

        self.peak_equity = max(self.peak_equity, point.equity)
        amount, fraction = drawdown(self.peak_equity, point.equity)
        s = self._stats
        self._stats = replace(
            s,
            current_drawdown=fraction,
            max_drawdown=max(s.max_drawdown, fraction),
            max_drawdown_amount=max(s.max_drawdown_amount, amount),
            trading_days=self._trading_days(),
        )

    def _trading_days(self) -> float:
        return (self._last_update - self.start_ts).total_seconds() / SECONDS_PER_DAY

    def _recalculate(self) -> None:
        trades = self._trades
        wins = [t.pnl for t in trades if t.is_win]
        losses = [t.pnl for t in trades if not t.is_win]
        total_pnl = sum(t.pnl for t in trades)
        avg_win = average(wins)
        avg_loss = average(losses)
        self._stats = replace(
            self._stats,
            total_trades=len(trades),
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate=win_rate(len(wins), len(trades)),
            total_pnl=total_pnl,
            total_pnl_pct=total_pnl / self.initial_capital * 100,
            average_win=avg_win,
            average_loss=avg_loss,
            largest_win=max(wins) if wins else 0.0,
            largest_loss=min(losses) if losses else 0.0,
            profit_factor=profit_factor(t.pnl for t in trades),
            sharpe_ratio=sharpe_ratio([t.pnl_pct for t in trades]),
            average_holding_period_secs=average([t.holding_period_secs for t in trades]),
            average_risk_reward=risk_reward(avg_win, avg_loss),
            expectancy=total_pnl / len(trades) if trades else 0.0,
            trading_days=self._trading_days(),
        )

    # ------------------------------------------------------------------
    @property
    def stats(self) -> PerformanceStats:
        return self._stats

    @property
    def trades(self) -> List[ClosedTrade]:
        return list(self._trades)

    @property
    def equity_curve(self) -> List[EquityPoint]:
        return list(self._equity)

    def recent_trades(self, count: int = 5) -> List[ClosedTrade]:
        if count <= 0:
            return []
        return self._trades[-count:]

    def export_json(self, path: str | Path | None = None) -> str:
        """导出 {stats, trades} JSON；给定 path 时同时写文件。"""
        payload = sanitize_for_json({"stats": self._stats, "trades": self._trades})
        text = json.dumps(payload, ensure_ascii=False, indent=2)
        if path is not None:
            out = Path(path)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(text, encoding="utf-8")
        return text
