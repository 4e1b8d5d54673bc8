"""逐笔交易绩效指标（纯函数）。"""

from __future__ import annotations

from statistics import mean, pstdev
from typing import Iterable, Sequence


def win_rate(wins: int, total: int) -> float:
    """胜率（百分数）。"""
    return wins / total * 100 if total > 0 else 0.0


def profit_factor(pnls: Iterable[float]) -> float:
    """毛利 / 毛亏；没有亏损交易时为 0。"""
    pnls = list(pnls)
    gross_profit = sum(p for p in pnls if p > 0)
    gross_loss = abs(sum(p for p in pnls if p <= 0))
    return gross_profit / gross_loss if gross_loss > 0 else 0.0


def sharpe_ratio(returns_pct: Sequence[float]) -> float:
    """逐笔收益率的 Sharpe（无风险利率 0，不年化，总体标准差）。

    少于 2 笔或标准差为 0 时返回 0。
    """
    if len(returns_pct) < 2:
        return 0.0
    std = pstdev(returns_pct)
    if std == 0:
        return 0.0
    return mean(returns_pct) / std


def average(values: Sequence[float]) -> float:
    return mean(values) if values else 0.0


def risk_reward(average_win: float, average_loss: float) -> float:
    if average_loss == 0:
        return 0.0
    return abs(average_win / average_loss)


def drawdown(peak: float, equity: float) -> tuple[float, float]:
    """返回 (回撤金额, 回撤比例)。"""
    amount = max(peak - equity, 0.0)
    return amount, (amount / peak if peak > 0 else 0.0)
