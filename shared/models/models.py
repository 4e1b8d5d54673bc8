"""核心数据结构：Candle/Decision/Position/TradeRecord/PortfolioState 等。

约定：
- 所有时间戳为 tz-aware 的 UTC `datetime`；
- Candle/TradeRecord/EquityPoint 一经产生不可变（frozen）；
- Position/PortfolioState 为可变聚合，只由 ExecutionSimulator 修改。
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Literal, Optional, Sequence

Action = Literal["BUY", "SELL", "HOLD"]
Side = Literal["long", "short"]

VALID_ACTIONS: tuple[str, ...] = ("BUY", "SELL", "HOLD")


@dataclass(frozen=True)
class Candle:
    """K 线数据（OHLCV），ts 为该 K 线的开盘时间。"""
    ts: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    symbol: str = ""

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0


@dataclass(frozen=True)
class Decision:
    """决策服务给出的动作建议。

    quantity 为建议使用的现金比例 (0, 1]；stop_loss/take_profit 为建议价位，均可缺省。
    """
    action: Action
    confidence: float
    reasoning: str
    quantity: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    ts: Optional[datetime] = None

    @classmethod
    def fallback_hold(cls, error: BaseException | str, ts: datetime | None = None) -> "Decision":
        """决策服务失败时的兜底：置信度为 0 的 HOLD。"""
        msg = str(error) or error.__class__.__name__
        return cls(
            action="HOLD",
            confidence=0.0,
            reasoning=f"AI Error: {msg}. Defaulting to HOLD for safety.",
            ts=ts,
        )


@dataclass
class Position:
    """持仓（单品种最多一个）。"""
    symbol: str
    entry_price: float
    quantity: float
    entry_time: datetime
    stop_loss: float
    take_profit: float
    side: Side = "long"
    entry_fee: float = 0.0
    current_price: float = 0.0
    unrealized_pnl: float = 0.0

    @property
    def entry_value(self) -> float:
        return self.quantity * self.entry_price

    @property
    def cost_basis(self) -> float:
        """开仓成本（名义 + 开仓手续费）。"""
        return self.entry_value + self.entry_fee

    def mark(self, price: float) -> None:
        """按最新价格更新浮动盈亏。"""
        self.current_price = float(price)
        self.unrealized_pnl = self.quantity * self.current_price - self.entry_value


@dataclass(frozen=True)
class TradeRecord:
    """开仓成交记录。"""
    id: str
    ts: datetime
    symbol: str
    action: Action
    quantity: float
    price: float
    value: float
    fee: float
    stop_loss: float
    take_profit: float
    reasoning: str


@dataclass(frozen=True)
class ClosedTrade(TradeRecord):
    """平仓后的完整交易：开仓半边 + 平仓信息。

    Notes
    -----
    - price/value/fee 保留开仓时的价格、名义与手续费；
    - pnl = 平仓名义 - 开仓成本（含开仓手续费） - 平仓手续费。
    """
    exit_time: datetime
    exit_price: float
    exit_fee: float
    pnl: float
    pnl_pct: float
    holding_period_secs: float
    is_win: bool

    @classmethod
    def from_open(cls, opened: TradeRecord, **close_fields: Any) -> "ClosedTrade":
        base = {f.name: getattr(opened, f.name) for f in fields(TradeRecord)}
        base.update(close_fields)
        return cls(**base)


@dataclass
class PortfolioState:
    """组合状态：现金 + 持仓数量 + 按市值计算的总权益。"""
    cash: float
    total_equity: float
    ts: Optional[datetime] = None
    holdings: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskCheck:
    """风控检查结果。allowed=False 为正常的拒单结果，不是异常。"""
    allowed: bool
    reason: Optional[str] = None
    adjusted_quantity: Optional[float] = None


@dataclass(frozen=True)
class EquityPoint:
    ts: datetime
    equity: float


@dataclass(frozen=True)
class PerformanceStats:
    """绩效统计快照（由 PerformanceTracker 重新计算得到）。

    drawdown 类字段均为比例（0.05 表示 5%）；win_rate/total_pnl_pct 为百分数。
    """
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    total_pnl_pct: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    profit_factor: float = 0.0
    sharpe_ratio: float = 0.0
    current_drawdown: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_amount: float = 0.0
    consecutive_wins: int = 0
    consecutive_losses: int = 0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    average_holding_period_secs: float = 0.0
    average_risk_reward: float = 0.0
    expectancy: float = 0.0
    trading_days: float = 0.0


@dataclass(frozen=True)
class DecisionContext:
    """交给决策服务的上下文快照。"""
    pair: str
    timeframe: str
    current_price: float
    ts: datetime
    candles: Sequence[Candle]
    indicators: Any
    market_context: Any
    portfolio: PortfolioState
    position: Optional[Position]
    stats: PerformanceStats
    recent_trades: Sequence[ClosedTrade] = ()
