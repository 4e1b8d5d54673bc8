"""市场状态分类：波动率 / 趋势 / 动能 / 支撑阻力。"""

from __future__ import annotations

from typing import Sequence

from shared.models.indicators import IndicatorSnapshot, MarketContext, Momentum, Trend, Volatility
from shared.models.models import Candle


class MarketContextClassifier:
    """基于指标快照给出粗粒度的市场状态标签。

    - volatility：布林带相对宽度 < 0.02 为 low，< 0.05 为 medium，否则 high；
    - trend：SMA20 高于 SMA50 超过 1% 为 bullish，低于 1% 为 bearish，否则 sideways；
    - momentum：MACD 柱强（|hist| > 0.1 * |macd|）且 RSI 偏离中性（> 60 或 < 40）为 strong，
      两者都不满足为 weak，其余 neutral；
    - support/resistance：最近 sr_lookback 根 K 线的最低价/最高价。
    """

    def __init__(self, sr_lookback: int = 20):
        self.sr_lookback = sr_lookback

    @staticmethod
    def volatility(snapshot: IndicatorSnapshot) -> Volatility:
        width = snapshot.bollinger.width_ratio
        if width < 0.02:
            return "low"
        if width < 0.05:
            return "medium"
        return "high"

    @staticmethod
    def trend(snapshot: IndicatorSnapshot) -> Trend:
        if snapshot.sma20 > snapshot.sma50 * 1.01:
            return "bullish"
        if snapshot.sma20 < snapshot.sma50 * 0.99:
            return "bearish"
        return "sideways"

    @staticmethod
    def momentum(snapshot: IndicatorSnapshot) -> Momentum:
        macd_strong = abs(snapshot.macd.histogram) > abs(snapshot.macd.macd) * 0.1
        rsi_strong = snapshot.rsi > 60 or snapshot.rsi < 40
        if macd_strong and rsi_strong:
            return "strong"
        if not macd_strong and not rsi_strong:
            return "weak"
        return "neutral"

    def classify(self, snapshot: IndicatorSnapshot, candles: Sequence[Candle]) -> MarketContext:
        recent = list(candles)[-self.sr_lookback:]
        support = min(c.low for c in recent) if recent else None
        resistance = max(c.high for c in recent) if recent else None
        return MarketContext(
            volatility=self.volatility(snapshot),
            trend=self.trend(snapshot),
            momentum=self.momentum(snapshot),
            support=support,
            resistance=resistance,
        )
