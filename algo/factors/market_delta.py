"""主动买卖量差（Market Delta）。"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from algo.factors.base import require_columns
from shared.models.indicators import Imbalance, MarketDelta


def classify_imbalance(delta_pct: float) -> Imbalance:
    if delta_pct > 30:
        return "strong_buy"
    if delta_pct > 10:
        return "buy"
    if delta_pct > -10:
        return "neutral"
    if delta_pct > -30:
        return "sell"
    return "strong_sell"


@dataclass(frozen=True)
class MarketDeltaAnalyzer:
    """阳线成交量记为买量，其余（含平盘）记为卖量；delta_pct 为量差占总量的百分比。"""

    lookback: int = 20

    def __post_init__(self):
        if self.lookback <= 0:
            raise ValueError("MarketDelta lookback must be > 0")

    def analyze(self, df: pd.DataFrame) -> MarketDelta:
        require_columns(df, ("open", "close", "volume"), owner="MarketDeltaAnalyzer")
        window = df.tail(self.lookback)
        up = window["close"] > window["open"]
        buy_volume = float(window.loc[up, "volume"].sum())
        sell_volume = float(window.loc[~up, "volume"].sum())
        total = buy_volume + sell_volume
        delta = buy_volume - sell_volume
        delta_pct = delta / total * 100.0 if total > 0 else 0.0
        return MarketDelta(
            delta=delta,
            delta_pct=delta_pct,
            buy_volume=buy_volume,
            sell_volume=sell_volume,
            imbalance=classify_imbalance(delta_pct),
        )
