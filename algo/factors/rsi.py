"""RSI 因子。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from algo.factors.base import require_columns

NEUTRAL_RSI = 50.0


@dataclass(frozen=True)
class RSIFactor:
    """相对强弱指数（RSI，简单平均版本，非 Wilder 指数平滑）。

    Notes
    -----
    - 价格少于 period + 1 个时输出中性值 50；
    - 窗口内没有下跌（平均跌幅为 0）时 RSI = 100。
    """

    period: int = 14
    price_col: str = "close"
    out_col: str | None = None
    name: str = "rsi"
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.period <= 0:
            raise ValueError("RSI period must be > 0")
        object.__setattr__(
            self,
            "params",
            {"period": self.period, "price_col": self.price_col, "out_col": self.out_col},
        )

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, [self.price_col], owner="RSIFactor")
        out = self.out_col or f"rsi_{self.period}"

        delta = df[self.price_col].astype(float).diff()
        gain = delta.clip(lower=0.0)
        loss = (-delta).clip(lower=0.0)

        avg_gain = gain.rolling(self.period, min_periods=self.period).mean()
        avg_loss = loss.rolling(self.period, min_periods=self.period).mean()

        rsi = 100.0 - (100.0 / (1.0 + avg_gain / avg_loss))
        rsi = rsi.where(avg_loss != 0, 100.0)
        df[out] = rsi.fillna(NEUTRAL_RSI)
        return df
