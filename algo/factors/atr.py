"""ATR 因子。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from algo.factors.base import require_columns


def true_range(df: pd.DataFrame, *, high_col: str = "high", low_col: str = "low", close_col: str = "close") -> pd.Series:
    """逐根真实波幅；第一根没有前收盘价，记为 NaN。"""
    prev_close = df[close_col].astype(float).shift(1)
    high = df[high_col].astype(float)
    low = df[low_col].astype(float)
    tr1 = high - low
    tr2 = (high - prev_close).abs()
    tr3 = (low - prev_close).abs()
    tr = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)
    return tr.where(prev_close.notna())


@dataclass(frozen=True)
class ATRFactor:
    """平均真实波幅（ATR，SMA 版本）。

    K 线少于 period + 1 根时输出 0。
    """

    period: int = 14
    high_col: str = "high"
    low_col: str = "low"
    close_col: str = "close"
    out_col: str | None = None
    name: str = "atr"
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.period <= 0:
            raise ValueError("ATR period must be > 0")
        object.__setattr__(
            self,
            "params",
            {
                "period": self.period,
                "high_col": self.high_col,
                "low_col": self.low_col,
                "close_col": self.close_col,
                "out_col": self.out_col,
            },
        )

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, (self.high_col, self.low_col, self.close_col), owner="ATRFactor")
        out = self.out_col or f"atr_{self.period}"
        tr = true_range(df, high_col=self.high_col, low_col=self.low_col, close_col=self.close_col)
        df[out] = tr.rolling(self.period, min_periods=self.period).mean().fillna(0.0)
        return df
