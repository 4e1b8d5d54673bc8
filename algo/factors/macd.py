"""MACD 因子。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import pandas as pd

from algo.factors.base import require_columns
from algo.factors.ema import seeded_ema


@dataclass(frozen=True)
class MACDFactor:
    """MACD = EMA(fast) - EMA(slow)。

    信号线有两种口径：
    - "approx"：signal = ratio * MACD（默认 ratio = 0.9），与历史策略行为保持一致；
    - "ema"：标准的 MACD 序列 signal_period 周期 EMA。
    histogram = MACD - signal。
    """

    fast: int = 12
    slow: int = 26
    signal: Literal["approx", "ema"] = "approx"
    signal_ratio: float = 0.9
    signal_period: int = 9
    price_col: str = "close"
    prefix: str = "macd"
    name: str = "macd"
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.fast <= 0 or self.slow <= 0 or self.signal_period <= 0:
            raise ValueError("MACD periods must be > 0")
        if self.fast >= self.slow:
            raise ValueError("MACD fast period must be < slow period")
        if self.signal not in ("approx", "ema"):
            raise ValueError(f"Unknown MACD signal mode: {self.signal}")
        object.__setattr__(
            self,
            "params",
            {
                "fast": self.fast,
                "slow": self.slow,
                "signal": self.signal,
                "signal_ratio": self.signal_ratio,
                "signal_period": self.signal_period,
                "price_col": self.price_col,
            },
        )

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, [self.price_col], owner="MACDFactor")
        prices = df[self.price_col].to_numpy(dtype=float)
        macd = seeded_ema(prices, self.fast) - seeded_ema(prices, self.slow)
        if self.signal == "ema":
            signal = seeded_ema(macd, self.signal_period)
        else:
            signal = macd * self.signal_ratio

        df[self.prefix] = macd
        df[f"{self.prefix}_signal"] = signal
        df[f"{self.prefix}_hist"] = macd - signal
        return df
