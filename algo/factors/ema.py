"""EMA 因子。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np
import pandas as pd

from algo.factors.base import require_columns


def seeded_ema(values: Sequence[float] | np.ndarray, period: int) -> np.ndarray:
    """以前 period 个值的 SMA 为种子的 EMA 序列。

    - 第 i 个位置（i < period）退化为前 i+1 个值的均值；
    - 之后按 multiplier = 2 / (period + 1) 递推。
    """
    arr = np.asarray(values, dtype=float)
    out = np.empty(len(arr), dtype=float)
    if len(arr) == 0:
        return out
    k = 2.0 / (period + 1)
    running = 0.0
    for i, v in enumerate(arr):
        if i < period:
            running += v
            out[i] = running / (i + 1)
        else:
            out[i] = (v - out[i - 1]) * k + out[i - 1]
    return out


@dataclass(frozen=True)
class EMAFactor:
    """指数移动平均（EMA，SMA 种子）。"""

    period: int = 14
    price_col: str = "close"
    out_col: str | None = None
    name: str = "ema"
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.period <= 0:
            raise ValueError("EMA period must be > 0")
        object.__setattr__(
            self,
            "params",
            {"period": self.period, "price_col": self.price_col, "out_col": self.out_col},
        )

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, [self.price_col], owner="EMAFactor")
        out = self.out_col or f"ema_{self.period}"
        df[out] = seeded_ema(df[self.price_col].to_numpy(dtype=float), self.period)
        return df
