"""VWAP 因子（全窗口累计）。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from algo.factors.base import require_columns


@dataclass(frozen=True)
class VWAPFactor:
    """累计 VWAP 及其标准差带。

    - typical price = (H + L + C) / 3；
    - VWAP = Σ(tp * volume) / Σvolume，成交量为 0 时取收盘价；
    - 标准差为各根 typical price 相对当前 VWAP 的总体离散度。
    """

    prefix: str = "vwap"
    name: str = "vwap"
    params: dict[str, Any] = field(default_factory=dict)

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, ("high", "low", "close", "volume"), owner="VWAPFactor")
        tp = (df["high"].astype(float) + df["low"].astype(float) + df["close"].astype(float)) / 3.0
        volume = df["volume"].astype(float)

        cum_volume = volume.cumsum()
        cum_tpv = (tp * volume).cumsum()
        vwap = (cum_tpv / cum_volume.where(cum_volume > 0)).fillna(df["close"].astype(float))

        n = pd.Series(np.arange(1, len(df) + 1, dtype=float), index=df.index)
        mean_tp = tp.cumsum() / n
        mean_tp2 = (tp * tp).cumsum() / n
        # E[(tp - vwap)^2] 展开式；数值误差可能给出极小负数
        variance = (mean_tp2 - 2.0 * vwap * mean_tp + vwap * vwap).clip(lower=0.0)
        std = np.sqrt(variance)

        df[self.prefix] = vwap
        df[f"{self.prefix}_std"] = std
        return df
