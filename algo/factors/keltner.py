"""Keltner Channels 因子。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from algo.factors.atr import ATRFactor
from algo.factors.base import require_columns
from algo.factors.ema import seeded_ema


@dataclass(frozen=True)
class KeltnerFactor:
    """Keltner 通道：EMA(period) ± multiplier * ATR(period)。"""

    period: int = 20
    multiplier: float = 1.5
    prefix: str = "kc"
    name: str = "keltner"
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.period <= 0:
            raise ValueError("Keltner period must be > 0")
        if self.multiplier <= 0:
            raise ValueError("Keltner multiplier must be > 0")
        object.__setattr__(self, "params", {"period": self.period, "multiplier": self.multiplier})

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, ("high", "low", "close"), owner="KeltnerFactor")
        atr_col = f"{self.prefix}_atr"
        df = ATRFactor(period=self.period, out_col=atr_col).compute(df)
        middle = pd.Series(seeded_ema(df["close"].to_numpy(dtype=float), self.period), index=df.index)
        width = self.multiplier * df[atr_col]
        df[f"{self.prefix}_middle"] = middle
        df[f"{self.prefix}_upper"] = middle + width
        df[f"{self.prefix}_lower"] = middle - width
        return df
