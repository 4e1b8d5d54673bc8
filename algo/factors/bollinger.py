"""Bollinger Bands 因子。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from algo.factors.base import require_columns


@dataclass(frozen=True)
class BollingerFactor:
    """布林带：middle = SMA(period)，上下轨 = middle ± num_std * 总体标准差。"""

    period: int = 20
    num_std: float = 2.0
    price_col: str = "close"
    prefix: str = "bb"
    name: str = "bollinger"
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.period <= 0:
            raise ValueError("Bollinger period must be > 0")
        if self.num_std <= 0:
            raise ValueError("Bollinger num_std must be > 0")
        object.__setattr__(
            self,
            "params",
            {"period": self.period, "num_std": self.num_std, "price_col": self.price_col},
        )

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        require_columns(df, [self.price_col], owner="BollingerFactor")
        rolling = df[self.price_col].astype(float).rolling(self.period, min_periods=1)
        middle = rolling.mean()
        width = self.num_std * rolling.std(ddof=0).fillna(0.0)
        df[f"{self.prefix}_middle"] = middle
        df[f"{self.prefix}_upper"] = middle + width
        df[f"{self.prefix}_lower"] = middle - width
        return df
