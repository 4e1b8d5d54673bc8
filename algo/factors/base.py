"""因子（Factors/Features）抽象协议。"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

import pandas as pd

OHLCV_COLS = ("open", "high", "low", "close", "volume")


class Factor(Protocol):
    """因子协议：`compute(df) -> df`。

    输入 df 按时间升序，至少包含 OHLCV 列；因子只追加/覆盖自己的输出列。
    """

    name: str
    params: Mapping[str, Any]

    def compute(self, df: pd.DataFrame) -> pd.DataFrame:
        """对输入 df 添加/更新因子列并返回 df。"""
        ...


def require_columns(df: pd.DataFrame, cols: tuple[str, ...] | list[str], *, owner: str) -> None:
    for col in cols:
        if col not in df.columns:
            raise ValueError(f"{owner} requires column: {col}")
