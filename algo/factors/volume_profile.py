"""成交量分布（Volume Profile）：POC 与价值区。"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

from algo.factors.base import require_columns
from shared.models.indicators import VolumeProfile


@dataclass(frozen=True)
class VolumeProfileAnalyzer:
    """把最近 lookback 根 K 线的成交量按价位分桶。

    - 价格区间取窗口内 high/low/close 的最小、最大值，等分为 buckets 个桶；
    - 每根 K 线按 (high + low) / 2 落桶，整根成交量计入该桶；
    - POC 为成交量最大桶的中点；
    - 价值区从 POC 桶出发向成交量更大的一侧扩张，直到覆盖 value_area 比例的成交量。
    """

    lookback: int = 50
    buckets: int = 20
    value_area: float = 0.7

    def __post_init__(self):
        if self.lookback <= 0 or self.buckets <= 0:
            raise ValueError("VolumeProfile lookback/buckets must be > 0")
        if not 0 < self.value_area <= 1:
            raise ValueError("VolumeProfile value_area must be in (0, 1]")

    def analyze(self, df: pd.DataFrame) -> VolumeProfile:
        require_columns(df, ("high", "low", "close", "volume"), owner="VolumeProfileAnalyzer")
        window = df.tail(self.lookback)
        high = window["high"].to_numpy(dtype=float)
        low = window["low"].to_numpy(dtype=float)
        close = window["close"].to_numpy(dtype=float)
        volume = window["volume"].to_numpy(dtype=float)

        price_min = float(min(high.min(), low.min(), close.min()))
        price_max = float(max(high.max(), low.max(), close.max()))
        size = (price_max - price_min) / self.buckets

        hist = np.zeros(self.buckets, dtype=float)
        mids = (high + low) / 2.0
        for mid, vol in zip(mids, volume):
            # 价格完全无波动时 size 为 0，全部落在第 0 桶
            idx = 0 if size == 0 else min(int(math.floor((mid - price_min) / size)), self.buckets - 1)
            hist[max(idx, 0)] += vol

        total = float(hist.sum())
        poc_idx = int(hist.argmax())
        poc = price_min + (poc_idx + 0.5) * size

        target = total * self.value_area
        lower = upper = poc_idx
        covered = hist[poc_idx]
        while covered < target:
            can_up = upper < self.buckets - 1
            can_down = lower > 0
            if not (can_up or can_down):
                break
            upper_vol = hist[upper + 1] if can_up else 0.0
            lower_vol = hist[lower - 1] if can_down else 0.0
            # 两侧相等时向下扩张；一侧到边界后只向另一侧扩张
            if can_up and (upper_vol > lower_vol or not can_down):
                upper += 1
                covered += upper_vol
            else:
                lower -= 1
                covered += lower_vol

        return VolumeProfile(
            poc=poc,
            vah=price_min + (upper + 1) * size,
            val=price_min + lower * size,
            total_volume=total,
        )
