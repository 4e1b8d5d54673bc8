"""指标快照与市场状态结构。

可选子指标（VWAP/Keltner/Squeeze/Volume Profile/Market Delta）在未启用时为 None，
而不是 0 值，避免下游把“未计算”误读为“计算结果为 0”。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

Volatility = Literal["low", "medium", "high"]
Trend = Literal["bullish", "bearish", "sideways"]
Momentum = Literal["strong", "weak", "neutral"]
Intensity = Literal["low", "medium", "high"]
Imbalance = Literal["strong_buy", "buy", "neutral", "sell", "strong_sell"]
Direction = Literal["long", "short", "none"]
Quality = Literal["A", "B", "C"]


@dataclass(frozen=True)
class MACD:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class Bands:
    """上/中/下轨（Bollinger、Keltner 共用）。"""
    upper: float
    middle: float
    lower: float

    @property
    def width_ratio(self) -> float:
        """(upper - lower) / middle；middle 为 0 时返回 0。"""
        if self.middle == 0:
            return 0.0
        return (self.upper - self.lower) / self.middle


@dataclass(frozen=True)
class VwapBands:
    value: float
    std1_upper: float
    std1_lower: float
    std2_upper: float
    std2_lower: float


@dataclass(frozen=True)
class Squeeze:
    is_active: bool
    intensity: Intensity


@dataclass(frozen=True)
class VolumeProfile:
    poc: float
    vah: float
    val: float
    total_volume: float


@dataclass(frozen=True)
class MarketDelta:
    delta: float
    delta_pct: float
    buy_volume: float
    sell_volume: float
    imbalance: Imbalance


@dataclass(frozen=True)
class IndicatorSnapshot:
    """最新一根 K 线上的指标快照。"""
    rsi: float
    macd: MACD
    bollinger: Bands
    sma20: float
    sma50: float
    ema12: float
    ema26: float
    volume_average: float
    volume_ratio: float
    vwap: Optional[VwapBands] = None
    keltner: Optional[Bands] = None
    squeeze: Optional[Squeeze] = None
    volume_profile: Optional[VolumeProfile] = None
    market_delta: Optional[MarketDelta] = None
    extras: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class MarketContext:
    volatility: Volatility
    trend: Trend
    momentum: Momentum
    support: Optional[float] = None
    resistance: Optional[float] = None


@dataclass(frozen=True)
class SetupSignal:
    """形态识别结果（VWAP 回归、Squeeze 突破、POC 磁吸等）。"""
    is_setup: bool
    direction: Direction = "none"
    quality: Quality = "C"

    @classmethod
    def none(cls) -> "SetupSignal":
        return cls(is_setup=False, direction="none", quality="C")
