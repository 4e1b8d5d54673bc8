"""滑点模型。"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SlippageModel(ABC):
    @abstractmethod
    def apply(self, *, price: float, side: str) -> float:
        raise NotImplementedError


class FractionSlippageModel(SlippageModel):
    """按比例施加滑点（0.0005 表示 0.05%）。买单抬高、卖单压低。"""

    def __init__(self, fraction: float = 0.0):
        if fraction < 0 or fraction >= 1:
            raise ValueError("slippage fraction must be in [0, 1)")
        self.fraction = float(fraction)

    def apply(self, *, price: float, side: str) -> float:
        if self.fraction == 0.0:
            return float(price)
        if side == "buy":
            return float(price) * (1.0 + self.fraction)
        return float(price) * (1.0 - self.fraction)
