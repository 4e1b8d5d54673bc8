"""事件源抽象（EventSource）。

引擎只负责消费事件，不关心 K 线来自历史回放还是交易所轮询。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterator, Sequence

from shared.models.models import Candle


class EventSource(ABC):
    """事件源抽象基类。"""

    def setup(self) -> None:
        """可选初始化钩子。"""

    def teardown(self) -> None:
        """可选清理钩子。"""

    @abstractmethod
    def events(self) -> Iterator[Any]:
        """核心生成器：产生事件流。"""
        raise NotImplementedError


class ReplayWindowSource(EventSource):
    """历史回放：从第 warmup 根 K 线开始，依次产生“截至当前 K 线”的窗口。

    第 i 个事件为 candles[: start + i + 1]，窗口只包含当前及之前的 K 线，
    不会看到未来数据。
    """

    def __init__(self, candles: Sequence[Candle], *, warmup: int):
        if warmup <= 0:
            raise ValueError("warmup must be > 0")
        self._candles = list(candles)
        self._warmup = warmup

    def __len__(self) -> int:
        return max(len(self._candles) - self._warmup + 1, 0)

    def events(self) -> Iterator[Sequence[Candle]]:
        for i in range(self._warmup - 1, len(self._candles)):
            yield self._candles[: i + 1]
