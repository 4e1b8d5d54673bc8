"""轮询事件源（PollingCandleSource）。

按固定间隔向 K 线来源请求最新一批 K 线，并集中处理：
- 立即产生第一批（不等待一个周期）；
- 拉取失败时记录并指数退避，不中断循环；
- 顺序执行：只有上一批处理完，才开始下一次等待，不会重叠处理。
"""

from __future__ import annotations

import time
from typing import Callable, Iterator, List

from engine.sources.event_source import EventSource
from market_data.client import CandleSupplier
from shared.errors import DataError
from shared.models.models import Candle


class PollingCandleSource(EventSource):
    def __init__(
        self,
        *,
        supplier: CandleSupplier,
        pair: str,
        timeframe_minutes: int,
        interval_secs: float,
        sleep: Callable[[float], None] = time.sleep,
        logger=None,
        backoff_max_secs: float = 300.0,
    ):
        self._supplier = supplier
        self._pair = pair
        self._timeframe_minutes = timeframe_minutes
        self._interval_secs = float(interval_secs)
        self._sleep = sleep
        self._logger = logger
        self._backoff_max_secs = float(backoff_max_secs)
        self._running = True

    def stop(self) -> None:
        self._running = False

    def setup(self) -> None:
        self._running = True

    def teardown(self) -> None:
        self._running = False

    def events(self) -> Iterator[List[Candle]]:
        backoff = self._interval_secs
        while self._running:
            try:
                batch = self._supplier.get_latest_candles(self._pair, self._timeframe_minutes)
            except DataError as exc:
                if self._logger:
                    self._logger.warning("Polling %s failed: %s (retry in %.1fs)", self._pair, exc, backoff)
                self._sleep(backoff)
                backoff = min(backoff * 2, self._backoff_max_secs)
                continue
            backoff = self._interval_secs
            yield batch
            if not self._running:
                return
            self._sleep(self._interval_secs)
